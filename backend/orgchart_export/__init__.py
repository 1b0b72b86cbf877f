"""
组织架构图批量导出 - 后端核心模块

模块结构：
- config/     运行期配置与导出模板加载
- models/     数据模型定义
- layout/     树结构分析/图表引擎/边界测量/缩放拟合
- render/     离屏渲染/稳定性检测/图像后处理
- doc_gen/    PDF组装（封面/总览/图表页）
- pipeline/   导出会话编排与数据源
"""

__version__ = "0.1.0"
