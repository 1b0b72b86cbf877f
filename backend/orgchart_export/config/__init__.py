"""
配置层 - 加载运行期配置与导出模板

职责：
- 加载 documents/export_runtime.yaml（运行期参数）
- 加载导出模板与封面映射（会话级缓存）
- 提供类型安全的配置访问接口
"""

from .runtime_config import RuntimeConfig, configure_logging, get_config, reload_config
from .template_loader import CoverMapping, TemplateConfig, TemplateLoader

__all__ = [
    "RuntimeConfig",
    "configure_logging",
    "get_config",
    "reload_config",
    "TemplateConfig",
    "CoverMapping",
    "TemplateLoader",
]
