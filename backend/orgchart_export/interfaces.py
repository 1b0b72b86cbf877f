"""
模块接口契约 - 定义各模块的抽象接口

设计原则：
1. 模块间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换（外部协作方：图表数据源/静态资源/文件保存）

使用方式：
    from orgchart_export.interfaces import IChartSource

    class MyChartSource(IChartSource):
        async def list_owned_charts(self) -> list[ChartDocument]:
            ...
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol
from xml.etree.ElementTree import Element

if TYPE_CHECKING:
    from .models import ChartDocument, ChartNode, ExportDocument, LayoutParams


# ============================================================================
# 外部协作方接口
# ============================================================================

class IChartSource(ABC):
    """图表数据源接口 - 提供当前用户拥有的全部图表"""

    @abstractmethod
    async def list_owned_charts(self) -> list[ChartDocument]:
        """
        获取当前用户拥有的全部图表（已分页合并）

        Returns:
            图表列表（每个元素为独立副本，导出期间不可变）

        Raises:
            FetchError: 无法获取图表集合
        """
        ...


class IAssetSource(ABC):
    """静态资源接口 - 模板配置/封面映射/图片/字体/样式表"""

    @abstractmethod
    async def get_bytes(self, path: str) -> bytes:
        """
        读取二进制资源

        Raises:
            AssetLoadError: 资源不存在或读取失败
        """
        ...

    async def get_text(self, path: str) -> str:
        """读取文本资源"""
        data = await self.get_bytes(path)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AssetLoadError(f"文本解码失败: {path}: {e}") from e

    async def get_json(self, path: str) -> Any:
        """读取JSON资源"""
        text = await self.get_text(path)
        try:
            return json.loads(text)
        except ValueError as e:
            raise AssetLoadError(f"JSON解析失败: {path}: {e}") from e


class IDocumentSink(ABC):
    """文档保存接口 - 平台的“另存为文件”原语"""

    @abstractmethod
    async def save(self, document: ExportDocument) -> Path:
        """
        保存组装完成的PDF文档

        Args:
            document: 导出文档（含固定文件名）

        Returns:
            保存后的文件路径
        """
        ...


class Continuation(str, Enum):
    """单图渲染失败后的继续策略结果"""
    CONTINUE = "continue"
    ABORT = "abort"


class IContinuationPolicy(Protocol):
    """继续策略协议（由调用方/UI层提供）"""

    async def decide(self, error: Exception, chart_name: str) -> Continuation:
        """单图失败时决定跳过继续还是中止整个导出"""
        ...


# ============================================================================
# 渲染引擎接口
# ============================================================================

class IChartEngine(ABC):
    """图表渲染引擎接口 - 在离屏画布上布局并绘制节点树"""

    @abstractmethod
    def render(
        self,
        nodes: list[ChartNode],
        params: LayoutParams,
        direction: str,
        root: Element,
    ) -> None:
        """在画布SVG根节点下绘制图表"""
        ...

    @abstractmethod
    def node_count(self) -> int:
        """当前已绘制的节点元素数量"""
        ...

    @abstractmethod
    def fit(self) -> None:
        """内容居中（不改变预设间距）"""
        ...

    @abstractmethod
    def capture_png(
        self,
        region: tuple[float, float, float, float],
        scale: float,
    ) -> bytes:
        """按区域(x, y, width, height)与倍率导出PNG"""
        ...

    @abstractmethod
    def clear(self) -> None:
        """释放引擎内部状态"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class OrgExportError(Exception):
    """基础异常"""
    pass


class FetchError(OrgExportError):
    """无法获取图表集合（致命，渲染前中止）"""
    pass


class NoChartsError(FetchError):
    """没有可导出的图表"""
    pass


class RenderError(OrgExportError):
    """单图渲染失败（可恢复，交由继续策略决定）"""
    pass


class RenderTimeoutError(RenderError):
    """渲染未在时限内稳定"""
    pass


class AssemblyError(OrgExportError):
    """PDF组装失败（致命）"""
    pass


class AssetLoadError(OrgExportError):
    """静态资源加载失败（非致命，调用方替换兜底资源）"""
    pass


class ExportCancelled(OrgExportError):
    """用户取消（受控中止，不视为错误）"""
    pass


class ExportInProgressError(OrgExportError):
    """已有导出任务在进行中"""
    pass
