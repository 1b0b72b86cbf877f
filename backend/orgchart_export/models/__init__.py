"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- ChartDocument: 图表文档（节点树+元数据）
- TreeAnalysis/ContentBounds/ScaleInfo: 布局与几何派生数据
- ChartSnapshot: 单图快照
- ExportSession: 导出会话状态机
- ExportDocument: PDF组装结果
"""

from .analysis import ContentBounds, LayoutParams, ScaleInfo, TreeAnalysis
from .chart import (
    NO_COVER,
    ChartDocument,
    ChartNode,
    LayoutDirection,
    PersonEntry,
    RoleGroup,
    ViewState,
)
from .document import ChartGroup, ExportDocument, PageKind, PagePlan
from .session import TERMINAL_STATUSES, ExportProgress, ExportSession, ExportStatus
from .snapshot import CapturedChart, ChartSnapshot, RasterImage

__all__ = [
    "NO_COVER",
    "ChartDocument",
    "ChartNode",
    "LayoutDirection",
    "PersonEntry",
    "RoleGroup",
    "ViewState",
    "LayoutParams",
    "TreeAnalysis",
    "ContentBounds",
    "ScaleInfo",
    "RasterImage",
    "ChartSnapshot",
    "CapturedChart",
    "ExportStatus",
    "ExportProgress",
    "ExportSession",
    "TERMINAL_STATUSES",
    "PageKind",
    "PagePlan",
    "ChartGroup",
    "ExportDocument",
]
