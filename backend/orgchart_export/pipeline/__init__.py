"""
流水线模块 - 导出会话编排与执行

子模块：
- stages: 导出各阶段定义
- sources: 图表数据源与静态资源
- sinks: PDF保存
- executor: 导出执行器
- session_manager: 会话管理
"""

from .executor import AlwaysAbort, AlwaysContinue, ExportExecutor, ExportResult
from .session_manager import SessionManager
from .sinks import FileDocumentSink
from .sources import HttpAssetSource, LocalAssetSource, LocalChartSource, RestChartSource
from .stages import EXPORT_STAGES, ExportStage

__all__ = [
    "ExportStage",
    "EXPORT_STAGES",
    "ExportExecutor",
    "ExportResult",
    "AlwaysContinue",
    "AlwaysAbort",
    "SessionManager",
    "FileDocumentSink",
    "RestChartSource",
    "LocalChartSource",
    "HttpAssetSource",
    "LocalAssetSource",
]
