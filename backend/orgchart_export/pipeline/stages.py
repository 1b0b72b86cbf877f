"""
导出阶段定义

职责：
1. 定义各阶段名称与进度区间
2. 渲染阶段按图表序号在区间内线性推进

测试要点：
- test_rendering_progress_range: 渲染阶段进度落在 0-80
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import ExportStatus


@dataclass(frozen=True)
class ExportStage:
    """导出阶段"""
    status: ExportStatus
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点
    message: str = ""

    def progress_at(self, done: int, total: int) -> float:
        """阶段内进度（done/total 线性插值）"""
        if total <= 0:
            return float(self.progress_start)
        ratio = min(max(done / total, 0.0), 1.0)
        return self.progress_start + (self.progress_end - self.progress_start) * ratio


FETCHING = ExportStage(ExportStatus.FETCHING, 0, 0, "Fetching charts")
RENDERING = ExportStage(ExportStatus.RENDERING, 0, 80, "Rendering charts")
ASSEMBLING = ExportStage(ExportStatus.ASSEMBLING, 85, 85, "Assembling PDF")
DOWNLOADING = ExportStage(ExportStatus.DOWNLOADING, 95, 95, "Saving PDF")
COMPLETE = ExportStage(ExportStatus.COMPLETE, 100, 100, "Export complete")

EXPORT_STAGES: list[ExportStage] = [FETCHING, RENDERING, ASSEMBLING, DOWNLOADING, COMPLETE]
