"""
快照模型 - 单个图表在一次导出中产出的栅格/矢量产物
"""

from __future__ import annotations

import base64
from typing import Literal

from pydantic import BaseModel, Field

from .analysis import ContentBounds, ScaleInfo
from .chart import ChartDocument


class RasterImage(BaseModel):
    """栅格图像"""
    data: bytes = Field(..., repr=False)
    format: Literal["PNG", "JPEG"] = "PNG"
    width: int
    height: int

    @property
    def mime_type(self) -> str:
        return "image/png" if self.format == "PNG" else "image/jpeg"

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class ChartSnapshot(BaseModel):
    """图表快照（每图每次导出仅生成一次，组装PDF后丢弃）"""
    primary: RasterImage
    preview: RasterImage | None = None
    svg: str | None = Field(None, repr=False)
    bounds: ContentBounds
    scale: ScaleInfo


class CapturedChart(BaseModel):
    """已捕获的图表（文档+快照）"""
    chart: ChartDocument
    snapshot: ChartSnapshot

    @property
    def chart_id(self) -> str:
        return self.chart.id

    @property
    def title(self) -> str:
        return self.chart.name

    @property
    def department(self) -> str:
        return self.chart.department_tag

    @property
    def node_count(self) -> int:
        return len(self.chart.nodes)

    @property
    def people_count(self) -> int:
        return self.chart.people_count
