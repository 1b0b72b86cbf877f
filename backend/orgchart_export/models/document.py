"""
导出文档模型 - PDF组装结果与页面编排
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class PageKind(str, Enum):
    """页面类型"""
    DOCUMENT_COVER = "document_cover"
    OVERVIEW = "overview"
    SECTION_COVER = "section_cover"
    CHART = "chart"


class PagePlan(BaseModel):
    """单页编排"""
    page_number: int
    kind: PageKind
    group_key: str | None = None
    chart_id: str | None = None
    title: str = ""
    image_path: str | None = None


class ChartGroup(BaseModel):
    """封面分组（同一coverId的图表）"""
    key: str
    chart_ids: list[str] = Field(default_factory=list)
    cover_image: str | None = None
    render_cover: bool = True


class ExportDocument(BaseModel):
    """组装完成的PDF文档（交给保存协作方）"""
    filename: str
    content: bytes = Field(..., repr=False)
    page_total: int
    pages: list[PagePlan] = Field(default_factory=list)
    chart_count: int = 0

    @property
    def chart_order(self) -> list[str]:
        return [p.chart_id for p in self.pages if p.kind == PageKind.CHART and p.chart_id]
