"""
文档生成模块 - PDF组装

子模块：
- pdf_engine: ReportLab绘制原语/字体注册/页数计算
- pages: 封面/总览/图表页绘制
- assembler: 分组排序与分页组装
"""

from .assembler import PDFAssembler, chart_sort_key, group_charts, group_sort_key
from .pages import PageRenderer, build_overview_divisions
from .pdf_engine import count_pdf_pages, register_fonts

__all__ = [
    "PDFAssembler",
    "chart_sort_key",
    "group_charts",
    "group_sort_key",
    "PageRenderer",
    "build_overview_divisions",
    "count_pdf_pages",
    "register_fonts",
]
