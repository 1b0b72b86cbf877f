"""
页面绘制器 - 文档封面/分组封面/总览页/图表页

职责：
1. 文档封面：配置了封面图则整页铺满，否则绘制品牌文字封面（公司/标题/更新日期/Logo）
2. 分组封面：整页封面图，加载失败显示 “Section Cover”
3. 总览页（可选）：按部门列出图表标题
4. 图表页：快照缩放填满内容区（矢量优先可选，否则栅格），标题/副标题，页脚

依赖：
- reportlab: 画布绘制
- pdf_engine: 绘制原语

测试要点：
- test_chart_page_placeholder: 无快照图像时绘制占位框
- test_overview_groups_by_department: 无部门归入 General
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import TYPE_CHECKING

from reportlab.lib import colors

from .pdf_engine import (
    Area,
    ResolvedFonts,
    draw_footer,
    draw_image_fill,
    draw_image_fit,
    draw_placeholder,
    draw_svg_fit,
    fill_background,
    image_reader,
    to_color,
)

if TYPE_CHECKING:
    from reportlab.pdfgen.canvas import Canvas

    from ..config.runtime_config import PDFConfig
    from ..config.template_loader import TemplateConfig
    from ..models import CapturedChart

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Org chart snapshot pending…"
SECTION_COVER_TEXT = "Section Cover"
OVERVIEW_TITLE = "Company Overview"
GENERAL_DIVISION = "General"


def build_overview_divisions(charts: list[CapturedChart]) -> OrderedDict[str, list[str]]:
    """按部门归集图表标题（保持首次出现顺序，标题去重）"""
    divisions: OrderedDict[str, list[str]] = OrderedDict()
    for captured in charts:
        key = captured.department or GENERAL_DIVISION
        titles = divisions.setdefault(key, [])
        if captured.title not in titles:
            titles.append(captured.title)
    return divisions


def latest_updated(charts: list[CapturedChart], fmt: str, today: datetime | None = None) -> str:
    """最近修改日期（无则取今天）"""
    stamps = [c.chart.last_modified for c in charts if c.chart.last_modified is not None]
    latest = max(stamps, key=lambda d: d.timestamp()) if stamps else (today or datetime.now())
    return latest.strftime(fmt)


class PageRenderer:
    """页面绘制器"""

    def __init__(
        self,
        template: TemplateConfig,
        pdf: PDFConfig,
        fonts: ResolvedFonts,
        page_fill: float = 0.98,
    ) -> None:
        self.template = template
        self.pdf = pdf
        self.fonts = fonts
        self.page_fill = page_fill
        self.page_w = template.page.width_pt
        self.page_h = template.page.height_pt

    # ------------------------------------------------------------------

    def content_area(self) -> Area:
        insets = self.pdf.content_insets
        left = insets.get("left", 60)
        right = insets.get("right", 60)
        top = insets.get("top", 130)
        bottom = insets.get("bottom", 60)
        return Area(left, top, self.page_w - left - right, self.page_h - top - bottom)

    def _footer(self, c: Canvas, page_number: int, total: int) -> None:
        draw_footer(
            c, self.template, self.fonts, self.page_w, self.page_h,
            page_number, total, self.pdf.classification, self.pdf.url,
        )

    def _text_y(self, y_top: float) -> float:
        return self.page_h - y_top

    # ------------------------------------------------------------------

    def draw_document_cover(
        self,
        c: Canvas,
        image: bytes | None,
        updated_text: str,
        logo: bytes | None = None,
    ) -> str:
        """文档封面，返回绘制方式 image/text"""
        fill_background(c, self.page_w, self.page_h, self.template.palette.background)
        reader = image_reader(image)
        if reader is not None:
            draw_image_fill(c, reader, self.page_w, self.page_h)
            return "image"

        margins = self.template.page.margins_pt
        scale = self.template.fonts.primary.scale_pt
        headline_y = self.page_h * self.pdf.cover_headline_ratio

        c.setFillColor(to_color(self.template.palette.text))
        c.setFont(self.fonts.heading, scale.display)
        c.drawString(margins.left, self._text_y(headline_y), self.pdf.company)
        c.drawString(margins.left, self._text_y(headline_y + 110), self.pdf.company_secondary)
        c.setFont(self.fonts.heading, scale.h1)
        c.drawString(margins.left, self._text_y(headline_y + 190), self.pdf.title)

        c.setFont(self.fonts.regular, scale.body_small)
        date_y = self.page_h - self.template.footer.height_pt - 30
        c.drawString(margins.left, self._text_y(date_y), f"Updated as of {updated_text}")

        self._draw_logo(c, logo)
        return "text"

    def _draw_logo(self, c: Canvas, logo: bytes | None) -> None:
        spec = self.template.logo
        if spec is None or not logo:
            return
        reader = image_reader(logo)
        if reader is None:
            logger.warning("Logo 无法解码，跳过")
            return
        w, h = spec.size_pt.width, spec.size_pt.height
        if w <= 0 or h <= 0:
            w, h = reader.getSize()
        c.drawImage(
            reader, spec.position_pt.x, self.page_h - spec.position_pt.y - h,
            width=w, height=h, mask="auto",
        )

    def draw_section_cover(self, c: Canvas, image: bytes | None) -> str:
        """分组封面（封面图自带品牌元素，不绘制页脚）"""
        fill_background(c, self.page_w, self.page_h, self.template.palette.background)
        reader = image_reader(image)
        if reader is not None:
            draw_image_fill(c, reader, self.page_w, self.page_h)
            return "image"

        c.setFillColor(to_color(self.template.palette.text))
        c.setFont(self.fonts.heading, self.template.fonts.primary.scale_pt.h1)
        c.drawCentredString(self.page_w / 2, self.page_h / 2, SECTION_COVER_TEXT)
        return "text"

    def draw_overview(
        self,
        c: Canvas,
        divisions: OrderedDict[str, list[str]],
        page_number: int,
        total: int,
    ) -> None:
        fill_background(c, self.page_w, self.page_h, self.template.palette.background)
        scale = self.template.fonts.primary.scale_pt
        c.setFillColor(to_color(self.template.palette.text))
        c.setFont(self.fonts.heading, scale.h1)
        c.drawCentredString(self.page_w / 2, self._text_y(80), OVERVIEW_TITLE)

        columns = max(1, self.template.overview_columns)
        start_x = self.template.page.margins_pt.left
        usable = self.page_w - start_x - self.template.page.margins_pt.right
        col_w = usable / columns
        y_start = self.template.page.zones.content.y_pt + 40

        for idx, (name, entries) in enumerate(divisions.items()):
            x = start_x + (idx % columns) * col_w
            c.setFont(self.fonts.bold, scale.h2)
            c.drawString(x, self._text_y(y_start + 30), name)
            c.setFont(self.fonts.regular, scale.body)
            for line, entry in enumerate(entries):
                y = y_start + 60 + line * 24
                if y > y_start + 560:
                    break
                c.drawString(x + 20, self._text_y(y), entry)

        self._footer(c, page_number, total)

    def draw_chart_page(
        self,
        c: Canvas,
        captured: CapturedChart,
        page_number: int,
        total: int,
        prefer_vector: bool = False,
    ) -> str:
        """图表页，返回绘制方式 svg/jpeg/png/none"""
        fill_background(c, self.page_w, self.page_h, self.template.palette.background)
        area = self.content_area()
        snapshot = captured.snapshot
        method = "none"

        if prefer_vector and snapshot.svg:
            if draw_svg_fit(c, snapshot.svg, area, self.page_h, snapshot.bounds, self.page_fill):
                method = "svg"

        if method == "none":
            variant = snapshot.primary or snapshot.preview
            reader = image_reader(variant.data) if variant is not None else None
            if reader is None and snapshot.preview is not None and variant is not snapshot.preview:
                reader = image_reader(snapshot.preview.data)
            if reader is not None:
                draw_image_fit(c, reader, area, self.page_h, self.page_fill)
                method = (variant.format if variant else "raster").lower()

        if method == "none":
            logger.error(f"图表 {captured.title} 无可用快照，绘制占位框")
            draw_placeholder(
                c, area, self.page_h, PLACEHOLDER_TEXT,
                self.fonts.regular, self.template.fonts.primary.scale_pt.body,
            )
        else:
            # 标题在图像之后绘制，保证位于上层
            scale = self.template.fonts.primary.scale_pt
            c.setFillColor(to_color(self.template.palette.text))
            c.setFont(self.fonts.heading, scale.h1)
            c.drawCentredString(self.page_w / 2, self._text_y(self.pdf.title_y), captured.title or "Department")
            if captured.department:
                c.setFont(self.fonts.regular, scale.body)
                c.drawCentredString(self.page_w / 2, self._text_y(self.pdf.subtitle_y), captured.department)

        c.setFillColor(colors.black)
        self._footer(c, page_number, total)
        return method

