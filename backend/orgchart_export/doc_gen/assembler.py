"""
PDF组装器 - 分组/排序/分页，将所有快照组装为一个PDF文档

组装规则：
1. 分组：按 coverId 分桶（未设置归入 "no-cover"）
2. 组内排序：coverOrderIndex 升序（缺失排最后）-> createdAt 升序 -> 图表ID字典序
3. 组间排序：按封面映射 coverOrder 中的位置；未列出的分组排在其后，按分组键字典序
4. 封面去重：文档封面恒为第1页；每组前插入分组封面，以下情况跳过：
   - 分组为 "no-cover"
   - 首个分组且其封面图与文档封面图相同
5. 总页数 = 1 + 实际绘制的分组封面数 + 图表数（启用总览页时 +1）

依赖：
- reportlab: PDF画布
- TemplateLoader: 模板与封面映射（会话级缓存）

测试要点：
- test_intra_group_order: 组内按 coverOrderIndex 排序
- test_order_independent_of_input: 输入顺序不影响输出页序
- test_first_group_cover_dedup: 首组封面与文档封面相同时跳过
- test_page_total: 页数公式与PDF实际页数一致
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from reportlab.pdfgen.canvas import Canvas

from ..interfaces import AssemblyError, AssetLoadError
from ..models import NO_COVER, ChartGroup, ExportDocument, PageKind, PagePlan
from .pages import PageRenderer, build_overview_divisions, latest_updated
from .pdf_engine import register_fonts

if TYPE_CHECKING:
    from ..config.runtime_config import PDFConfig
    from ..config.template_loader import CoverMapping, TemplateLoader
    from ..interfaces import IAssetSource
    from ..models import CapturedChart

logger = logging.getLogger(__name__)


def chart_sort_key(captured: CapturedChart) -> tuple:
    """组内排序键（全序）"""
    chart = captured.chart
    index = chart.cover_order_index
    created = chart.created_at
    return (
        index is None,
        index if index is not None else 0,
        created is None,
        created.timestamp() if created is not None else 0.0,
        chart.id,
    )


def group_sort_key(key: str, cover_order: list[str]) -> tuple:
    """组间排序键：已列出的按位置，未列出的按键字典序"""
    if key in cover_order:
        return (0, cover_order.index(key), "")
    return (1, 0, key)


def group_charts(charts: Iterable[CapturedChart]) -> dict[str, list[CapturedChart]]:
    groups: dict[str, list[CapturedChart]] = {}
    for captured in charts:
        groups.setdefault(captured.chart.group_key, []).append(captured)
    for members in groups.values():
        members.sort(key=chart_sort_key)
    return groups


class PDFAssembler:
    """PDF组装器"""

    def __init__(
        self,
        loader: TemplateLoader,
        assets: IAssetSource,
        pdf_config: PDFConfig,
        page_fill: float = 0.98,
    ) -> None:
        self.loader = loader
        self.assets = assets
        self.pdf_config = pdf_config
        self.page_fill = page_fill

    # ------------------------------------------------------------------
    # 编排（纯计算）
    # ------------------------------------------------------------------

    def plan(
        self,
        charts: list[CapturedChart],
        mapping: CoverMapping,
        include_overview: bool | None = None,
    ) -> tuple[list[ChartGroup], list[PagePlan], list[CapturedChart]]:
        """
        计算分组与页面编排

        Returns:
            (分组列表, 页面编排, 按页序排列的图表)
        """
        if include_overview is None:
            include_overview = self.pdf_config.include_overview

        grouped = group_charts(charts)
        keys = sorted(grouped, key=lambda k: group_sort_key(k, mapping.cover_order))
        document_cover = mapping.document_cover_image

        pages: list[PagePlan] = [
            PagePlan(page_number=1, kind=PageKind.DOCUMENT_COVER, title=self.pdf_config.title,
                     image_path=document_cover)
        ]
        if include_overview:
            pages.append(PagePlan(page_number=2, kind=PageKind.OVERVIEW, title="Company Overview"))

        groups: list[ChartGroup] = []
        ordered: list[CapturedChart] = []
        for position, key in enumerate(keys):
            image = mapping.image_for(key) if key != NO_COVER else None
            render_cover = key != NO_COVER
            if position == 0 and render_cover and image is not None and image == document_cover:
                logger.info(f"首个分组 {key} 封面与文档封面相同，跳过分组封面")
                render_cover = False

            members = grouped[key]
            groups.append(ChartGroup(
                key=key,
                chart_ids=[c.chart_id for c in members],
                cover_image=image,
                render_cover=render_cover,
            ))
            if render_cover:
                pages.append(PagePlan(
                    page_number=len(pages) + 1, kind=PageKind.SECTION_COVER,
                    group_key=key, title=key, image_path=image,
                ))
            for captured in members:
                pages.append(PagePlan(
                    page_number=len(pages) + 1, kind=PageKind.CHART,
                    group_key=key, chart_id=captured.chart_id, title=captured.title,
                ))
                ordered.append(captured)

        return groups, pages, ordered

    # ------------------------------------------------------------------
    # 组装
    # ------------------------------------------------------------------

    async def assemble(self, charts: list[CapturedChart], today: datetime | None = None) -> ExportDocument:
        """
        组装PDF

        Raises:
            AssemblyError: 无图表或PDF库异常
        """
        if not charts:
            raise AssemblyError("没有可组装的图表")

        template = await self.loader.load_template()
        mapping = await self.loader.load_cover_mapping()
        fonts = await register_fonts(template, self.assets)

        groups, pages, ordered = self.plan(charts, mapping)
        total = len(pages)
        # 图表页与 ordered 一一对应（按位置配对，重复ID互不覆盖）
        chart_iter = iter(ordered)

        images = await self._load_images(p.image_path for p in pages if p.image_path)
        logo = None
        if template.logo is not None and template.logo.path:
            logo = await self._load_asset(template.logo.path)

        renderer = PageRenderer(template, self.pdf_config, fonts, self.page_fill)
        buf = io.BytesIO()
        try:
            c = Canvas(buf, pagesize=(template.page.width_pt, template.page.height_pt))
            c.setTitle(self.pdf_config.title)
            c.setAuthor(f"{self.pdf_config.company} {self.pdf_config.company_secondary}".strip())

            for page in pages:
                if page.kind == PageKind.DOCUMENT_COVER:
                    updated = latest_updated(ordered, self.pdf_config.date_format, today)
                    renderer.draw_document_cover(c, images.get(page.image_path or ""), updated, logo)
                elif page.kind == PageKind.OVERVIEW:
                    renderer.draw_overview(c, build_overview_divisions(ordered), page.page_number, total)
                elif page.kind == PageKind.SECTION_COVER:
                    renderer.draw_section_cover(c, images.get(page.image_path or ""))
                else:
                    method = renderer.draw_chart_page(
                        c, next(chart_iter), page.page_number, total,
                        prefer_vector=self.pdf_config.prefer_vector,
                    )
                    logger.debug(f"第{page.page_number}页 {page.title}: {method}")
                c.showPage()
            c.save()
        except Exception as e:
            raise AssemblyError(f"PDF组装失败: {e}") from e

        section_covers = sum(1 for g in groups if g.render_cover)
        logger.info(
            f"PDF组装完成: {total}页（分组封面{section_covers}，图表{len(ordered)}）"
        )
        return ExportDocument(
            filename=self.pdf_config.output_filename,
            content=buf.getvalue(),
            page_total=total,
            pages=pages,
            chart_count=len(ordered),
        )

    async def _load_images(self, paths: Iterable[str]) -> dict[str, bytes | None]:
        """按路径加载图片（去重，顺序await）"""
        loaded: dict[str, bytes | None] = {}
        for path in paths:
            if path not in loaded:
                loaded[path] = await self._load_asset(path)
        return loaded

    async def _load_asset(self, path: str) -> bytes | None:
        try:
            return await self.assets.get_bytes(path)
        except AssetLoadError as e:
            logger.warning(f"资源加载失败，使用兜底: {path}: {e}")
            return None
