"""
PDF绘制引擎 - ReportLab画布上的通用绘制原语

职责：
1. 注册模板字体（加载失败回退 Helvetica）
2. 绘制页脚/图片/占位框/文本
3. 可选矢量路径（svglib 可用时将SVG快照绘制为矢量）
4. PDF页数计算

依赖：
- reportlab: PDF画布
- Pillow: 图像尺寸读取（ImageReader）
- PyPDF2: 页数校验
- svglib: 可选，矢量快照

测试要点：
- test_register_fonts_fallback: 字体缺失时使用 Helvetica
- test_count_pdf_pages: PDF页数计算
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from PyPDF2 import PdfReader
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from ..interfaces import AssetLoadError

if TYPE_CHECKING:
    from reportlab.pdfgen.canvas import Canvas

    from ..config.template_loader import FontSpec, TemplateConfig
    from ..interfaces import IAssetSource
    from ..models import ContentBounds

try:
    from svglib.svglib import svg2rlg
except ImportError:
    svg2rlg = None

logger = logging.getLogger(__name__)

FOOTER_SEPARATOR = "   •   "


@dataclass
class Area:
    """页面区域（左上原点，pt）"""
    x: float
    y: float
    width: float
    height: float


@dataclass
class ResolvedFonts:
    """已注册字体名"""
    regular: str = "Helvetica"
    bold: str = "Helvetica-Bold"
    heading: str = "Helvetica-Bold"


def to_color(value: str | None, default: str = "#000000") -> colors.Color:
    """#RRGGBB -> reportlab颜色（非法值使用默认色）"""
    try:
        return colors.HexColor(value or default)
    except (ValueError, TypeError):
        logger.warning(f"非法颜色值 {value!r}，使用 {default}")
        return colors.HexColor(default)


async def register_fonts(template: TemplateConfig, assets: IAssetSource) -> ResolvedFonts:
    """注册模板字体（任一加载失败则该族回退 Helvetica）"""
    resolved = ResolvedFonts()
    primary = await _register_family(template.fonts.primary, assets)
    if primary:
        resolved.regular, resolved.bold = primary
        resolved.heading = primary[1]
    if template.fonts.heading is not None:
        heading = await _register_family(template.fonts.heading, assets)
        if heading:
            resolved.heading = heading[1]
    return resolved


async def _register_family(spec: FontSpec, assets: IAssetSource) -> tuple[str, str] | None:
    if not spec.files.regular:
        return None
    regular_name = f"{spec.family}-Regular"
    bold_name = f"{spec.family}-Bold"
    registered = pdfmetrics.getRegisteredFontNames()
    if regular_name in registered and bold_name in registered:
        return regular_name, bold_name
    try:
        regular = await assets.get_bytes(spec.files.regular)
        bold = await assets.get_bytes(spec.files.semibold) if spec.files.semibold else regular
        pdfmetrics.registerFont(TTFont(regular_name, io.BytesIO(regular)))
        pdfmetrics.registerFont(TTFont(bold_name, io.BytesIO(bold)))
    except (AssetLoadError, OSError, ValueError) as e:
        logger.warning(f"字体 {spec.family} 加载失败，回退 Helvetica: {e}")
        return None
    return regular_name, bold_name


def image_reader(data: bytes | None) -> ImageReader | None:
    """图片字节 -> ImageReader（无法解码返回None）"""
    if not data:
        return None
    try:
        reader = ImageReader(io.BytesIO(data))
        reader.getSize()
        return reader
    except Exception as e:
        # ImageReader 会把 PIL 的解码异常包装后重新抛出，类型不固定
        logger.warning(f"图片解码失败: {e}")
        return None


def draw_image_fill(c: Canvas, reader: ImageReader, page_w: float, page_h: float) -> None:
    """整页铺满图片"""
    c.drawImage(reader, 0, 0, width=page_w, height=page_h, mask="auto")


def draw_image_fit(
    c: Canvas,
    reader: ImageReader,
    area: Area,
    page_h: float,
    fill: float = 0.98,
) -> tuple[float, float, float, float]:
    """等比缩放居中绘制到区域内，返回实际落点 (x, y, w, h)（左上原点）"""
    iw, ih = reader.getSize()
    scale = min(area.width / iw, area.height / ih) * fill
    w, h = iw * scale, ih * scale
    x = area.x + (area.width - w) / 2
    y = area.y + (area.height - h) / 2
    c.drawImage(reader, x, page_h - y - h, width=w, height=h, mask="auto")
    return x, y, w, h


def vector_available() -> bool:
    return svg2rlg is not None


def draw_svg_fit(
    c: Canvas,
    svg_text: str,
    area: Area,
    page_h: float,
    bounds: ContentBounds | None = None,
    fill: float = 0.98,
) -> bool:
    """矢量绘制SVG快照（裁到内容边界），失败返回False由调用方走栅格路径"""
    if svg2rlg is None or not svg_text:
        return False
    try:
        from reportlab.graphics import renderPDF

        drawing = svg2rlg(io.BytesIO(svg_text.encode("utf-8")))
        if drawing is None:
            return False
        src_x, src_y = 0.0, 0.0
        src_w, src_h = drawing.width, drawing.height
        if bounds is not None and not bounds.is_empty:
            src_x, src_y, src_w, src_h = bounds.x, bounds.y, bounds.width, bounds.height
        scale = min(area.width / src_w, area.height / src_h) * fill
        w, h = src_w * scale, src_h * scale
        x = area.x + (area.width - w) / 2
        y = area.y + (area.height - h) / 2

        c.saveState()
        path = c.beginPath()
        path.rect(x, page_h - y - h, w, h)
        c.clipPath(path, stroke=0, fill=0)
        # svglib 已将SVG坐标翻转为PDF坐标（原点左下）
        drawing.scale(scale, scale)
        renderPDF.draw(
            drawing,
            c,
            x - src_x * scale,
            page_h - y - h - (drawing.height - src_y - src_h) * scale,
        )
        c.restoreState()
    except Exception as e:
        logger.warning(f"矢量绘制失败，改用栅格: {e}")
        return False
    return True


def draw_placeholder(c: Canvas, area: Area, page_h: float, text: str, font: str, size: float) -> None:
    """无可用快照时的占位框"""
    c.setStrokeColor(colors.black)
    c.setLineWidth(0.5)
    c.rect(area.x, page_h - area.y - area.height, area.width, area.height, stroke=1, fill=0)
    c.setFont(font, size)
    c.drawCentredString(area.x + area.width / 2, page_h - area.y - 40, text)


def fill_background(c: Canvas, page_w: float, page_h: float, color: str) -> None:
    c.setFillColor(to_color(color, "#ffffff"))
    c.rect(0, 0, page_w, page_h, stroke=0, fill=1)


def draw_footer(
    c: Canvas,
    template: TemplateConfig,
    fonts: ResolvedFonts,
    page_w: float,
    page_h: float,
    page_number: int,
    total_pages: int,
    classification: str,
    url: str,
) -> str:
    """页脚色带 + “密级 • 网址 • Page n / total”"""
    footer = template.footer
    c.setFillColor(to_color(template.palette.footer, "#0066bd"))
    c.rect(0, 0, page_w, footer.height_pt, stroke=0, fill=1)

    text = FOOTER_SEPARATOR.join([classification, url, f"Page {page_number} / {total_pages}"])
    c.setFillColor(colors.white)
    c.setFont(fonts.regular, footer.text_pt)
    baseline = footer.height_pt / 2 - footer.text_pt / 3
    if footer.alignment == "left":
        c.drawString(template.page.margins_pt.left, baseline, text)
    elif footer.alignment == "right":
        c.drawRightString(page_w - template.page.margins_pt.right, baseline, text)
    else:
        c.drawCentredString(page_w / 2, baseline, text)
    return text


def count_pdf_pages(pdf: bytes | Path) -> int:
    """计算PDF页数"""
    if isinstance(pdf, Path):
        if not pdf.exists():
            raise FileNotFoundError(f"PDF文件不存在: {pdf}")
        reader = PdfReader(str(pdf))
    else:
        reader = PdfReader(io.BytesIO(pdf))
    return len(reader.pages)
