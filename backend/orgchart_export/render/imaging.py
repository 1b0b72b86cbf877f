"""
图像后处理 - 压缩/预览缩略图/矢量序列化

- compress(): 解码后铺白底重新编码为JPEG（尺寸不变），解码失败原样返回
- make_preview(): 固定宽度等比缩略图，失败返回 None
- serialize_svg(): 克隆SVG并内嵌节点样式（只插入一次），序列化为文本
"""

from __future__ import annotations

import copy
import io
import logging
from xml.etree.ElementTree import Element, tostring

from PIL import Image, UnidentifiedImageError

from ..layout.node_renderer import NODE_STYLE_CSS
from ..models import RasterImage
from .stylesheet import extract_node_styles

logger = logging.getLogger(__name__)

NODE_STYLE_ID = "export-node-styles"


def _jpeg_quality(quality: float) -> int:
    """[0,1] -> Pillow JPEG quality（1-95）"""
    return max(1, min(95, int(round(quality * 100))))


def _flatten_white(img: Image.Image) -> Image.Image:
    """铺白底转为不透明RGB"""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


class ImagePostProcessor:
    """图像后处理器"""

    def __init__(self, preview_width: int = 800, preview_quality: float = 0.85) -> None:
        self.preview_width = preview_width
        self.preview_quality = preview_quality

    def compress(self, image: RasterImage, quality: float) -> RasterImage:
        try:
            with Image.open(io.BytesIO(image.data)) as src:
                src.load()
                flat = _flatten_white(src)
            buf = io.BytesIO()
            flat.save(buf, format="JPEG", quality=_jpeg_quality(quality), optimize=True)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"图像压缩失败，使用原图: {e}")
            return image

        return RasterImage(data=buf.getvalue(), format="JPEG", width=flat.width, height=flat.height)

    def make_preview(self, image: RasterImage, target_width: int | None = None) -> RasterImage | None:
        width = target_width or self.preview_width
        try:
            with Image.open(io.BytesIO(image.data)) as src:
                src.load()
                flat = _flatten_white(src)
            ratio = flat.width / flat.height
            height = max(1, round(width / ratio))
            resized = flat.resize((width, height), Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            resized.save(buf, format="JPEG", quality=_jpeg_quality(self.preview_quality))
        except (UnidentifiedImageError, OSError, ValueError, ZeroDivisionError) as e:
            logger.warning(f"预览图生成失败: {e}")
            return None

        return RasterImage(data=buf.getvalue(), format="JPEG", width=width, height=height)

    @staticmethod
    def serialize_svg(root: Element | None, resolved_css: str | None = None) -> str | None:
        """克隆并序列化SVG（样式自包含）"""
        if root is None:
            return None
        clone = copy.deepcopy(root)
        inject_node_styles(clone, resolved_css)
        return tostring(clone, encoding="unicode")


def inject_node_styles(svg: Element, resolved_css: str | None = None) -> bool:
    """插入节点样式块（已存在则跳过）"""
    for child in svg.iter():
        if child.get("id") == NODE_STYLE_ID:
            return False
    style = Element("style", {"id": NODE_STYLE_ID})
    style.text = extract_node_styles(resolved_css) if resolved_css else NODE_STYLE_CSS
    svg.insert(0, style)
    return True
