"""
内容边界测量器 - 计算画布上已绘制节点的紧致包围盒

测量策略：
1. 遍历SVG树，累加祖先与自身的 translate 变换
2. 对每个节点组（class含node）读取首个 rect 的局部盒
3. 累积 min(left)/min(top)/max(right)/max(bottom)，四周外扩固定留白
4. 未找到节点 -> 整个画布；任何异常 -> 整个画布或 2000x1128 兜底（仅告警）
"""

from __future__ import annotations

import logging
import re
from xml.etree.ElementTree import Element

from ..models import ContentBounds

logger = logging.getLogger(__name__)

_TRANSLATE_RE = re.compile(r"translate\(\s*([-\d.eE+]+)(?:[\s,]+([-\d.eE+]+))?\s*\)")

DEFAULT_PADDING = 50.0
FALLBACK_SIZE = (2000.0, 1128.0)


def parse_translate(transform: str | None) -> tuple[float, float]:
    """解析 transform 中的 translate 分量（多个累加）"""
    if not transform:
        return 0.0, 0.0
    dx = dy = 0.0
    for m in _TRANSLATE_RE.finditer(transform):
        dx += float(m.group(1))
        dy += float(m.group(2)) if m.group(2) else 0.0
    return dx, dy


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class ContentBoundsMeasurer:
    """内容边界测量器"""

    def __init__(
        self,
        padding: float = DEFAULT_PADDING,
        fallback_size: tuple[float, float] = FALLBACK_SIZE,
    ) -> None:
        self.padding = padding
        self.fallback_size = fallback_size

    def measure(self, root: Element | None) -> ContentBounds:
        """测量内容边界（不抛出异常）"""
        try:
            return self._measure(root)
        except Exception as e:
            surface = self._surface_size(root)
            if surface is None:
                logger.warning(f"边界测量失败且画布尺寸不可用，使用默认 {self.fallback_size}: {e}")
                return ContentBounds.full_surface(*self.fallback_size)
            logger.warning(f"边界测量失败，使用整个画布: {e}")
            return ContentBounds.full_surface(*surface)

    def _measure(self, root: Element | None) -> ContentBounds:
        if root is None:
            raise ValueError("渲染画布不存在")

        surface = self._surface_size(root)
        if surface is None:
            raise ValueError("画布缺少 width/height")
        surface_w, surface_h = surface

        boxes = list(self._node_boxes(root, 0.0, 0.0))
        if not boxes:
            logger.warning("未找到节点元素，使用整个画布作为边界")
            return ContentBounds.full_surface(surface_w, surface_h)

        min_x = min(b[0] for b in boxes)
        min_y = min(b[1] for b in boxes)
        max_x = max(b[0] + b[2] for b in boxes)
        max_y = max(b[1] + b[3] for b in boxes)

        pad = self.padding
        return ContentBounds(
            x=min_x - pad,
            y=min_y - pad,
            width=(max_x - min_x) + pad * 2,
            height=(max_y - min_y) + pad * 2,
            original_width=surface_w,
            original_height=surface_h,
            margin=pad,
        )

    def _node_boxes(self, el: Element, ox: float, oy: float):
        dx, dy = parse_translate(el.get("transform"))
        ox, oy = ox + dx, oy + dy

        classes = (el.get("class") or "").split()
        if _local_name(el.tag) == "g" and "node" in classes:
            rect = next((c for c in el if _local_name(c.tag) == "rect"), None)
            if rect is not None:
                x = float(rect.get("x") or 0)
                y = float(rect.get("y") or 0)
                w = float(rect.get("width") or 0)
                h = float(rect.get("height") or 0)
                yield ox + x, oy + y, w, h
            return

        for child in el:
            yield from self._node_boxes(child, ox, oy)

    @staticmethod
    def _surface_size(root: Element | None) -> tuple[float, float] | None:
        if root is None:
            return None
        try:
            w = float(root.get("width") or 0)
            h = float(root.get("height") or 0)
        except ValueError:
            return None
        if w <= 0 or h <= 0:
            return None
        return w, h
