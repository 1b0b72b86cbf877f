"""
节点渲染器 - 单个组织节点的尺寸估算、SVG结构与栅格绘制

职责：
- 按角色/人员数量估算节点高度
- 生成节点SVG片段（矢量快照与边界测量共用）
- 在Pillow画布上绘制同一节点（栅格快照）
- 提供节点样式表（矢量快照内嵌）

测试要点：
- test_node_height_rules: 无成员150，否则 max(60+角色*20+人员*22, 100)
- test_node_group_structure: 节点组首个子元素为 rect.org-chart-node
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING
from xml.etree.ElementTree import Element, SubElement

from PIL import ImageFont

if TYPE_CHECKING:
    from PIL import ImageDraw

    from ..models import ChartNode

EMPTY_NODE_HEIGHT = 150
MIN_NODE_HEIGHT = 100
BASE_HEIGHT = 60
ROLE_LINE_HEIGHT = 20
PERSON_LINE_HEIGHT = 22
HEADER_HEIGHT = 26

NODE_STYLE_CSS = """
.org-chart-node {
    fill: #ffffff;
    stroke: #e2e8f0;
    stroke-width: 2;
}

.org-chart-node.multi-person {
    stroke: #e0e0e0;
}

.node-header {
    fill: var(--primary-500);
    stroke: none;
}

.node-header-text {
    fill: #ffffff;
    font-weight: 600;
    font-size: 13px;
    text-anchor: middle;
}

.role-title {
    fill: #666666;
    font-size: 11px;
    font-weight: 500;
    text-transform: uppercase;
    text-anchor: middle;
}

.person-name {
    fill: #000000;
    font-weight: 700;
    font-size: 12.5px;
    text-anchor: middle;
}

.legacy .node-name {
    font-weight: 600;
    font-size: 16px;
    text-anchor: middle;
}

.legacy .node-title {
    fill: #64748b;
    font-size: 14px;
    text-anchor: middle;
}

.legacy .node-department {
    fill: #2563eb;
    font-size: 12px;
    text-anchor: middle;
}

.link {
    fill: none;
    stroke: #94a3b8;
    stroke-width: 1.5;
}
"""

# 部门关键字 -> 节点头颜色
DEPARTMENT_HEADER_COLORS: list[tuple[tuple[str, ...], str]] = [
    (("engineering", "product", "tech", "development"), "#3b82f6"),
    (("sales", "revenue", "business"), "#10b981"),
    (("marketing", "brand"), "#f59e0b"),
    (("operations", "ops"), "#8b5cf6"),
    (("finance", "accounting"), "#06b6d4"),
    (("hr", "people", "human"), "#ec4899"),
]
DEFAULT_HEADER_COLOR = "#0085f2"
LINK_COLOR = "#94a3b8"


def calculate_node_height(node: ChartNode) -> int:
    """估算节点高度"""
    if not node.members:
        return EMPTY_NODE_HEIGHT
    roles = len(node.members)
    people = sum(len(role.entries) for role in node.members)
    return max(BASE_HEIGHT + roles * ROLE_LINE_HEIGHT + people * PERSON_LINE_HEIGHT, MIN_NODE_HEIGHT)


def header_color(department: str) -> str:
    dept = department.lower()
    for keywords, color in DEPARTMENT_HEADER_COLORS:
        if any(k in dept for k in keywords):
            return color
    return DEFAULT_HEADER_COLOR


def node_lines(node: ChartNode) -> list[tuple[str, str]]:
    """节点正文行 [(css类, 文本)]，空姓名跳过"""
    lines: list[tuple[str, str]] = []
    if node.members:
        for role in node.members:
            if role.role_label:
                lines.append(("role-title", role.role_label.upper()))
            for person in role.entries:
                if person.name and person.name.strip():
                    lines.append(("person-name", person.name.strip()))
        return lines

    if node.name:
        lines.append(("node-name", node.name))
    if node.title:
        lines.append(("node-title", node.title))
    if node.department:
        lines.append(("node-department", node.department))
    return lines


def build_node_group(
    node: ChartNode,
    x: float,
    y: float,
    width: float,
    height: float,
) -> Element:
    """生成节点SVG组 <g class="node" transform="translate(x,y)">"""
    group = Element("g", {
        "class": "node",
        "transform": f"translate({_fmt(x)},{_fmt(y)})",
        "data-id": node.id,
    })
    multi = bool(node.members)
    SubElement(group, "rect", {
        "class": "org-chart-node multi-person" if multi else "org-chart-node legacy",
        "x": "0",
        "y": "0",
        "width": _fmt(width),
        "height": _fmt(height),
        "rx": "6",
        "data-department": node.department_label.lower(),
    })

    cursor = 0.0
    if multi:
        SubElement(group, "rect", {
            "class": "node-header",
            "x": "0",
            "y": "0",
            "width": _fmt(width),
            "height": str(HEADER_HEIGHT),
            "style": f"fill: {header_color(node.department_label)}",
        })
        header = SubElement(group, "text", {
            "class": "node-header-text",
            "x": _fmt(width / 2),
            "y": str(HEADER_HEIGHT - 8),
        })
        header.text = node.department_label
        cursor = HEADER_HEIGHT + 12
    else:
        lines = node_lines(node)
        cursor = max(0.0, (height - len(lines) * PERSON_LINE_HEIGHT) / 2)

    for css_class, text in node_lines(node):
        step = ROLE_LINE_HEIGHT if css_class == "role-title" else PERSON_LINE_HEIGHT
        cursor += step
        el = SubElement(group, "text", {
            "class": css_class,
            "x": _fmt(width / 2),
            "y": _fmt(cursor - 6),
        })
        el.text = text
    return group


@lru_cache(maxsize=32)
def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def paint_node(
    draw: ImageDraw.ImageDraw,
    node: ChartNode,
    box: tuple[float, float, float, float],
    scale: float,
) -> None:
    """在栅格画布上绘制节点（box为像素坐标 x, y, w, h）"""
    x, y, w, h = box
    radius = max(1, int(6 * scale))
    draw.rounded_rectangle(
        (x, y, x + w, y + h),
        radius=radius,
        fill="#ffffff",
        outline="#e2e8f0",
        width=max(1, int(2 * scale)),
    )

    cursor = y
    if node.members:
        header_h = HEADER_HEIGHT * scale
        draw.rounded_rectangle(
            (x, y, x + w, y + header_h),
            radius=radius,
            fill=header_color(node.department_label),
        )
        _center_text(draw, node.department_label, x + w / 2, y + header_h / 2, int(13 * scale), "#ffffff")
        cursor = y + header_h + 12 * scale
    else:
        lines = node_lines(node)
        cursor = y + max(0.0, (h - len(lines) * PERSON_LINE_HEIGHT * scale) / 2)

    for css_class, text in node_lines(node):
        step = (ROLE_LINE_HEIGHT if css_class == "role-title" else PERSON_LINE_HEIGHT) * scale
        color = "#666666" if css_class in ("role-title", "node-title") else "#000000"
        size = 11 if css_class == "role-title" else 12
        _center_text(draw, text, x + w / 2, cursor + step / 2, max(1, int(size * scale)), color)
        cursor += step


def _center_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    cx: float,
    cy: float,
    size: int,
    fill: str,
) -> None:
    if not text:
        return
    font = _font(size)
    width = draw.textlength(text, font=font)
    draw.text((cx - width / 2, cy - size / 2), text, fill=fill, font=font)


def _fmt(value: float) -> str:
    """坐标格式化（去掉多余小数）"""
    return f"{value:.2f}".rstrip("0").rstrip(".")
