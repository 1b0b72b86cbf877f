"""
图表引擎 - 进程内的组织架构树布局与绘制

职责：
1. 按布局参数对节点树做分层布局（支持 top/left/right/bottom 四个方向）
2. 在画布SVG根节点下生成 <g class="chart"> 场景（连线+节点组）
3. fit(): 内容居中（只平移，不改变预设间距）
4. capture_png(): 按区域与倍率用Pillow栅格化同一场景

布局规则：
- 同一父节点下相邻叶子间距 compact_margin_between
- 相邻兄弟任一方带子树时间距 compact_margin_pair（不同父节点的子树之间）
- 层间距 children_margin
- 节点 expanded=False 时隐藏其后代（默认全部展开）

测试要点：
- test_render_counts_visible_nodes: 折叠覆盖生效
- test_fit_centers_content: 居中后内容中心与画布中心重合
- test_capture_png_size: 输出像素 = 区域 * 倍率
"""

from __future__ import annotations

import io
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from xml.etree.ElementTree import Element, SubElement

from PIL import Image, ImageDraw

from ..interfaces import IChartEngine, RenderError
from ..models import LayoutDirection
from .node_renderer import LINK_COLOR, build_node_group, calculate_node_height, paint_node

if TYPE_CHECKING:
    from ..models import ChartNode, LayoutParams


@dataclass
class PlacedNode:
    """已布局节点（场景坐标，未含居中平移）"""
    node: ChartNode
    x: float
    y: float
    width: float
    height: float
    level: int = 0
    parent: PlacedNode | None = None
    children: list[PlacedNode] = field(default_factory=list)

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


class OrgChartEngine(IChartEngine):
    """组织架构图引擎"""

    def __init__(self) -> None:
        self._placed: list[PlacedNode] = []
        self._root: Element | None = None
        self._chart: Element | None = None
        self._direction = LayoutDirection.TOP
        self._offset = (0.0, 0.0)

    # ------------------------------------------------------------------
    # 渲染
    # ------------------------------------------------------------------

    def render(
        self,
        nodes: list[ChartNode],
        params: LayoutParams,
        direction: str,
        root: Element,
    ) -> None:
        self.clear()
        try:
            self._direction = LayoutDirection(direction or "top")
        except ValueError as e:
            raise RenderError(f"不支持的布局方向: {direction}") from e

        self._root = root
        self._placed = self._layout(nodes, params)
        self._offset = (0.0, 0.0)

        self._chart = SubElement(root, "g", {"class": "chart", "transform": "translate(0,0)"})
        links = SubElement(self._chart, "g", {"class": "links"})
        for placed in self._placed:
            if placed.parent is not None:
                SubElement(links, "path", {"class": "link", "d": self._link_path(placed.parent, placed)})
        node_layer = SubElement(self._chart, "g", {"class": "nodes"})
        for placed in self._placed:
            node_layer.append(
                build_node_group(placed.node, placed.x, placed.y, placed.width, placed.height)
            )

    def node_count(self) -> int:
        if self._chart is None:
            return 0
        return sum(
            1 for el in self._chart.iter("g") if "node" in (el.get("class") or "").split()
        )

    def fit(self) -> None:
        if self._root is None or self._chart is None or not self._placed:
            return
        min_x, min_y, max_x, max_y = self.extent()
        surface_w = float(self._root.get("width") or 0)
        surface_h = float(self._root.get("height") or 0)
        dx = (surface_w - (max_x - min_x)) / 2 - min_x
        dy = (surface_h - (max_y - min_y)) / 2 - min_y
        self._offset = (dx, dy)
        self._chart.set("transform", f"translate({dx:.2f},{dy:.2f})")

    def extent(self) -> tuple[float, float, float, float]:
        """场景范围 (min_x, min_y, max_x, max_y)，未含居中平移"""
        if not self._placed:
            return 0.0, 0.0, 0.0, 0.0
        return (
            min(p.x for p in self._placed),
            min(p.y for p in self._placed),
            max(p.x + p.width for p in self._placed),
            max(p.y + p.height for p in self._placed),
        )

    def capture_png(
        self,
        region: tuple[float, float, float, float],
        scale: float,
    ) -> bytes:
        rx, ry, rw, rh = region
        width = max(1, math.ceil(rw * scale))
        height = max(1, math.ceil(rh * scale))
        image = Image.new("RGBA", (width, height), (255, 255, 255, 0))
        draw = ImageDraw.Draw(image)

        ox, oy = self._offset

        def to_px(x: float, y: float) -> tuple[float, float]:
            return (x + ox - rx) * scale, (y + oy - ry) * scale

        line_width = max(1, int(1.5 * scale))
        for placed in self._placed:
            if placed.parent is None:
                continue
            points = [to_px(px, py) for px, py in self._link_points(placed.parent, placed)]
            draw.line(points, fill=LINK_COLOR, width=line_width)

        for placed in self._placed:
            px, py = to_px(placed.x, placed.y)
            paint_node(draw, placed.node, (px, py, placed.width * scale, placed.height * scale), scale)

        buf = io.BytesIO()
        image.save(buf, format="PNG")
        return buf.getvalue()

    def clear(self) -> None:
        if self._root is not None and self._chart is not None and self._chart in list(self._root):
            self._root.remove(self._chart)
        self._placed = []
        self._chart = None
        self._root = None
        self._offset = (0.0, 0.0)

    # ------------------------------------------------------------------
    # 布局
    # ------------------------------------------------------------------

    def _layout(self, nodes: list[ChartNode], params: LayoutParams) -> list[PlacedNode]:
        by_id = {n.id: n for n in nodes}
        children: dict[str, list[ChartNode]] = {}
        roots: list[ChartNode] = []
        for n in nodes:
            if n.parent_id is None or n.parent_id not in by_id or n.parent_id == n.id:
                roots.append(n)
            else:
                children.setdefault(n.parent_id, []).append(n)

        horizontal = self._direction in (LayoutDirection.LEFT, LayoutDirection.RIGHT)

        # 先序展开（显式栈，深链不受递归深度限制）
        flat: list[PlacedNode] = []
        trees: list[PlacedNode] = []
        visited: set[str] = set()
        for root in roots:
            stack: list[tuple[ChartNode, PlacedNode | None, int]] = [(root, None, 0)]
            while stack:
                node, parent, level = stack.pop()
                if node.id in visited:
                    continue
                visited.add(node.id)
                placed = PlacedNode(
                    node=node, x=0, y=0,
                    width=params.node_width, height=calculate_node_height(node),
                    level=level, parent=parent,
                )
                flat.append(placed)
                if parent is None:
                    trees.append(placed)
                else:
                    parent.children.append(placed)
                if node.expanded is not False:
                    for child in reversed(children.get(node.id, [])):
                        if child.id not in visited:
                            stack.append((child, placed, level + 1))

        def breadth(p: PlacedNode) -> float:
            return p.height if horizontal else p.width

        def gap(a: PlacedNode, b: PlacedNode) -> float:
            if a.children or b.children:
                return params.compact_margin_pair
            return params.compact_margin_between

        def children_total(p: PlacedNode) -> float:
            total = sum(spans[id(c)] for c in p.children)
            return total + sum(gap(a, b) for a, b in zip(p.children, p.children[1:]))

        # 子树跨度：逆先序即子节点先于父节点
        spans: dict[int, float] = {}
        for p in reversed(flat):
            spans[id(p)] = max(breadth(p), children_total(p)) if p.children else breadth(p)

        # 层深度坐标：纵向布局按各层最大高度累加，横向按节点宽累加
        max_level = max((p.level for p in flat), default=0)
        level_size = [0.0] * (max_level + 1)
        for p in flat:
            lvl = p.level
            level_size[lvl] = max(level_size[lvl], p.width if horizontal else p.height)
        level_pos = [0.0] * (max_level + 1)
        for lvl in range(1, max_level + 1):
            level_pos[lvl] = level_pos[lvl - 1] + level_size[lvl - 1] + params.children_margin
        depth_extent = level_pos[-1] + level_size[-1] if flat else 0.0

        # 自上而下分配各子树起点
        starts: dict[int, float] = {}
        cursor = 0.0
        for i, t in enumerate(trees):
            starts[id(t)] = cursor
            cursor += spans[id(t)]
            if i + 1 < len(trees):
                cursor += params.compact_margin_pair
        for p in flat:
            if not p.children:
                continue
            child_cursor = starts[id(p)] + (spans[id(p)] - children_total(p)) / 2
            for i, child in enumerate(p.children):
                starts[id(child)] = child_cursor
                child_cursor += spans[id(child)]
                if i + 1 < len(p.children):
                    child_cursor += gap(child, p.children[i + 1])

        # 自下而上定位：父节点居中于首末子节点之间
        for p in reversed(flat):
            if p.children:
                first, last = p.children[0], p.children[-1]
                mid = (self._breadth_center(first, horizontal) + self._breadth_center(last, horizontal)) / 2
                b_start = mid - breadth(p) / 2
            else:
                b_start = starts[id(p)] + (spans[id(p)] - breadth(p)) / 2

            d_pos = level_pos[p.level]
            if self._direction == LayoutDirection.TOP:
                p.x, p.y = b_start, d_pos
            elif self._direction == LayoutDirection.BOTTOM:
                p.x, p.y = b_start, depth_extent - d_pos - p.height
            elif self._direction == LayoutDirection.LEFT:
                p.x, p.y = d_pos, b_start
            else:
                p.x, p.y = depth_extent - d_pos - p.width, b_start

        return flat

    @staticmethod
    def _breadth_center(p: PlacedNode, horizontal: bool) -> float:
        return p.y + p.height / 2 if horizontal else p.x + p.width / 2

    def _link_points(self, parent: PlacedNode, child: PlacedNode) -> list[tuple[float, float]]:
        """父子连线折线（肘形）"""
        d = self._direction
        if d == LayoutDirection.TOP:
            start = (parent.x + parent.width / 2, parent.y + parent.height)
            end = (child.x + child.width / 2, child.y)
            mid = (start[1] + end[1]) / 2
            return [start, (start[0], mid), (end[0], mid), end]
        if d == LayoutDirection.BOTTOM:
            start = (parent.x + parent.width / 2, parent.y)
            end = (child.x + child.width / 2, child.y + child.height)
            mid = (start[1] + end[1]) / 2
            return [start, (start[0], mid), (end[0], mid), end]
        if d == LayoutDirection.LEFT:
            start = (parent.x + parent.width, parent.y + parent.height / 2)
            end = (child.x, child.y + child.height / 2)
        else:
            start = (parent.x, parent.y + parent.height / 2)
            end = (child.x + child.width, child.y + child.height / 2)
        mid = (start[0] + end[0]) / 2
        return [start, (mid, start[1]), (mid, end[1]), end]

    def _link_path(self, parent: PlacedNode, child: PlacedNode) -> str:
        points = self._link_points(parent, child)
        head, *rest = points
        return f"M{head[0]:.2f},{head[1]:.2f} " + " ".join(f"L{x:.2f},{y:.2f}" for x, y in rest)
