"""
树结构分析器 - 根据节点树的深度/宽度/密度推导自适应布局参数

分析策略：
1. 父节点缺失或无法解析的节点视为根节点
2. 从所有根节点BFS分层：depth = 最大层号 + 1，max_breadth = 单层最大节点数
3. 按阈值规则依次叠加：宽度规则 -> 深度规则（只增不减）-> 密度规则

测试要点：
- test_empty_tree: 空节点列表返回基础参数
- test_wide_tree_params: 宽度>10 时节点宽200
- test_node_width_monotonic: 深度固定时节点宽随宽度单调不增
"""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Iterable
from typing import Protocol

from ..models import LayoutParams, TreeAnalysis

# (宽度阈值, 节点宽, 兄弟间距, 子树间距, 层间距 or None)
_BREADTH_RULES: list[tuple[int, int, int, int, int | None]] = [
    (10, 200, 50, 140, 110),
    (7, 220, 45, 130, 105),
    (4, 235, 42, 125, None),
]

# (深度阈值, 最小层间距)
_DEPTH_RULES: list[tuple[int, int]] = [
    (6, 120),
    (4, 110),
]

DENSITY_THRESHOLD = 1.5


class _NodeLike(Protocol):
    id: str
    parent_id: str | None


class TreeStructureAnalyzer:
    """树结构分析器"""

    def analyze(self, nodes: Iterable[_NodeLike]) -> TreeAnalysis:
        node_list = list(nodes)
        if not node_list:
            return TreeAnalysis(depth=1, max_breadth=1, total_nodes=0, layout_params=LayoutParams())

        levels = self._assign_levels(node_list)
        per_level = Counter(levels.values())

        depth = (max(per_level) + 1) if per_level else 1
        max_breadth = max(per_level.values()) if per_level else 1
        total = len(node_list)

        return TreeAnalysis(
            depth=depth,
            max_breadth=max_breadth,
            total_nodes=total,
            layout_params=self.choose_params(depth, max_breadth, total),
        )

    @staticmethod
    def _assign_levels(nodes: list[_NodeLike]) -> dict[str, int]:
        """BFS分层（成环或不可达节点不计层）"""
        ids = {n.id for n in nodes}
        children: dict[str, list[str]] = {}
        roots: list[str] = []
        for n in nodes:
            if n.parent_id is None or n.parent_id not in ids or n.parent_id == n.id:
                roots.append(n.id)
            else:
                children.setdefault(n.parent_id, []).append(n.id)

        levels: dict[str, int] = {}
        queue: deque[tuple[str, int]] = deque((r, 0) for r in roots)
        while queue:
            node_id, level = queue.popleft()
            if node_id in levels:
                continue
            levels[node_id] = level
            for child in children.get(node_id, []):
                if child not in levels:
                    queue.append((child, level + 1))
        return levels

    @staticmethod
    def choose_params(depth: int, max_breadth: int, total_nodes: int) -> LayoutParams:
        """按优先级叠加阈值规则"""
        params = LayoutParams()

        for threshold, width, between, pair, margin in _BREADTH_RULES:
            if max_breadth > threshold:
                params.node_width = width
                params.compact_margin_between = between
                params.compact_margin_pair = pair
                if margin is not None:
                    params.children_margin = margin
                break

        for threshold, margin in _DEPTH_RULES:
            if depth > threshold:
                params.children_margin = max(params.children_margin, margin)
                break

        density = total_nodes / (depth * max_breadth) if depth * max_breadth else 0
        if density > DENSITY_THRESHOLD:
            params.children_margin += 20
            params.compact_margin_between += 15
            params.compact_margin_pair += 20

        return params
