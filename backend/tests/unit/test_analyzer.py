"""
树结构分析器单元测试
"""

from __future__ import annotations

from orgchart_export.layout import TreeStructureAnalyzer
from orgchart_export.models import ChartNode, LayoutParams


def _star(children: int) -> list[ChartNode]:
    nodes = [ChartNode(id="root", parent_id=None)]
    nodes += [ChartNode(id=f"c{i}", parent_id="root") for i in range(children)]
    return nodes


def _chain(length: int) -> list[ChartNode]:
    nodes = [ChartNode(id="n0", parent_id=None)]
    nodes += [ChartNode(id=f"n{i}", parent_id=f"n{i - 1}") for i in range(1, length)]
    return nodes


class TestTreeStructureAnalyzer:
    """树结构分析测试"""

    def setup_method(self):
        self.analyzer = TreeStructureAnalyzer()

    def test_empty_tree(self):
        """空节点列表返回基础参数"""
        result = self.analyzer.analyze([])
        assert result.depth == 1
        assert result.max_breadth == 1
        assert result.total_nodes == 0
        assert result.layout_params == LayoutParams()

    def test_wide_tree_params(self):
        """12个兄弟节点 -> 200/50/140/110"""
        result = self.analyzer.analyze(_star(12))
        assert result.depth == 2
        assert result.max_breadth == 12
        assert result.total_nodes == 13
        params = result.layout_params
        assert params.node_width == 200
        assert params.compact_margin_between == 50
        assert params.compact_margin_pair == 140
        assert params.children_margin == 110

    def test_medium_breadth_params(self):
        """宽度8 -> 220/45/130/105"""
        params = self.analyzer.analyze(_star(8)).layout_params
        assert (params.node_width, params.compact_margin_between,
                params.compact_margin_pair, params.children_margin) == (220, 45, 130, 105)

    def test_small_breadth_keeps_children_margin(self):
        """宽度5 只调整节点宽与间距，层间距不变"""
        params = self.analyzer.analyze(_star(5)).layout_params
        assert params.node_width == 235
        assert params.compact_margin_between == 42
        assert params.compact_margin_pair == 125
        assert params.children_margin == 100

    def test_deep_tree_raises_children_margin(self):
        """深度>6 层间距至少120，深度>4 至少110"""
        assert self.analyzer.analyze(_chain(8)).layout_params.children_margin == 120
        assert self.analyzer.analyze(_chain(5)).layout_params.children_margin == 110
        assert self.analyzer.analyze(_chain(3)).layout_params.children_margin == 100

    def test_depth_rule_never_lowers_margin(self):
        """深度规则只增不减"""
        params = TreeStructureAnalyzer.choose_params(depth=5, max_breadth=12, total_nodes=20)
        assert params.children_margin == 110
        params = TreeStructureAnalyzer.choose_params(depth=7, max_breadth=12, total_nodes=20)
        assert params.children_margin == 120

    def test_density_adds_spacing(self):
        """密度>1.5 时三项间距增加"""
        params = TreeStructureAnalyzer.choose_params(depth=2, max_breadth=2, total_nodes=7)
        assert params.children_margin == 120
        assert params.compact_margin_between == 55
        assert params.compact_margin_pair == 140

    def test_node_width_monotonic(self):
        """深度固定时节点宽随宽度单调不增"""
        widths = [
            TreeStructureAnalyzer.choose_params(3, breadth, breadth).node_width
            for breadth in range(1, 20)
        ]
        assert all(a >= b for a, b in zip(widths, widths[1:]))

    def test_orphan_treated_as_root(self):
        """父节点缺失的节点视为根"""
        nodes = [
            ChartNode(id="a", parent_id=None),
            ChartNode(id="b", parent_id="missing"),
            ChartNode(id="c", parent_id="a"),
        ]
        result = self.analyzer.analyze(nodes)
        assert result.depth == 2
        assert result.max_breadth == 2
        assert result.total_nodes == 3
