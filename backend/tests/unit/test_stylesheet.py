"""
样式表解析与节点样式提取单元测试
"""

from __future__ import annotations

from orgchart_export.render import extract_node_styles, parse_stylesheet, resolve_variables

EDITOR_CSS = """
/* editor */
@import url("fonts.css");
body { margin: 0; }
.toolbar { display: flex; gap: 8px; }
.org-chart-node { fill: #ffffff; stroke: #e2e8f0; stroke-width: 2; }
.node-header { fill: #0085f2; }
.person-name { font-weight: 700; font-size: 12.5px; text-anchor: middle; }
.role-title, .sidebar h2 { text-transform: uppercase; font-size: 11px; }
@media print {
    .toolbar { display: none; }
    .org-chart-node { stroke-width: 1; }
}
"""


class TestParseStylesheet:
    """样式表解析测试"""

    def test_parse_rules(self):
        sheet = parse_stylesheet(EDITOR_CSS)
        preludes = [r.prelude for r in sheet.rules]
        assert preludes[0] == "body"
        assert ".org-chart-node" in preludes
        assert "@media print" in preludes

    def test_comments_removed(self):
        sheet = parse_stylesheet("/* .org-chart-node { x: y } */ .a { color: red; }")
        assert len(sheet) == 1
        assert sheet.rules[0].prelude == ".a"

    def test_nested_at_rule(self):
        media = [r for r in parse_stylesheet(EDITOR_CSS).rules if r.prelude.startswith("@media")][0]
        assert media.is_block_at_rule
        assert [c.prelude for c in media.children] == [".toolbar", ".org-chart-node"]

    def test_selector_list(self):
        rule = [r for r in parse_stylesheet(EDITOR_CSS).rules if r.prelude.startswith(".role-title")][0]
        assert rule.selectors == [".role-title", ".sidebar h2"]


class TestExtractNodeStyles:
    """节点样式提取测试"""

    def test_extract_keeps_allowed_prefixes(self):
        """只保留白名单前缀的规则（@media 保留命中的子规则）"""
        extracted = extract_node_styles(EDITOR_CSS)
        assert ".org-chart-node" in extracted
        assert ".node-header" in extracted
        assert ".person-name" in extracted
        assert ".role-title" in extracted
        assert "body" not in extracted
        assert "display: flex" not in extracted
        assert "@media print" in extracted
        assert "display: none" not in extracted

    def test_extract_falls_back_when_small(self):
        """提取结果<100字符时返回整份样式表"""
        css = "body { margin: 0; }\n.node-x { a: b; }\n.toolbar { display: flex; }"
        assert extract_node_styles(css) == css

    def test_extract_empty_css(self):
        assert extract_node_styles("") == ""


class TestResolveVariables:
    """CSS变量解析测试"""

    def test_known_variable(self):
        css = ".a { fill: var(--primary-500); }"
        assert resolve_variables(css, {"--primary-500": "#0085f2"}) == ".a { fill: #0085f2; }"

    def test_resolve_variables_with_fallback(self):
        css = ".a { fill: var(--missing, #123456); }"
        assert resolve_variables(css, {}) == ".a { fill: #123456; }"

    def test_unknown_variable_kept(self):
        css = ".a { fill: var(--missing); }"
        assert resolve_variables(css, {}) == css
