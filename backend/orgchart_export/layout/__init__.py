"""
布局层 - 树结构分析、图表引擎、边界测量与缩放拟合
"""

from .analyzer import TreeStructureAnalyzer
from .bounds import ContentBoundsMeasurer, parse_translate
from .engine import OrgChartEngine
from .node_renderer import NODE_STYLE_CSS, calculate_node_height
from .scale_fit import ScaleFitCalculator

__all__ = [
    "TreeStructureAnalyzer",
    "ContentBoundsMeasurer",
    "parse_translate",
    "OrgChartEngine",
    "NODE_STYLE_CSS",
    "calculate_node_height",
    "ScaleFitCalculator",
]
