"""
布局分析与几何模型 - 树结构分析结果、内容边界、缩放信息

均为派生数据，不持久化
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class LayoutParams(BaseModel):
    """自适应布局参数"""
    node_width: int = 250
    children_margin: int = 100
    compact_margin_between: int = 40
    compact_margin_pair: int = 120


class TreeAnalysis(BaseModel):
    """树结构分析结果"""
    depth: int = Field(1, description="BFS层数")
    max_breadth: int = Field(1, description="单层最大节点数")
    total_nodes: int = 0
    layout_params: LayoutParams = Field(default_factory=LayoutParams)


class ContentBounds(BaseModel):
    """渲染内容的紧致边界（画布局部坐标）"""
    x: float
    y: float
    width: float
    height: float
    original_width: float = Field(..., description="画布宽")
    original_height: float = Field(..., description="画布高")
    margin: float = 0
    degraded: bool = Field(False, description="是否为兜底边界")

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_region(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    @classmethod
    def full_surface(
        cls, width: float, height: float, *, degraded: bool = True
    ) -> ContentBounds:
        """整个画布作为边界"""
        return cls(
            x=0,
            y=0,
            width=width,
            height=height,
            original_width=width,
            original_height=height,
            margin=0,
            degraded=degraded,
        )


class ScaleInfo(BaseModel):
    """缩放与居中结果"""
    scale: float
    offset_x: float = 0
    offset_y: float = 0
    final_width: float
    final_height: float
