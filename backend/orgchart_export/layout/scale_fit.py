"""
缩放拟合器 - 将内容边界等比缩放并居中到目标区域

拟合策略：
1. scale = min(tw * fill / bw, th * fill / bh)
2. 若缩放后仍超出目标（未乘fill的尺寸），按 min(tw/bw, th/bh) * 0.95 重算
3. 居中偏移 max(0, (t - scaled) / 2)，不允许为负（避免裁切）
4. 退化边界（宽或高 <= 0）直接返回 scale=1
"""

from __future__ import annotations

import logging

from ..models import ContentBounds, ScaleInfo

logger = logging.getLogger(__name__)

RECOVERY_FACTOR = 0.95


class ScaleFitCalculator:
    """缩放拟合器"""

    def __init__(self, fill: float = 0.95) -> None:
        self.fill = fill

    def fit(
        self,
        bounds: ContentBounds,
        target_width: float,
        target_height: float,
        fill: float | None = None,
    ) -> ScaleInfo:
        """
        计算缩放与居中偏移

        Args:
            bounds: 内容边界
            target_width: 目标区域宽
            target_height: 目标区域高
            fill: 填充比例（缺省使用构造参数）

        Returns:
            ScaleInfo（final_* <= target_*，offset_* >= 0）
        """
        fill = self.fill if fill is None else fill
        bw, bh = bounds.width, bounds.height

        if bw <= 0 or bh <= 0:
            logger.warning(f"内容边界退化({bw}x{bh})，使用 scale=1")
            return ScaleInfo(
                scale=1.0,
                offset_x=0,
                offset_y=0,
                final_width=target_width,
                final_height=target_height,
            )

        scale = min(target_width * fill / bw, target_height * fill / bh)
        if bw * scale > target_width or bh * scale > target_height:
            scale = min(target_width / bw, target_height / bh) * RECOVERY_FACTOR

        final_w = bw * scale
        final_h = bh * scale
        return ScaleInfo(
            scale=scale,
            offset_x=max(0.0, (target_width - final_w) / 2),
            offset_y=max(0.0, (target_height - final_h) / 2),
            final_width=final_w,
            final_height=final_h,
        )
