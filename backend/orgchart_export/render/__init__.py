"""
渲染层 - 离屏渲染、稳定性检测、图像后处理与样式表
"""

from .imaging import ImagePostProcessor, inject_node_styles
from .offscreen import OffscreenRenderer, RenderSurface, compute_surface_size, render_timeout_ms
from .stability import AsyncioFrameScheduler, FrameScheduler, next_streak, wait_for_stable
from .stylesheet import Stylesheet, extract_node_styles, parse_stylesheet, resolve_variables

__all__ = [
    "ImagePostProcessor",
    "inject_node_styles",
    "OffscreenRenderer",
    "RenderSurface",
    "compute_surface_size",
    "render_timeout_ms",
    "AsyncioFrameScheduler",
    "FrameScheduler",
    "next_streak",
    "wait_for_stable",
    "Stylesheet",
    "extract_node_styles",
    "parse_stylesheet",
    "resolve_variables",
]
