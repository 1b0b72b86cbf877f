"""
离屏渲染器 - 每个图表一个隐藏画布，渲染、等待稳定、测量并捕获快照

职责：
1. 根据树结构分析结果确定画布尺寸（基础尺寸起，超出则放大，硬上限封顶）
2. 驱动图表引擎渲染，逐帧轮询直至稳定（按节点数分级超时）
3. 稳定后 fit() 居中，等待固定沉淀时间再捕获
4. 测量内容边界 -> 计算缩放 -> 按质量倍率捕获栅格 -> 压缩/预览/矢量序列化
5. 画布与注入样式在成功/失败路径上都被释放（异步上下文管理器）

依赖：
- layout: 树结构分析/图表引擎/边界测量/缩放拟合
- Pillow: 读取捕获图像尺寸

测试要点：
- test_surface_size_clamped: 超大树画布封顶 4500x3500
- test_render_timeout_steps: 分级超时
- test_surface_released_on_failure: 渲染异常时画布仍被释放
"""

from __future__ import annotations

import io
import logging
import math
from typing import TYPE_CHECKING, Callable
from xml.etree.ElementTree import Element, SubElement

from PIL import Image

from ..config.runtime_config import RenderConfig, RuntimeConfig, SurfaceConfig
from ..interfaces import IChartEngine, RenderError
from ..layout import ContentBoundsMeasurer, OrgChartEngine, ScaleFitCalculator, TreeStructureAnalyzer
from ..models import ChartSnapshot, RasterImage
from .imaging import ImagePostProcessor
from .stability import AsyncioFrameScheduler, FrameScheduler, wait_for_stable

if TYPE_CHECKING:
    from ..config.runtime_config import QualityPreset
    from ..models import ChartDocument, ContentBounds, TreeAnalysis

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
INJECTED_STYLE_ID = "export-injected-styles"


def compute_surface_size(
    analysis: TreeAnalysis,
    cfg: SurfaceConfig,
    base: tuple[int, int] | None = None,
) -> tuple[int, int]:
    """画布尺寸：需求超出基础尺寸时放大，受硬上限约束"""
    base_w, base_h = base or (cfg.base_width, cfg.base_height)
    params = analysis.layout_params
    needed_w = analysis.max_breadth * (params.node_width + params.compact_margin_between) + cfg.width_padding
    needed_h = analysis.depth * (cfg.avg_node_height + params.children_margin) + cfg.height_padding

    width = min(max(base_w, needed_w), cfg.max_width)
    height = min(max(base_h, needed_h), cfg.max_height)
    return int(width), int(height)


def render_timeout_ms(node_count: int, cfg: RenderConfig | None = None) -> int:
    """按节点数分级的渲染超时"""
    cfg = cfg or RenderConfig()
    for limit, timeout in cfg.timeout_steps:
        if node_count < limit:
            return timeout
    return cfg.timeout_max_ms


class RenderSurface:
    """离屏画布（async with 作用域内有效，退出时必定释放）"""

    def __init__(
        self,
        width: int,
        height: int,
        engine: IChartEngine,
        css: str | None = None,
        registry: set[RenderSurface] | None = None,
    ) -> None:
        self.width = width
        self.height = height
        self.engine = engine
        self.css = css
        self.registry = registry
        self.root: Element | None = None

    @property
    def attached(self) -> bool:
        return self.root is not None

    async def __aenter__(self) -> RenderSurface:
        self.root = Element("svg", {
            "xmlns": SVG_NS,
            "width": str(self.width),
            "height": str(self.height),
            "viewBox": f"0 0 {self.width} {self.height}",
        })
        if self.css:
            style = SubElement(self.root, "style", {"id": INJECTED_STYLE_ID})
            style.text = self.css
        if self.registry is not None:
            self.registry.add(self)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            self.engine.clear()
        except Exception as e:
            logger.warning(f"图表引擎清理失败: {e}")
        finally:
            if self.root is not None:
                self.root.clear()
            self.root = None
            if self.registry is not None:
                self.registry.discard(self)
        return False


class OffscreenRenderer:
    """离屏渲染器"""

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        engine_factory: Callable[[], IChartEngine] = OrgChartEngine,
        scheduler: FrameScheduler | None = None,
        analyzer: TreeStructureAnalyzer | None = None,
        measurer: ContentBoundsMeasurer | None = None,
        fitter: ScaleFitCalculator | None = None,
        post: ImagePostProcessor | None = None,
    ) -> None:
        self.config = config or RuntimeConfig()
        self.engine_factory = engine_factory
        self.scheduler = scheduler or AsyncioFrameScheduler(self.config.render.frame_interval_ms)
        self.analyzer = analyzer or TreeStructureAnalyzer()
        fit_cfg = self.config.fit
        self.measurer = measurer or ContentBoundsMeasurer(
            padding=fit_cfg.content_padding,
            fallback_size=(fit_cfg.fallback_width, fit_cfg.fallback_height),
        )
        self.fitter = fitter or ScaleFitCalculator(fill=fit_cfg.snapshot_fill)
        self.post = post or ImagePostProcessor(
            preview_width=self.config.quality.preview_width_px,
            preview_quality=self.config.quality.preview_quality,
        )
        self.active_surfaces: set[RenderSurface] = set()

    async def capture(
        self,
        chart: ChartDocument,
        preset: QualityPreset,
        stylesheet_css: str | None = None,
        base_size: tuple[int, int] | None = None,
    ) -> ChartSnapshot:
        """
        渲染并捕获单个图表

        Raises:
            RenderError: 引擎异常或渲染超时（RenderTimeoutError）
        """
        try:
            analysis = self.analyzer.analyze(chart.nodes)
            width, height = compute_surface_size(analysis, self.config.surface, base_size)
            timeout = render_timeout_ms(len(chart.nodes), self.config.render)
            logger.debug(
                f"渲染图表 {chart.name}: 节点={analysis.total_nodes} 深度={analysis.depth} "
                f"宽度={analysis.max_breadth} 画布={width}x{height} 超时={timeout}ms"
            )

            engine = self.engine_factory()
            async with RenderSurface(width, height, engine, stylesheet_css, self.active_surfaces) as surface:
                engine.render(chart.nodes, analysis.layout_params, chart.layout.value, surface.root)
                await wait_for_stable(
                    engine.node_count,
                    timeout,
                    self.scheduler,
                    stable_frames=self.config.render.stable_frames,
                    is_attached=lambda: surface.attached,
                )
                engine.fit()
                await self.scheduler.sleep(self.config.render.settle_delay_ms)

                bounds = self.measurer.measure(surface.root)
                scale = self.fitter.fit(bounds, width, height)
                pixel_scale = self._raster_scale(bounds, preset.scale)
                raw = self._capture_raster(engine, bounds, pixel_scale)

                primary = self.post.compress(raw, preset.compression)
                preview = self.post.make_preview(primary)
                svg = self.post.serialize_svg(surface.root, stylesheet_css)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"图表渲染失败: {chart.name}: {e}") from e

        return ChartSnapshot(primary=primary, preview=preview, svg=svg, bounds=bounds, scale=scale)

    def _raster_scale(self, bounds: ContentBounds, scale: float) -> float:
        """像素预算约束下的捕获倍率"""
        budget = self.config.quality.max_raster_pixels
        area = bounds.width * bounds.height
        if area <= 0 or area * scale * scale <= budget:
            return scale
        reduced = math.sqrt(budget / area)
        logger.warning(f"捕获像素超出预算，倍率 {scale:.2f} -> {reduced:.2f}")
        return reduced

    @staticmethod
    def _capture_raster(engine: IChartEngine, bounds: ContentBounds, scale: float) -> RasterImage:
        png = engine.capture_png(bounds.as_region(), scale)
        with Image.open(io.BytesIO(png)) as im:
            width, height = im.size
        return RasterImage(data=png, format="PNG", width=width, height=height)
