"""
离屏渲染器单元测试
"""

from __future__ import annotations

import asyncio

import pytest

from orgchart_export.interfaces import RenderError, RenderTimeoutError
from orgchart_export.layout import OrgChartEngine
from orgchart_export.models import LayoutParams, TreeAnalysis
from orgchart_export.render import OffscreenRenderer, RenderSurface, compute_surface_size


class FailingFitEngine(OrgChartEngine):
    """fit() 抛异常的引擎（记录清理）"""

    def __init__(self) -> None:
        super().__init__()
        self.cleared = 0

    def fit(self) -> None:
        raise RuntimeError("layout exploded")

    def clear(self) -> None:
        self.cleared += 1
        super().clear()


class NeverRendersEngine(OrgChartEngine):
    def node_count(self) -> int:
        return 0


class TestSurfaceSize:
    """画布尺寸测试"""

    def test_small_tree_uses_base(self, runtime_config):
        analysis = TreeAnalysis(depth=2, max_breadth=3, total_nodes=4)
        assert compute_surface_size(analysis, runtime_config.surface) == (2000, 1128)

    def test_surface_size_clamped(self, runtime_config):
        """超大树画布封顶 4500x3500"""
        analysis = TreeAnalysis(depth=40, max_breadth=30, total_nodes=500,
                                layout_params=LayoutParams(node_width=200))
        assert compute_surface_size(analysis, runtime_config.surface) == (4500, 3500)

    def test_surface_grows_with_breadth(self, runtime_config):
        analysis = TreeAnalysis(depth=2, max_breadth=8, total_nodes=9,
                                layout_params=LayoutParams(node_width=220, compact_margin_between=45))
        width, height = compute_surface_size(analysis, runtime_config.surface)
        assert width == 8 * (220 + 45) + 400
        assert height == 1128

    def test_template_base_size(self, runtime_config):
        analysis = TreeAnalysis(depth=1, max_breadth=1, total_nodes=1)
        assert compute_surface_size(analysis, runtime_config.surface, (2400, 1300)) == (2400, 1300)


class TestOffscreenRenderer:
    """捕获流程测试"""

    def test_capture_snapshot(self, runtime_config, fake_scheduler, sample_chart):
        """完整捕获：JPEG主图 + 预览 + 自包含SVG"""
        renderer = OffscreenRenderer(runtime_config, scheduler=fake_scheduler)
        preset = runtime_config.quality.get_preset("medium")
        snapshot = asyncio.run(renderer.capture(sample_chart, preset, ".org-chart-node { fill: #fff; }"))

        assert snapshot.primary.format == "JPEG"
        assert snapshot.primary.width == pytest.approx(snapshot.bounds.width * preset.scale, abs=1)
        assert snapshot.preview is not None
        assert snapshot.preview.width == 800
        assert snapshot.svg is not None and "org-chart-node" in snapshot.svg
        assert not snapshot.bounds.degraded
        assert snapshot.scale.final_width <= 2000
        assert renderer.active_surfaces == set()
        # fit() 之后等待沉淀
        assert runtime_config.render.settle_delay_ms in fake_scheduler.sleeps

    def test_surface_released_on_failure(self, runtime_config, fake_scheduler, sample_chart):
        """渲染异常时画布仍被释放，异常转换为 RenderError"""
        engine = FailingFitEngine()
        renderer = OffscreenRenderer(runtime_config, engine_factory=lambda: engine, scheduler=fake_scheduler)
        with pytest.raises(RenderError, match="layout exploded"):
            asyncio.run(renderer.capture(sample_chart, runtime_config.quality.get_preset("low")))
        assert engine.cleared >= 1
        assert renderer.active_surfaces == set()

    def test_timeout_releases_surface(self, runtime_config, fake_scheduler, sample_chart):
        renderer = OffscreenRenderer(runtime_config, engine_factory=NeverRendersEngine,
                                     scheduler=fake_scheduler)
        with pytest.raises(RenderTimeoutError):
            asyncio.run(renderer.capture(sample_chart, runtime_config.quality.get_preset("low")))
        assert renderer.active_surfaces == set()
        # 4个节点 -> 500ms 时限
        assert 500 < fake_scheduler.clock <= 500 + 16

    def test_engine_factory_error_wrapped(self, runtime_config, fake_scheduler, sample_chart):
        """引擎创建失败同样包装为 RenderError（交给继续策略）"""

        def broken_factory():
            raise RuntimeError("engine unavailable")

        renderer = OffscreenRenderer(runtime_config, engine_factory=broken_factory, scheduler=fake_scheduler)
        with pytest.raises(RenderError, match="engine unavailable"):
            asyncio.run(renderer.capture(sample_chart, runtime_config.quality.get_preset("low")))
        assert renderer.active_surfaces == set()

    def test_pixel_budget_reduces_scale(self, runtime_config, fake_scheduler, sample_chart):
        runtime_config.quality.max_raster_pixels = 200_000
        renderer = OffscreenRenderer(runtime_config, scheduler=fake_scheduler)
        snapshot = asyncio.run(renderer.capture(sample_chart, runtime_config.quality.get_preset("high")))
        assert snapshot.primary.width * snapshot.primary.height <= 200_000 * 1.02


class TestRenderSurface:
    """画布生命周期测试"""

    def test_context_releases(self):
        registry: set = set()
        engine = OrgChartEngine()

        async def run():
            async with RenderSurface(100, 80, engine, ".a{}", registry) as surface:
                assert surface.attached
                assert surface in registry
                assert surface.root.get("width") == "100"
            return surface

        surface = asyncio.run(run())
        assert not surface.attached
        assert registry == set()
