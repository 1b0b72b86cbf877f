"""
渲染稳定性检测单元测试
"""

from __future__ import annotations

import asyncio

import pytest

from orgchart_export.interfaces import RenderError, RenderTimeoutError
from orgchart_export.render import next_streak, render_timeout_ms, wait_for_stable


def _counter(values: list[int]):
    """按帧返回预设节点数，用完后保持最后一个值"""
    state = {"i": 0}

    def count() -> int:
        i = min(state["i"], len(values) - 1)
        state["i"] += 1
        return values[i]

    return count


class TestNextStreak:
    """连续帧计数测试"""

    def test_increments_when_equal(self):
        assert next_streak(5, 5, 0) == 1
        assert next_streak(5, 5, 1) == 2

    def test_resets_on_change(self):
        assert next_streak(6, 5, 3) == 0

    def test_zero_never_counts(self):
        assert next_streak(0, 0, 4) == 0

    def test_first_frame(self):
        assert next_streak(5, None, 0) == 0


class TestWaitForStable:
    """稳定等待测试"""

    def test_resolves_after_stable_frames(self, fake_scheduler):
        """节点数增长后连续相同 -> 稳定"""
        count = _counter([0, 3, 7, 7, 7, 7])
        result = asyncio.run(wait_for_stable(count, 500, fake_scheduler, stable_frames=2))
        assert result == 7
        # 0, 3, 7(起点), 7(1), 7(2)
        assert fake_scheduler.frames == 5

    def test_timeout_when_never_rendered(self, fake_scheduler):
        """节点数始终为0 -> 超时"""
        with pytest.raises(RenderTimeoutError):
            asyncio.run(wait_for_stable(lambda: 0, 100, fake_scheduler))
        assert fake_scheduler.clock > 100

    def test_timeout_when_count_keeps_changing(self, fake_scheduler):
        values = list(range(1, 200))
        with pytest.raises(RenderTimeoutError):
            asyncio.run(wait_for_stable(_counter(values), 500, fake_scheduler))

    def test_timeout_is_render_error(self):
        assert issubclass(RenderTimeoutError, RenderError)

    def test_detached_surface_fails(self, fake_scheduler):
        """画布被移除 -> RenderError"""
        with pytest.raises(RenderError):
            asyncio.run(wait_for_stable(lambda: 5, 500, fake_scheduler, is_attached=lambda: False))


class TestRenderTimeout:
    """分级超时测试"""

    @pytest.mark.parametrize("nodes,expected", [
        (0, 500), (9, 500), (10, 800), (29, 800), (30, 1200),
        (49, 1200), (50, 1800), (99, 1800), (100, 2500), (1000, 2500),
    ])
    def test_render_timeout_steps(self, nodes, expected):
        assert render_timeout_ms(nodes) == expected
