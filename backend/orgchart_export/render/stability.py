"""
渲染稳定性检测 - 逐帧轮询节点数量，连续不变即视为渲染完成

- next_streak(): 纯函数，便于脱离渲染器单测
- FrameScheduler: 帧调度抽象（默认 asyncio.sleep 约16ms一帧）
- wait_for_stable(): 超时抛出 RenderTimeoutError
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol

from ..interfaces import RenderError, RenderTimeoutError

DEFAULT_STABLE_FRAMES = 2


def next_streak(observed: int, previous: int | None, streak: int) -> int:
    """节点数非零且与上一帧相同则累加，否则清零"""
    if observed > 0 and observed == previous:
        return streak + 1
    return 0


class FrameScheduler(Protocol):
    """帧调度器协议"""

    def now(self) -> float:
        """当前时间（ms）"""
        ...

    async def next_frame(self) -> None:
        ...

    async def sleep(self, ms: float) -> None:
        ...


class AsyncioFrameScheduler:
    """基于事件循环的帧调度器"""

    def __init__(self, frame_interval_ms: float = 16.0) -> None:
        self.frame_interval_ms = frame_interval_ms

    def now(self) -> float:
        return time.monotonic() * 1000

    async def next_frame(self) -> None:
        await asyncio.sleep(self.frame_interval_ms / 1000)

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(ms / 1000)


async def wait_for_stable(
    count_nodes: Callable[[], int],
    timeout_ms: float,
    scheduler: FrameScheduler,
    stable_frames: int = DEFAULT_STABLE_FRAMES,
    is_attached: Callable[[], bool] | None = None,
) -> int:
    """
    等待渲染稳定

    Returns:
        稳定时的节点数量

    Raises:
        RenderError: 画布在稳定前被移除
        RenderTimeoutError: 超时未稳定
    """
    start = scheduler.now()
    previous: int | None = None
    streak = 0
    while True:
        await scheduler.next_frame()
        if is_attached is not None and not is_attached():
            raise RenderError("渲染画布在完成前被移除")

        observed = count_nodes()
        streak = next_streak(observed, previous, streak)
        previous = observed
        if observed > 0 and streak >= stable_frames:
            return observed

        elapsed = scheduler.now() - start
        if elapsed > timeout_ms:
            raise RenderTimeoutError(
                f"渲染未在 {timeout_ms:.0f}ms 内稳定（节点数={observed}）"
            )
