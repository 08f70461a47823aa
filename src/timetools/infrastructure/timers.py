"""Timer facility: one-shot and repeating timers on the asyncio loop."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

from timetools.infrastructure.logger import logger

TimerCallback = Callable[[], Awaitable[None] | None]


class TimerHandle(Protocol):
    """A live timer that can be cancelled."""

    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class TimerFacility(Protocol):
    """Interface for the timer facility consumed by the scheduling engine."""

    def schedule_once(self, delay_ms: int, callback: TimerCallback, name: str = "") -> TimerHandle: ...

    def schedule_repeating(self, period_ms: int, callback: TimerCallback, name: str = "") -> TimerHandle: ...

    def cancel(self, handle: TimerHandle) -> None: ...


class AsyncioTimer:
    """Handle for a timer backed by an asyncio task."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def attach(self, task: asyncio.Task[None]) -> None:
        self._task = task

    def cancel(self) -> None:
        """Cancel the timer. Safe to call more than once."""
        self._cancelled = True
        if self._task:
            self._task.cancel()
            self._task = None


async def _invoke(name: str, callback: TimerCallback) -> None:
    try:
        result = callback()
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            await result
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Timer callback failed", timer=name)


class AsyncioTimerFacility:
    """Timer facility running every timer as a task on the current event loop.

    Callback exceptions are logged and never stop a repeating timer.
    """

    def schedule_once(self, delay_ms: int, callback: TimerCallback, name: str = "") -> AsyncioTimer:
        handle = AsyncioTimer(name or "once")

        async def fire() -> None:
            await asyncio.sleep(max(0, delay_ms) / 1000)
            if not handle.cancelled:
                await _invoke(handle.name, callback)

        handle.attach(asyncio.create_task(fire()))
        return handle

    def schedule_repeating(self, period_ms: int, callback: TimerCallback, name: str = "") -> AsyncioTimer:
        if period_ms <= 0:
            raise ValueError(f"Repeating timer period must be positive: {period_ms}")
        handle = AsyncioTimer(name or "repeating")
        loop = asyncio.get_running_loop()

        async def run() -> None:
            # Fire against absolute deadlines so callback time does not accumulate as drift.
            next_at = loop.time() + period_ms / 1000
            while not handle.cancelled:
                await asyncio.sleep(max(0.0, next_at - loop.time()))
                if handle.cancelled:
                    break
                await _invoke(handle.name, callback)
                next_at += period_ms / 1000

        handle.attach(asyncio.create_task(run()))
        return handle

    def cancel(self, handle: TimerHandle) -> None:
        handle.cancel()
