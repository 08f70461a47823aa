"""Per-task repeating timers for interval-driven schedules."""

from __future__ import annotations

from datetime import datetime
from functools import partial
from typing import Callable

from timetools.infrastructure.config import SchedulerConfig
from timetools.infrastructure.logger import logger
from timetools.infrastructure.timers import TimerFacility, TimerHandle
from timetools.scheduling.dispatcher import ExecutionDispatcher
from timetools.scheduling.store import TaskStore
from timetools.scheduling.types import Task, TimeRangeWithInterval, Weekday


class IntervalTimerManager:
    """Owns one repeating timer per interval-driven task.

    A timer only remembers its task id. Every firing looks the task up in
    the store again, so enabling, disabling or deleting a task takes effect
    on the next firing without touching the timer.
    """

    def __init__(
        self,
        store: TaskStore,
        dispatcher: ExecutionDispatcher,
        timers: TimerFacility,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._timers = timers
        self._config = config or SchedulerConfig()
        self._clock = clock
        self._handles: dict[str, TimerHandle] = {}

    @property
    def active_count(self) -> int:
        return len(self._handles)

    def is_running(self, task_id: str) -> bool:
        return task_id in self._handles

    def start(self, task: Task) -> bool:
        """(Re)start the timer for a task. Returns False for tasks without an interval."""
        if not task.is_interval_driven or task.interval_ticks <= 0:
            return False

        self.stop(task.id)
        period_ms = self._config.ticks_to_ms(task.interval_ticks)
        self._handles[task.id] = self._timers.schedule_repeating(
            period_ms, partial(self._fire, task.id), name=f"interval:{task.id}"
        )
        logger.debug("Interval timer started", task_id=task.id, period_ms=period_ms)
        return True

    def stop(self, task_id: str) -> None:
        handle = self._handles.pop(task_id, None)
        if handle is not None:
            self._timers.cancel(handle)
            logger.debug("Interval timer stopped", task_id=task_id)

    def stop_all(self) -> None:
        for task_id in list(self._handles):
            self.stop(task_id)

    def reload(self) -> int:
        """Restart timers for exactly the enabled interval-driven tasks."""
        self.stop_all()
        started = sum(1 for task in self._store.enabled() if self.start(task))
        logger.info("Interval timers reloaded", count=started)
        return started

    def should_fire(self, task: Task | None, now: datetime) -> bool:
        if task is None or not task.enabled:
            return False
        if not task.runs_on(Weekday.from_date(now.date())):
            return False
        if isinstance(task.schedule, TimeRangeWithInterval):
            return task.schedule.contains(now.time())
        return True

    def _fire(self, task_id: str) -> None:
        try:
            task = self._store.get(task_id)
            if self.should_fire(task, self._clock()):
                self._dispatcher.dispatch(task)
        except Exception:
            logger.exception("Interval task firing failed", task_id=task_id)
