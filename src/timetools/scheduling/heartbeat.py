"""Heartbeat: the shared once-a-minute sweep for clock-time schedules."""

from __future__ import annotations

from datetime import datetime, time
from typing import Callable

from timetools.infrastructure.config import SchedulerConfig
from timetools.infrastructure.logger import logger
from timetools.infrastructure.timers import TimerFacility, TimerHandle
from timetools.scheduling.dispatcher import ExecutionDispatcher
from timetools.scheduling.store import TaskStore
from timetools.scheduling.types import FixedTime, Task, TimeRange, Weekday

MINUTE_MS = 60_000
# Land just after the minute boundary so the sweep never reads the previous minute.
ALIGN_OFFSET_MS = 1_000


def matches(task: Task, check_time: time, weekday: Weekday) -> bool:
    """Minute-resolution match for FIXED_TIME and TIME_RANGE tasks.

    Interval-driven schedules never match here; the interval timer manager
    fires them.
    """
    if not task.enabled or not task.runs_on(weekday):
        return False
    schedule = task.schedule
    if isinstance(schedule, FixedTime):
        return check_time == schedule.at
    if isinstance(schedule, TimeRange):
        return schedule.contains(check_time)
    return False


class HeartbeatEvaluator:
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
        self._handle: TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        """Arm the heartbeat. Minute-multiple periods are aligned to the next minute boundary."""
        if self._handle is not None:
            return
        period_ms = self._config.heartbeat_ms()
        delay_ms = self._delay_to_boundary(self._clock()) if period_ms % MINUTE_MS == 0 else 0
        self._handle = self._timers.schedule_once(delay_ms, self._begin, name="heartbeat:align")
        logger.info("Heartbeat started", period_ms=period_ms, first_in_ms=delay_ms)

    def stop(self) -> None:
        if self._handle is not None:
            self._timers.cancel(self._handle)
            self._handle = None
            logger.info("Heartbeat stopped")

    def tick(self) -> list[str]:
        return self.evaluate(self._clock())

    def evaluate(self, now: datetime) -> list[str]:
        """Sweep every enabled task once. Returns the ids dispatched."""
        check_time = now.time().replace(second=0, microsecond=0)
        weekday = Weekday.from_date(now.date())
        fired: list[str] = []

        for task in self._store.enabled():
            try:
                if matches(task, check_time, weekday) and self._dispatcher.dispatch(task):
                    fired.append(task.id)
            except Exception:
                logger.exception("Heartbeat evaluation failed", task_id=task.id)

        if fired:
            logger.debug("Heartbeat fired tasks", at=check_time.isoformat(), count=len(fired))
        return fired

    def _begin(self) -> None:
        self._handle = self._timers.schedule_repeating(self._config.heartbeat_ms(), self.tick, name="heartbeat")
        self.tick()

    @staticmethod
    def _delay_to_boundary(now: datetime) -> int:
        into_minute_ms = now.second * 1000 + now.microsecond // 1000
        return (MINUTE_MS - into_minute_ms + ALIGN_OFFSET_MS) % MINUTE_MS
