"""Task scheduler: heartbeat plus per-task interval timers."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from timetools.infrastructure.config import SchedulerConfig
from timetools.infrastructure.logger import logger
from timetools.infrastructure.timers import TimerFacility
from timetools.scheduling.dispatcher import ExecutionDispatcher
from timetools.scheduling.heartbeat import HeartbeatEvaluator
from timetools.scheduling.interval_timers import IntervalTimerManager
from timetools.scheduling.store import TaskStore
from timetools.scheduling.types import Task


class TaskScheduler:
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
        config = config or SchedulerConfig()
        self.heartbeat = HeartbeatEvaluator(store, dispatcher, timers, config, clock)
        self.intervals = IntervalTimerManager(store, dispatcher, timers, config, clock)
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_interval_count(self) -> int:
        return self.intervals.active_count

    def start(self) -> None:
        if self._running:
            logger.warning("Task scheduler already running")
            return
        self._running = True
        self.heartbeat.start()
        self.intervals.reload()
        logger.info("Task scheduler started")

    def shutdown(self) -> None:
        if not self._running:
            return
        self._running = False
        self.heartbeat.stop()
        self.intervals.stop_all()
        self._dispatcher.cancel_all()
        logger.info("Task scheduler stopped")

    def add_task(self, task: Task) -> None:
        """Register a newly stored task. Clock-time tasks need nothing; the heartbeat sees them."""
        if self._running and task.enabled and task.is_interval_driven:
            self.intervals.start(task)

    def remove_task(self, task_id: str) -> None:
        self.intervals.stop(task_id)

    def reload(self) -> None:
        logger.info("Reloading task schedule")
        if self._running:
            self.intervals.reload()
        else:
            self.intervals.stop_all()

    def run_now(self, task_id: str) -> bool:
        """Dispatch a task immediately, ignoring its schedule."""
        task = self._store.get(task_id)
        if task is None:
            return False
        logger.info("Running task immediately", task_id=task_id)
        return self._dispatcher.dispatch(task)
