from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

import pytest

from timetools.commands.dispatcher import CommandRouter
from timetools.commands.handlers import default_handlers
from timetools.commands.session import ConfirmationSessions
from timetools.execution.command_sink import CommandOutcome
from timetools.infrastructure.config import BuildInfo, SchedulerConfig
from timetools.scheduling.dispatcher import ExecutionDispatcher
from timetools.scheduling.parser import parse_schedule
from timetools.scheduling.repository import PersistenceError
from timetools.scheduling.scheduler import TaskScheduler
from timetools.scheduling.store import TaskStore
from timetools.scheduling.task_service import TaskService
from timetools.scheduling.types import Task

# Monday 2024-01-01 09:00:30
MONDAY_MORNING = datetime(2024, 1, 1, 9, 0, 30)


class ManualTimer:
    def __init__(self, seq: int, due_ms: int, callback, period_ms: int | None, name: str) -> None:
        self.seq = seq
        self.due_ms = due_ms
        self.callback = callback
        self.period_ms = period_ms
        self.name = name
        self.done = False
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualTimers:
    """Timer facility driven by explicit ``advance`` calls instead of the event loop."""

    def __init__(self) -> None:
        self.now_ms = 0
        self.timers: list[ManualTimer] = []
        self._seq = 0

    def schedule_once(self, delay_ms: int, callback, name: str = "") -> ManualTimer:
        return self._add(self.now_ms + max(0, delay_ms), callback, None, name)

    def schedule_repeating(self, period_ms: int, callback, name: str = "") -> ManualTimer:
        if period_ms <= 0:
            raise ValueError(f"Repeating timer period must be positive: {period_ms}")
        return self._add(self.now_ms + period_ms, callback, period_ms, name)

    def cancel(self, handle: ManualTimer) -> None:
        handle.cancel()

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.done]

    def named(self, prefix: str) -> list[ManualTimer]:
        return [t for t in self.pending if t.name.startswith(prefix)]

    def advance(self, ms: int) -> None:
        target = self.now_ms + ms
        while True:
            due = [t for t in self.pending if t.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due_ms, t.seq))
            self.now_ms = timer.due_ms
            if timer.period_ms is None:
                timer.done = True
            else:
                timer.due_ms += timer.period_ms
            timer.callback()
        self.now_ms = target

    def _add(self, due_ms: int, callback, period_ms: int | None, name: str) -> ManualTimer:
        self._seq += 1
        timer = ManualTimer(self._seq, due_ms, callback, period_ms, name)
        self.timers.append(timer)
        return timer


class RecordingSink:
    """Records each command synchronously, stamped with the manual timer time."""

    def __init__(self, timers: ManualTimers | None = None, success: bool = True) -> None:
        self._timers = timers
        self.success = success
        self.calls: list[tuple[int, str]] = []

    @property
    def commands(self) -> list[str]:
        return [command for _, command in self.calls]

    def execute(self, command_text: str):
        self.calls.append((self._timers.now_ms if self._timers else 0, command_text))
        return self._outcome()

    async def _outcome(self) -> CommandOutcome:
        if self.success:
            return CommandOutcome(success=True)
        return CommandOutcome(success=False, cause="rejected")


class MemoryPersistence:
    def __init__(self, tasks: Iterable[Task] = (), fail_load: bool = False) -> None:
        self.saved: list[Task] = list(tasks)
        self.save_count = 0
        self.fail_load = fail_load

    def load_all(self) -> list[Task]:
        if self.fail_load:
            raise PersistenceError("unreadable")
        return [task.model_copy(deep=True) for task in self.saved]

    def save_all(self, tasks: Iterable[Task]) -> None:
        self.saved = [task.model_copy(deep=True) for task in tasks]
        self.save_count += 1


class FakeClock:
    def __init__(self, now: datetime = MONDAY_MORNING) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def sink(timers: ManualTimers) -> RecordingSink:
    return RecordingSink(timers)


@pytest.fixture
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture
def store(persistence: MemoryPersistence) -> TaskStore:
    return TaskStore(persistence)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> SchedulerConfig:
    return SchedulerConfig(heartbeat_interval=60, tick_ms=50)


@pytest.fixture
def dispatcher(sink, timers, store, config, clock) -> ExecutionDispatcher:
    return ExecutionDispatcher(sink, timers, store, config, clock)


@pytest.fixture
def scheduler(store, dispatcher, timers, config, clock) -> TaskScheduler:
    return TaskScheduler(store, dispatcher, timers, config, clock)


@pytest.fixture
def service(store, scheduler) -> TaskService:
    return TaskService(store, scheduler)


@pytest.fixture
def build_info() -> BuildInfo:
    return BuildInfo(version="1.2.3", python_version="3.12.0", platform="Linux 6.1")


@pytest.fixture
def router(service, build_info) -> CommandRouter:
    return CommandRouter(default_handlers(), service, ConfirmationSessions(), build_info)


@pytest.fixture
def make_task():
    """Build a task from the three DSL clauses, with optional field overrides."""

    def factory(commands: str = "{/say hi}", time_clause: str = "09:00", days: str = "Eve", **overrides) -> Task:
        task = Task.from_spec(parse_schedule(commands, time_clause, days))
        return task.model_copy(update=overrides) if overrides else task

    return factory
