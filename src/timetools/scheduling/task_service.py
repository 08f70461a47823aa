"""Task service: the surface the command layer talks to."""

from __future__ import annotations

from timetools.scheduling.parser import parse_schedule
from timetools.scheduling.scheduler import TaskScheduler
from timetools.scheduling.store import TaskStore
from timetools.scheduling.types import Task


class TaskService:
    """Creates and manages tasks, keeping the scheduler in step with the store.

    Unknown ids are reported as False/None, never raised. Only
    ``create_from_spec`` raises, with ParseError for bad input.
    """

    def __init__(self, store: TaskStore, scheduler: TaskScheduler) -> None:
        self._store = store
        self._scheduler = scheduler

    # --- CRUD ---

    def create_from_spec(self, commands_clause: str, time_clause: str, days_clause: str) -> str:
        spec = parse_schedule(commands_clause, time_clause, days_clause)
        task = Task.from_spec(spec)
        task_id = self._store.add(task)
        self._scheduler.add_task(task)
        return task_id

    def list_tasks(self) -> list[Task]:
        return self._store.all()

    def get(self, task_id: str) -> Task | None:
        return self._store.get(task_id)

    def exists(self, task_id: str) -> bool:
        return self._store.exists(task_id)

    def search(self, keyword: str | None) -> list[Task]:
        return self._store.search(keyword)

    def page(self, page: int, page_size: int) -> list[Task]:
        return self._store.page(page, page_size)

    def total_pages(self, page_size: int) -> int:
        return self._store.total_pages(page_size)

    def remove(self, task_id: str) -> bool:
        self._scheduler.remove_task(task_id)
        return self._store.remove(task_id)

    # --- Lifecycle ---

    def enable(self, task_id: str) -> bool:
        if not self._store.set_enabled(task_id, True):
            return False
        self._scheduler.reload()
        return True

    def disable(self, task_id: str) -> bool:
        if not self._store.set_enabled(task_id, False):
            return False
        self._scheduler.reload()
        return True

    def reload_schedule(self) -> bool:
        self._scheduler.reload()
        return True

    def run_now(self, task_id: str) -> bool:
        return self._scheduler.run_now(task_id)

    # --- Status ---

    def status(self) -> dict[str, int | bool]:
        return {
            "total": self._store.count(),
            "enabled": self._store.enabled_count(),
            "running": self._scheduler.is_running,
            "interval_timers": self._scheduler.active_interval_count,
        }
