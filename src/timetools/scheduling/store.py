"""In-memory task store with write-through persistence."""

from __future__ import annotations

import math
import threading
from datetime import datetime

import yaml

from timetools.infrastructure.logger import logger
from timetools.scheduling.repository import PersistenceError, TaskPersistence
from timetools.scheduling.types import Task


class TaskStore:
    """Owns the canonical copy of every task.

    Reads return snapshots taken under the lock, so callers may iterate
    while timer callbacks or command handlers mutate the store. ``add``,
    ``remove``, ``set_enabled`` and ``clear`` flush to persistence
    immediately; ``update_last_fired`` does not.
    """

    def __init__(self, persistence: TaskPersistence) -> None:
        self._persistence = persistence
        self._tasks: dict[str, Task] = {}
        self._lock = threading.RLock()

    # --- Loading / flushing ---

    def load(self) -> int:
        """Replace the in-memory set with the persisted one. Returns the count loaded."""
        try:
            loaded = self._persistence.load_all()
        except PersistenceError:
            logger.exception("Failed to load tasks, starting empty")
            loaded = []

        with self._lock:
            self._tasks = {task.id: task for task in loaded}
            count = len(self._tasks)
        logger.info("Loaded tasks", count=count)
        return count

    def save_all(self) -> None:
        with self._lock:
            snapshot = list(self._tasks.values())
            try:
                self._persistence.save_all(snapshot)
            except (OSError, yaml.YAMLError, PersistenceError):
                logger.exception("Failed to save tasks", count=len(snapshot))
                return
        logger.debug("Saved tasks", count=len(snapshot))

    # --- CRUD ---

    def add(self, task: Task) -> str:
        if task is None:
            raise ValueError("task is required")
        with self._lock:
            self._tasks[task.id] = task
        self.save_all()
        logger.info("Task added", task_id=task.id)
        return task.id

    def remove(self, task_id: str) -> bool:
        if not task_id or not task_id.strip():
            return False
        with self._lock:
            removed = self._tasks.pop(task_id, None)
        if removed is None:
            return False
        self.save_all()
        logger.info("Task removed", task_id=task_id)
        return True

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            return self._tasks.get(task_id)

    def exists(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    def all(self) -> list[Task]:
        with self._lock:
            return list(self._tasks.values())

    def enabled(self) -> list[Task]:
        with self._lock:
            return [task for task in self._tasks.values() if task.enabled]

    def set_enabled(self, task_id: str, enabled: bool) -> bool:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return False
            task.enabled = enabled
        self.save_all()
        logger.info("Task enabled" if enabled else "Task disabled", task_id=task_id)
        return True

    def update_last_fired(self, task_id: str, fired_at: datetime) -> None:
        # Durable only on the next flush.
        with self._lock:
            task = self._tasks.get(task_id)
            if task is not None:
                task.last_execution_time = fired_at

    def clear(self) -> None:
        with self._lock:
            self._tasks.clear()
        self.save_all()
        logger.info("All tasks cleared")

    # --- Counting / browsing ---

    def count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def enabled_count(self) -> int:
        with self._lock:
            return sum(1 for task in self._tasks.values() if task.enabled)

    def page(self, page: int, page_size: int) -> list[Task]:
        """Return one 0-based page of tasks in insertion order."""
        if page < 0 or page_size <= 0:
            return []
        tasks = self.all()
        start = page * page_size
        return tasks[start : start + page_size]

    def total_pages(self, page_size: int) -> int:
        if page_size <= 0:
            return 0
        return math.ceil(self.count() / page_size)

    def search(self, keyword: str | None) -> list[Task]:
        """Case-insensitive substring match over task id and commands."""
        tasks = self.all()
        if not keyword or not keyword.strip():
            return tasks
        needle = keyword.lower()
        return [
            task
            for task in tasks
            if needle in task.id.lower() or any(needle in command.lower() for command in task.commands)
        ]
