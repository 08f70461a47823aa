"""YAML task file persistence."""

from __future__ import annotations

from datetime import datetime, time
from pathlib import Path
from typing import Any, Iterable, Protocol

import yaml
from pydantic import ValidationError

from timetools.infrastructure.logger import logger
from timetools.scheduling.types import (
    AllStaggered,
    FixedTime,
    Interval,
    SequentialPaced,
    Single,
    Task,
    TimeRange,
    TimeRangeWithInterval,
    Weekday,
)


class PersistenceError(Exception):
    """The task file as a whole could not be read."""


class TaskPersistence(Protocol):
    """Interface for the collaborator that stores the task set."""

    def load_all(self) -> list[Task]: ...

    def save_all(self, tasks: Iterable[Task]) -> None: ...


def _format_time(value: time | None) -> str | None:
    return value.strftime("%H:%M") if value is not None else None


def _parse_time(value: Any) -> time | None:
    if value is None:
        return None
    return time.fromisoformat(str(value))


def _to_epoch_ms(value: datetime | None) -> int:
    return int(value.timestamp() * 1000) if value else 0


def _from_epoch_ms(value: Any) -> datetime | None:
    ms = int(value or 0)
    return datetime.fromtimestamp(ms / 1000) if ms > 0 else None


def task_to_record(task: Task) -> dict[str, Any]:
    """Flatten a task into the on-disk record shape."""
    return {
        "id": task.id,
        "commands": list(task.commands),
        "scheduleType": task.schedule_type,
        "startTime": _format_time(task.start_time),
        "endTime": _format_time(task.end_time),
        "daysOfWeek": sorted(day.full_name for day in task.days_of_week),
        "everyDay": task.every_day,
        "intervalTicks": task.interval_ticks,
        "intervalUnit": task.interval_unit,
        "executionMode": task.execution_mode,
        "executionInterval": task.execution_interval,
        "enabled": task.enabled,
        "lastExecutionTime": _to_epoch_ms(task.last_execution_time),
    }


def record_to_task(record: dict[str, Any]) -> Task:
    """Rebuild a task from an on-disk record.

    Raises KeyError, TypeError or ValueError (including pydantic's
    ValidationError) when the record is incomplete or inconsistent.
    """
    schedule_type = record["scheduleType"]
    start = _parse_time(record.get("startTime"))
    end = _parse_time(record.get("endTime"))
    ticks = int(record.get("intervalTicks") or 0)
    unit = record.get("intervalUnit")

    if schedule_type == "FIXED_TIME":
        schedule: Any = FixedTime(at=start)
    elif schedule_type == "TIME_RANGE":
        schedule = TimeRange(start=start, end=end)
    elif schedule_type == "INTERVAL":
        schedule = Interval(interval_ticks=ticks, interval_unit=unit)
    elif schedule_type == "TIME_RANGE_WITH_INTERVAL":
        schedule = TimeRangeWithInterval(start=start, end=end, interval_ticks=ticks, interval_unit=unit)
    else:
        raise ValueError(f"Unknown schedule type: {schedule_type}")

    mode = record["executionMode"]
    if mode == "SINGLE":
        execution: Any = Single()
    elif mode == "ALL":
        execution = AllStaggered()
    elif mode == "ONE_BY_ONE":
        execution = SequentialPaced(execution_interval=int(record.get("executionInterval") or 0))
    else:
        raise ValueError(f"Unknown execution mode: {mode}")

    return Task(
        id=record["id"],
        commands=list(record["commands"]),
        schedule=schedule,
        days_of_week={Weekday.from_full_name(day) for day in record.get("daysOfWeek") or []},
        every_day=record.get("everyDay", False),
        execution=execution,
        enabled=record.get("enabled", True),
        last_execution_time=_from_epoch_ms(record.get("lastExecutionTime")),
    )


class TaskFileRepository:
    """Stores every task in a single YAML file, overwritten on each save."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> list[Task]:
        """Load tasks in file order. Invalid records are logged and skipped."""
        if not self._path.exists():
            return []

        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as err:
            raise PersistenceError(f"Failed to read task file {self._path}: {err}") from err

        if not data:
            return []
        if not isinstance(data, dict) or not isinstance(data.get("tasks") or [], list):
            raise PersistenceError(f"Malformed task file {self._path}: expected a 'tasks' list")

        tasks: list[Task] = []
        for record in data.get("tasks") or []:
            try:
                if not isinstance(record, dict):
                    raise TypeError(f"record is {type(record).__name__}, not a mapping")
                tasks.append(record_to_task(record))
            except (KeyError, TypeError, ValueError, ValidationError):
                task_id = record.get("id") if isinstance(record, dict) else None
                logger.exception("Skipping invalid task record", task_id=task_id)
        return tasks

    def save_all(self, tasks: Iterable[Task]) -> None:
        """Atomically replace the task file with the given tasks."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = yaml.safe_dump(
            {"tasks": [task_to_record(task) for task in tasks]},
            sort_keys=False,
            allow_unicode=True,
        )

        # Write to temp file then atomic rename to prevent corruption on crash
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(self._path)
