"""Execution dispatcher: runs a task's commands under its execution mode."""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime
from functools import partial
from typing import Callable

from timetools.execution.command_sink import CommandOutcome, CommandSink
from timetools.infrastructure.config import MAX_EXECUTION_INTERVAL, MIN_EXECUTION_INTERVAL, SchedulerConfig
from timetools.infrastructure.logger import logger
from timetools.infrastructure.timers import TimerFacility, TimerHandle
from timetools.scheduling.parser import COMMAND_PREFIX
from timetools.scheduling.store import TaskStore
from timetools.scheduling.types import AllStaggered, SequentialPaced, Single, Task


def clamp_execution_interval(ticks: int) -> int:
    return max(MIN_EXECUTION_INTERVAL, min(MAX_EXECUTION_INTERVAL, ticks))


class SequentialRun:
    """One ONE_BY_ONE dispatch in flight.

    Fires the head of ``remaining`` and, while commands are left, arms a
    one-shot timer for ``next_delay_ms`` that fires the next one. Each step is
    scheduled from the previous firing, never up front.
    """

    def __init__(
        self,
        task_id: str,
        commands: list[str],
        next_delay_ms: int,
        timers: TimerFacility,
        execute: Callable[[str, str | None], None],
        on_finish: Callable[[SequentialRun], None],
    ) -> None:
        self.task_id = task_id
        self.remaining: deque[str] = deque(commands)
        self.next_delay_ms = next_delay_ms
        self.total = len(commands)
        self._timers = timers
        self._execute = execute
        self._on_finish = on_finish
        self._handle: TimerHandle | None = None

    @property
    def finished(self) -> bool:
        return not self.remaining

    def start(self) -> None:
        self._step()

    def cancel(self) -> None:
        if self._handle:
            self._timers.cancel(self._handle)
            self._handle = None
        self.remaining.clear()
        self._on_finish(self)

    def _step(self) -> None:
        self._handle = None
        if not self.remaining:
            return

        command = self.remaining.popleft()
        position = self.total - len(self.remaining)
        self._execute(command, self.task_id)
        logger.debug("Sequential command fired", task_id=self.task_id, position=position, total=self.total)

        if self.remaining:
            self._handle = self._timers.schedule_once(self.next_delay_ms, self._step, name=f"sequential:{self.task_id}")
        else:
            self._on_finish(self)


class ExecutionDispatcher:
    """Executes a task's commands through the command sink.

    Sink calls never block the caller: each outcome is awaited in the
    background and only logged. A failing command never stops the others.
    """

    def __init__(
        self,
        sink: CommandSink,
        timers: TimerFacility,
        store: TaskStore,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._sink = sink
        self._timers = timers
        self._store = store
        self._config = config or SchedulerConfig()
        self._clock = clock
        self._in_flight: set[asyncio.Future[CommandOutcome]] = set()
        self._runs: set[SequentialRun] = set()

    @property
    def active_sequences(self) -> int:
        return len(self._runs)

    def dispatch(self, task: Task) -> bool:
        """Fire the task's commands. Returns False when nothing was dispatched."""
        if not task.enabled:
            return False
        if not task.commands:
            logger.warning("Task has no commands", task_id=task.id)
            return False

        execution = task.execution
        if isinstance(execution, Single):
            self.execute_command(task.commands[0], task.id)
        elif isinstance(execution, AllStaggered):
            self._dispatch_staggered(task)
        elif isinstance(execution, SequentialPaced):
            self._dispatch_sequential(task, execution)
        else:
            logger.warning("Unknown execution mode", task_id=task.id, mode=type(execution).__name__)
            return False

        self._store.update_last_fired(task.id, self._clock())
        logger.info("Task dispatched", task_id=task.id, mode=task.execution_mode, commands=len(task.commands))
        return True

    def execute_command(self, command: str, task_id: str | None = None) -> None:
        """Hand one command to the sink without waiting for its outcome."""
        if not command or not command.strip():
            logger.warning("Skipping empty command", task_id=task_id)
            return

        text = command[len(COMMAND_PREFIX):] if command.startswith(COMMAND_PREFIX) else command
        try:
            future = asyncio.ensure_future(self._sink.execute(text))
        except Exception:
            logger.exception("Command sink failed", task_id=task_id, command=text)
            return

        self._in_flight.add(future)
        future.add_done_callback(partial(self._on_outcome, text, task_id))

    def cancel_all(self) -> None:
        """Stop pending sequential steps. Commands already handed to the sink keep running."""
        for run in list(self._runs):
            run.cancel()

    async def drain(self) -> None:
        """Wait for every command already handed to the sink to report back."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def _dispatch_staggered(self, task: Task) -> None:
        for index, command in enumerate(task.commands):
            self._timers.schedule_once(
                self._config.ticks_to_ms(index),
                partial(self.execute_command, command, task.id),
                name=f"staggered:{task.id}:{index}",
            )

    def _dispatch_sequential(self, task: Task, execution: SequentialPaced) -> None:
        delay_ms = self._config.ticks_to_ms(clamp_execution_interval(execution.execution_interval))
        run = SequentialRun(
            task_id=task.id,
            commands=list(task.commands),
            next_delay_ms=delay_ms,
            timers=self._timers,
            execute=self.execute_command,
            on_finish=self._runs.discard,
        )
        self._runs.add(run)
        run.start()

    def _on_outcome(self, command: str, task_id: str | None, future: asyncio.Future[CommandOutcome]) -> None:
        self._in_flight.discard(future)
        if future.cancelled():
            return
        err = future.exception()
        if err is not None:
            logger.error("Command raised", task_id=task_id, command=command, exc_info=err)
            return
        outcome = future.result()
        if outcome.success:
            logger.debug("Command succeeded", task_id=task_id, command=command)
        else:
            logger.warning("Command failed", task_id=task_id, command=command, cause=outcome.cause)
