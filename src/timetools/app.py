"""Orchestrator: composes the services and owns the application lifecycle."""

from __future__ import annotations

import asyncio
from pathlib import Path

from timetools.commands.dispatcher import CommandRouter
from timetools.commands.handlers import default_handlers
from timetools.commands.session import ConfirmationSessions
from timetools.execution.command_sink import CommandSink, LoggingCommandSink, ShellCommandSink
from timetools.infrastructure.config import (
    COMMAND_TIMEOUT,
    SHELL_SINK_ENABLED,
    TASKS_FILE,
    BuildInfo,
    SchedulerConfig,
    load_build_info,
)
from timetools.infrastructure.logger import logger
from timetools.infrastructure.timers import AsyncioTimerFacility, TimerFacility
from timetools.scheduling.dispatcher import ExecutionDispatcher
from timetools.scheduling.repository import TaskFileRepository
from timetools.scheduling.scheduler import TaskScheduler
from timetools.scheduling.store import TaskStore
from timetools.scheduling.task_service import TaskService

# Upper bound on waiting for in-flight commands during shutdown.
DRAIN_TIMEOUT = 10.0


class Orchestrator:
    """Composes all services and manages the application lifecycle."""

    def __init__(
        self,
        tasks_file: Path = TASKS_FILE,
        sink: CommandSink | None = None,
        timers: TimerFacility | None = None,
        config: SchedulerConfig | None = None,
        build_info: BuildInfo | None = None,
    ) -> None:
        self._config = config or SchedulerConfig()
        self._build_info = build_info or load_build_info()
        self.store = TaskStore(TaskFileRepository(tasks_file))
        self._timers = timers or AsyncioTimerFacility()
        sink = sink or (ShellCommandSink(COMMAND_TIMEOUT) if SHELL_SINK_ENABLED else LoggingCommandSink())
        self.dispatcher = ExecutionDispatcher(sink, self._timers, self.store, self._config)
        self.scheduler = TaskScheduler(self.store, self.dispatcher, self._timers, self._config)
        self.service = TaskService(self.store, self.scheduler)
        self.router = CommandRouter(default_handlers(), self.service, ConfirmationSessions(), self._build_info)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Load tasks and start the scheduler."""
        logger.info("Starting TimeTools...", version=self._build_info.version)
        self.store.load()
        self.scheduler.start()
        self._running = True
        logger.info("TimeTools started successfully")

    async def shutdown(self) -> None:
        """Stop the scheduler, wait briefly for running commands, flush the store."""
        if not self._running:
            return
        logger.info("Shutting down TimeTools...")
        self._running = False

        self.scheduler.shutdown()
        try:
            await asyncio.wait_for(self.dispatcher.drain(), timeout=DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Commands still running at shutdown", timeout=DRAIN_TIMEOUT)
        self.store.save_all()

        logger.info("TimeTools shut down complete")
