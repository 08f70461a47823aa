"""Operator command router and base handler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from timetools.commands.session import ConfirmationSessions
from timetools.infrastructure.config import BuildInfo
from timetools.infrastructure.logger import logger
from timetools.scheduling.task_service import TaskService


class CommandHandlerError(Exception):
    """Error raised by command handlers for expected failures. The message is shown to the caller."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


@dataclass
class CommandContext:
    caller: str
    service: TaskService
    sessions: ConfirmationSessions
    build_info: BuildInfo
    usage: list[str] = field(default_factory=list)


class CommandHandler(ABC):
    """Base class for operator command handlers."""

    usage: str = ""

    @property
    @abstractmethod
    def command(self) -> str: ...

    @abstractmethod
    async def validate(self, args: list[str]) -> Any: ...

    @abstractmethod
    async def execute(self, payload: Any, context: CommandContext) -> list[str]: ...

    async def handle(self, args: list[str], context: CommandContext) -> list[str]:
        validated = await self.validate(args)
        return await self.execute(validated, context)


class CommandRouter:
    """Routes an operator command line to its handler and returns the reply lines."""

    def __init__(
        self,
        handlers: list[CommandHandler],
        service: TaskService,
        sessions: ConfirmationSessions,
        build_info: BuildInfo,
    ) -> None:
        self._handlers: dict[str, CommandHandler] = {h.command: h for h in handlers}
        self._service = service
        self._sessions = sessions
        self._build_info = build_info

    @property
    def commands(self) -> list[str]:
        return list(self._handlers)

    def usage_lines(self) -> list[str]:
        return [h.usage for h in self._handlers.values() if h.usage]

    async def dispatch(self, line: str, caller: str) -> list[str]:
        tokens = line.split()
        name = tokens[0].lower() if tokens else "help"
        handler = self._handlers.get(name)
        if not handler:
            logger.warning("Unknown command", command=name, caller=caller)
            return [f"Unknown command: {name}. Use 'help' to list commands."]

        context = CommandContext(
            caller=caller,
            service=self._service,
            sessions=self._sessions,
            build_info=self._build_info,
            usage=self.usage_lines(),
        )
        try:
            return await handler.handle(tokens[1:], context)
        except CommandHandlerError as err:
            logger.debug(err.args[0], handler=name, caller=caller, **err.details)
            return [err.args[0]]
        except Exception:
            logger.exception("Command failed", command=name, caller=caller)
            return [f"Internal error while running '{name}'"]
