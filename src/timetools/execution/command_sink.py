"""Command sinks: where dispatched command text is executed."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Protocol

from timetools.infrastructure.config import COMMAND_TIMEOUT
from timetools.infrastructure.logger import logger


@dataclass
class CommandOutcome:
    success: bool
    cause: str | None = None


class CommandSink(Protocol):
    """Interface for command execution. Results arrive asynchronously."""

    def execute(self, command_text: str) -> Awaitable[CommandOutcome]: ...


class LoggingCommandSink:
    """Logs each command instead of running it."""

    async def execute(self, command_text: str) -> CommandOutcome:
        logger.info("Command executed", command=command_text)
        return CommandOutcome(success=True)


class ShellCommandSink:
    """Runs each command through the system shell."""

    def __init__(self, timeout_s: float = COMMAND_TIMEOUT) -> None:
        self._timeout = timeout_s

    async def execute(self, command_text: str) -> CommandOutcome:
        proc = await asyncio.create_subprocess_shell(
            command_text,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Command timeout, killing", command=command_text, timeout_s=self._timeout)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            return CommandOutcome(success=False, cause=f"timed out after {self._timeout}s")

        for line in stdout.decode(errors="replace").splitlines():
            if line.strip():
                logger.debug("Command stdout", command=command_text, line=line)

        if proc.returncode != 0:
            error = stderr.decode(errors="replace").strip()
            return CommandOutcome(success=False, cause=error or f"exit code {proc.returncode}")
        return CommandOutcome(success=True)
