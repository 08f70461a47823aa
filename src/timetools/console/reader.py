"""Stdin operator console."""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import Callable, TextIO

from timetools.commands.dispatcher import CommandRouter
from timetools.infrastructure.logger import logger

CONSOLE_CALLER = "console"


class ConsoleReader:
    """Reads operator commands one per line and prints each reply.

    Lines are read on a daemon thread and handed to the event loop, so a
    blocked read never holds up timers or shutdown. EOF stops the reader.
    """

    def __init__(
        self,
        router: CommandRouter,
        stream: TextIO | None = None,
        write: Callable[[str], None] | None = None,
        caller: str = CONSOLE_CALLER,
    ) -> None:
        self._router = router
        self._stream = stream or sys.stdin
        self._write = write or print
        self._caller = caller
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[str | None] = asyncio.Queue()

        def pump() -> None:
            try:
                for raw in iter(self._stream.readline, ""):
                    loop.call_soon_threadsafe(lines.put_nowait, raw)
                loop.call_soon_threadsafe(lines.put_nowait, None)
            except RuntimeError:
                # Event loop already closed
                return

        threading.Thread(target=pump, name="console-reader", daemon=True).start()
        logger.info("Console ready", caller=self._caller)

        while not self._stopped:
            line = await lines.get()
            if line is None:
                logger.info("Console input closed")
                break
            await self.handle_line(line)

    async def handle_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        for reply in await self._router.dispatch(line, self._caller):
            self._write(reply)
