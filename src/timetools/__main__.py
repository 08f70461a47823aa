"""Entry point: python -m timetools"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from timetools.infrastructure.logger import logger, setup_logging


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="timetools", description="Time-based command scheduler")
    parser.add_argument("--log-level", type=str, help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--dry-run", action="store_true", help="Log commands instead of running them")
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> None:
    from timetools.app import Orchestrator
    from timetools.console.reader import ConsoleReader
    from timetools.execution.command_sink import LoggingCommandSink

    orchestrator = Orchestrator(sink=LoggingCommandSink() if args.dry_run else None)
    console = ConsoleReader(orchestrator.router)

    # Handle graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await orchestrator.start()

        console_task = asyncio.create_task(console.run())
        console_task.add_done_callback(lambda _: shutdown_event.set())

        # Wait for shutdown signal or end of console input
        await shutdown_event.wait()
        console.stop()
    except KeyboardInterrupt:
        pass
    finally:
        await orchestrator.shutdown()


def run() -> None:
    args = parse_args(sys.argv[1:])
    if args.log_level:
        setup_logging(args.log_level)

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
