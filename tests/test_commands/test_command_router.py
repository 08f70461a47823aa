"""Tests for the operator command router."""

from typing import Any

import pytest

from timetools.commands.dispatcher import CommandContext, CommandHandler, CommandHandlerError, CommandRouter
from timetools.commands.session import ConfirmationSessions


class MockHandler(CommandHandler):
    def __init__(self, cmd: str):
        self._command = cmd
        self.called_with = None

    @property
    def command(self) -> str:
        return self._command

    async def validate(self, args: list[str]) -> Any:
        return args

    async def execute(self, payload: Any, context: CommandContext) -> list[str]:
        self.called_with = (payload, context)
        return [f"{self._command} ok"]


class ErrorHandler(CommandHandler):
    command = "error_cmd"
    usage = "error_cmd - always fails"

    async def validate(self, args: list[str]) -> Any:
        return args

    async def execute(self, payload: Any, context: CommandContext) -> list[str]:
        raise CommandHandlerError("Test error", {"detail": "test"})


class CrashHandler(CommandHandler):
    command = "crash"

    async def validate(self, args: list[str]) -> Any:
        return args

    async def execute(self, payload: Any, context: CommandContext) -> list[str]:
        raise RuntimeError("unexpected")


@pytest.fixture
def make_router(service, build_info):
    def factory(*handlers: CommandHandler) -> CommandRouter:
        return CommandRouter(list(handlers), service, ConfirmationSessions(), build_info)

    return factory


class TestCommandRouter:
    @pytest.mark.asyncio
    async def test_dispatches_to_correct_handler(self, make_router):
        handler_a = MockHandler("cmd_a")
        handler_b = MockHandler("cmd_b")
        router = make_router(handler_a, handler_b)

        assert await router.dispatch("cmd_a x y", "console") == ["cmd_a ok"]
        assert handler_a.called_with[0] == ["x", "y"]
        assert handler_b.called_with is None

    @pytest.mark.asyncio
    async def test_command_name_case_insensitive(self, make_router):
        handler = MockHandler("list")
        router = make_router(handler)
        await router.dispatch("LIST", "console")
        assert handler.called_with is not None

    @pytest.mark.asyncio
    async def test_unknown_command_replies(self, make_router):
        router = make_router(MockHandler("known"))
        assert await router.dispatch("unknown", "console") == ["Unknown command: unknown. Use 'help' to list commands."]

    @pytest.mark.asyncio
    async def test_empty_line_routes_to_help(self, make_router):
        handler = MockHandler("help")
        router = make_router(handler)
        assert await router.dispatch("   ", "console") == ["help ok"]

    @pytest.mark.asyncio
    async def test_handler_error_becomes_reply(self, make_router):
        router = make_router(ErrorHandler())
        assert await router.dispatch("error_cmd", "console") == ["Test error"]

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_reply(self, make_router):
        router = make_router(CrashHandler())
        assert await router.dispatch("crash", "console") == ["Internal error while running 'crash'"]

    @pytest.mark.asyncio
    async def test_handler_context(self, make_router, service, build_info):
        handler = MockHandler("test")
        router = make_router(handler, ErrorHandler())

        await router.dispatch("test", "operator-1")
        _, context = handler.called_with
        assert context.caller == "operator-1"
        assert context.service is service
        assert context.build_info is build_info
        assert context.usage == ["error_cmd - always fails"]


class TestConfirmationSessions:
    def test_confirm_requires_matching_request(self):
        sessions = ConfirmationSessions()
        assert sessions.confirm("alice", "t1") is False

        sessions.request("alice", "t1")
        assert sessions.pending("alice") == "t1"
        assert sessions.confirm("alice", "t2") is False
        assert sessions.confirm("alice", "t1") is True
        assert sessions.pending("alice") is None

    def test_callers_are_independent(self):
        sessions = ConfirmationSessions()
        sessions.request("alice", "t1")
        assert sessions.confirm("bob", "t1") is False
        assert sessions.pending("alice") == "t1"

    def test_clear(self):
        sessions = ConfirmationSessions()
        sessions.request("alice", "t1")
        sessions.clear("alice")
        sessions.clear("nobody")
        assert sessions.pending("alice") is None
