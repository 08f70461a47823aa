"""Operator command handlers: create, list, delete, enable, disable, reload, info, help, run."""

from __future__ import annotations

from dataclasses import dataclass

from timetools.commands.dispatcher import CommandContext, CommandHandler, CommandHandlerError
from timetools.infrastructure.logger import logger
from timetools.scheduling.parser import ParseError, reconstruct_create_args
from timetools.scheduling.types import Task, Weekday

PAGE_SIZE = 10
COMMAND_PREVIEW_LENGTH = 50

EXAMPLES = [
    "create {/say hello} 14:00 Eve",
    "create {/say test} E Eve,1m",
    "create {/cmd1,/cmd2,Obo,5} 09:00 Mon,Tue",
    "create {/backup run} 09:00-17:00,E Mon,Tue,Wed,Thu,Fri,30m",
]


def _require_id(command: str, args: list[str]) -> str:
    if not args or not args[0].strip():
        raise CommandHandlerError(f"Usage: {command} <task-id>", {"command": command})
    return args[0].strip()


def _not_found(task_id: str) -> CommandHandlerError:
    return CommandHandlerError(f"Task not found: {task_id}", {"task_id": task_id})


def _status(task: Task) -> str:
    return "enabled" if task.enabled else "disabled"


def format_summary(index: int, task: Task) -> str:
    commands = ", ".join(task.commands)
    if len(commands) > COMMAND_PREVIEW_LENGTH:
        commands = commands[: COMMAND_PREVIEW_LENGTH - 3] + "..."
    return f"{index}. {task.id} - {_status(task)} - {commands}"


def format_details(task: Task) -> list[str]:
    lines = [
        f"=== Task {task.id} ===",
        f"Status: {_status(task)}",
        f"Commands: {', '.join(task.commands)}",
        f"Schedule: {task.schedule_type}",
    ]
    if task.start_time is not None:
        lines.append(f"Start time: {task.start_time.strftime('%H:%M')}")
    if task.end_time is not None:
        lines.append(f"End time: {task.end_time.strftime('%H:%M')}")
    if task.every_day:
        lines.append("Days: every day")
    else:
        days = ", ".join(day.value for day in Weekday if day in task.days_of_week)
        lines.append(f"Days: {days or 'none'}")
    lines.append(f"Execution mode: {task.execution_mode}")
    if task.interval_ticks > 0:
        lines.append(f"Interval: {task.interval_ticks} ticks ({task.interval_unit or '?'})")
    if task.execution_mode == "ONE_BY_ONE":
        lines.append(f"Execution interval: {task.execution_interval} ticks")
    if task.last_execution_time is not None:
        lines.append(f"Last run: {task.last_execution_time.isoformat(timespec='seconds')}")
    return lines


# --- CreateHandler ---


@dataclass
class CreatePayload:
    commands_clause: str
    time_clause: str
    days_clause: str


class CreateHandler(CommandHandler):
    command = "create"
    usage = "create {commands} <time> <days> - create a task"

    async def validate(self, args: list[str]) -> CreatePayload:
        rejoined = reconstruct_create_args(args)
        if len(rejoined) < 3:
            raise CommandHandlerError("Usage: create {commands} <time> <days>", {"command": self.command})
        return CreatePayload(*rejoined[:3])

    async def execute(self, payload: CreatePayload, context: CommandContext) -> list[str]:
        try:
            task_id = context.service.create_from_spec(payload.commands_clause, payload.time_clause, payload.days_clause)
        except ParseError as err:
            raise CommandHandlerError(
                f"Failed to create task: {err}", {"time_clause": payload.time_clause, "days_clause": payload.days_clause}
            )
        logger.info("Task created via command", task_id=task_id, caller=context.caller)
        return [f"Task created: {task_id}"]


# --- ListHandler ---


class ListHandler(CommandHandler):
    """``list`` shows page 1, ``list <n>`` page n, ``list <id>`` one task in detail."""

    command = "list"
    usage = "list [page|id] - list tasks or show one task"

    async def validate(self, args: list[str]) -> str | None:
        return args[0].strip() if args and args[0].strip() else None

    async def execute(self, selector: str | None, context: CommandContext) -> list[str]:
        if selector is not None and not selector.isdigit():
            task = context.service.get(selector)
            if task is None:
                raise _not_found(selector)
            return format_details(task)

        total_pages = context.service.total_pages(PAGE_SIZE)
        if total_pages == 0:
            return ["No tasks defined"]

        page = int(selector) if selector else 1
        if not 1 <= page <= total_pages:
            raise CommandHandlerError(f"Page must be between 1 and {total_pages}", {"page": page})

        tasks = context.service.page(page - 1, PAGE_SIZE)
        offset = (page - 1) * PAGE_SIZE
        lines = [f"=== Tasks (page {page}/{total_pages}) ==="]
        lines.extend(format_summary(offset + idx, task) for idx, task in enumerate(tasks, start=1))
        lines.append("Use 'list <id>' for task details")
        return lines


# --- SearchHandler ---


class SearchHandler(CommandHandler):
    command = "search"
    usage = "search <keyword> - find tasks by id or command text"

    async def validate(self, args: list[str]) -> str:
        if not args:
            raise CommandHandlerError("Usage: search <keyword>", {"command": self.command})
        return " ".join(args)

    async def execute(self, keyword: str, context: CommandContext) -> list[str]:
        tasks = context.service.search(keyword)
        if not tasks:
            return [f"No tasks match '{keyword}'"]
        return [format_summary(idx, task) for idx, task in enumerate(tasks, start=1)]


# --- DeleteHandler ---


class DeleteHandler(CommandHandler):
    """Deleting needs the same ``delete <id>`` twice in a row from the same caller."""

    command = "delete"
    usage = "delete <id> - delete a task (repeat to confirm)"

    async def validate(self, args: list[str]) -> str:
        return _require_id(self.command, args)

    async def execute(self, task_id: str, context: CommandContext) -> list[str]:
        if not context.service.exists(task_id):
            context.sessions.clear(context.caller)
            raise _not_found(task_id)

        if not context.sessions.confirm(context.caller, task_id):
            context.sessions.request(context.caller, task_id)
            return [f"Delete task {task_id}? Run the same command again to confirm."]

        if not context.service.remove(task_id):
            raise CommandHandlerError(f"Failed to delete task: {task_id}", {"task_id": task_id})
        logger.info("Task deleted via command", task_id=task_id, caller=context.caller)
        return [f"Task deleted: {task_id}"]


# --- EnableHandler / DisableHandler ---


class EnableHandler(CommandHandler):
    command = "enable"
    usage = "enable <id> - enable a task"

    async def validate(self, args: list[str]) -> str:
        return _require_id(self.command, args)

    async def execute(self, task_id: str, context: CommandContext) -> list[str]:
        if not context.service.enable(task_id):
            raise _not_found(task_id)
        return [f"Task enabled: {task_id}"]


class DisableHandler(CommandHandler):
    command = "disable"
    usage = "disable <id> - disable a task"

    async def validate(self, args: list[str]) -> str:
        return _require_id(self.command, args)

    async def execute(self, task_id: str, context: CommandContext) -> list[str]:
        if not context.service.disable(task_id):
            raise _not_found(task_id)
        return [f"Task disabled: {task_id}"]


# --- RunHandler ---


class RunHandler(CommandHandler):
    command = "run"
    usage = "run <id> - run a task now, ignoring its schedule"

    async def validate(self, args: list[str]) -> str:
        return _require_id(self.command, args)

    async def execute(self, task_id: str, context: CommandContext) -> list[str]:
        task = context.service.get(task_id)
        if task is None:
            raise _not_found(task_id)
        if not context.service.run_now(task_id):
            raise CommandHandlerError(f"Task is disabled: {task_id}", {"task_id": task_id})
        return [f"Task started: {task_id}"]


# --- ReloadHandler ---


class ReloadHandler(CommandHandler):
    command = "reload"
    usage = "reload - rebuild interval timers from the stored tasks"

    async def validate(self, args: list[str]) -> None:
        return None

    async def execute(self, payload: None, context: CommandContext) -> list[str]:
        context.service.reload_schedule()
        return ["Schedule reloaded"]


# --- InfoHandler ---


class InfoHandler(CommandHandler):
    command = "info"
    usage = "info - show version and scheduler status"

    async def validate(self, args: list[str]) -> None:
        return None

    async def execute(self, payload: None, context: CommandContext) -> list[str]:
        info = context.build_info
        status = context.service.status()
        return [
            f"=== {info.name} ===",
            f"Version: {info.full_version()}",
            f"System: {info.system_info()}",
            "",
            "=== Status ===",
            f"Tasks: {status['total']}",
            f"Enabled tasks: {status['enabled']}",
            f"Scheduler: {'running' if status['running'] else 'stopped'}",
            f"Active interval timers: {status['interval_timers']}",
        ]


# --- HelpHandler ---


class HelpHandler(CommandHandler):
    command = "help"
    usage = "help - show this help"

    async def validate(self, args: list[str]) -> None:
        return None

    async def execute(self, payload: None, context: CommandContext) -> list[str]:
        return ["=== Commands ===", *context.usage, "", "Examples:", *EXAMPLES]


def default_handlers() -> list[CommandHandler]:
    return [
        CreateHandler(),
        ListHandler(),
        SearchHandler(),
        DeleteHandler(),
        EnableHandler(),
        DisableHandler(),
        RunHandler(),
        ReloadHandler(),
        InfoHandler(),
        HelpHandler(),
    ]
