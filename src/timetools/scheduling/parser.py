"""Schedule DSL parser.

A task is described by three clauses::

    {/say hello,/say world,Obo,5}   commands clause
    09:00-17:00,E                   time clause
    Mon,Tue,30m                     days clause

Each clause has its own small parser. ``parse_schedule`` runs the three and
then cross-checks the schedule type against the interval supplied by the days
clause, producing a validated ``ScheduleSpec``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import time

from pydantic import ValidationError

from timetools.infrastructure.config import MAX_EXECUTION_INTERVAL, MIN_EXECUTION_INTERVAL, TICKS_PER_SECOND
from timetools.scheduling.types import (
    AllStaggered,
    FixedTime,
    Interval,
    ScheduleSpec,
    SequentialPaced,
    Single,
    TimeRange,
    TimeRangeWithInterval,
    Weekday,
)

COMMAND_PREFIX = "/"
SEQUENTIAL_TAG = "Obo"
STAGGERED_TAG = "All"
INTERVAL_TAG = "E"
EVERY_DAY_TAG = "EVE"

TICKS_PER_UNIT: dict[str, int] = {
    "s": TICKS_PER_SECOND,
    "m": TICKS_PER_SECOND * 60,
    "h": TICKS_PER_SECOND * 60 * 60,
}

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_TIME_RANGE_RE = re.compile(r"^(\d{1,2}):(\d{2})-(\d{1,2}):(\d{2})$")
_INTERVAL_RE = re.compile(r"^(\d{1,9})([smh])$")
_NUMBER_RE = re.compile(r"^\d{1,9}$")


class ParseError(ValueError):
    """Malformed or contradictory schedule input."""


@dataclass
class ParsedCommands:
    commands: list[str]
    mode: str  # "single" | "all" | "one_by_one"
    execution_interval: int = 0


@dataclass
class ParsedTime:
    kind: str  # "fixed_time" | "time_range" | "interval" | "time_range_with_interval"
    start: time | None = None
    end: time | None = None


@dataclass
class ParsedDays:
    every_day: bool = False
    days_of_week: set[Weekday] = field(default_factory=set)
    interval_ticks: int = 0
    interval_unit: str | None = None


# --- Commands clause ---


def parse_commands(clause: str) -> ParsedCommands:
    clause = clause.strip()
    if len(clause) < 2 or not clause.startswith("{") or not clause.endswith("}"):
        raise ParseError("Commands must be wrapped in {}")

    commands: list[str] = []
    mode: str | None = None
    execution_interval = 0

    for raw in clause[1:-1].split(","):
        token = raw.strip()
        if not token:
            continue
        if token == SEQUENTIAL_TAG:
            mode = "one_by_one"
        elif token == STAGGERED_TAG:
            mode = "all"
        elif _NUMBER_RE.match(token):
            execution_interval = int(token)
            if not MIN_EXECUTION_INTERVAL <= execution_interval <= MAX_EXECUTION_INTERVAL:
                raise ParseError(
                    f"Execution interval must be between {MIN_EXECUTION_INTERVAL} and "
                    f"{MAX_EXECUTION_INTERVAL} ticks: {token}"
                )
        elif token.startswith(COMMAND_PREFIX) or any(ch.isspace() for ch in token):
            # Stored verbatim; the prefix is stripped at dispatch time.
            commands.append(token)
        else:
            raise ParseError(f"Invalid token in commands: {token}")

    if not commands:
        raise ParseError("At least one command is required")

    if mode is None:
        mode = "all" if len(commands) > 1 else "single"

    return ParsedCommands(commands=commands, mode=mode, execution_interval=execution_interval)


# --- Time clause ---


def _parse_clock(hour: str, minute: str) -> time:
    h, m = int(hour), int(minute)
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ParseError(f"Time out of range: {hour}:{minute}")
    return time(h, m)


def _parse_range(text: str) -> tuple[time, time]:
    match = _TIME_RANGE_RE.match(text)
    if not match:
        raise ParseError(f"Invalid time range, expected HH:MM-HH:MM: {text}")
    start = _parse_clock(match.group(1), match.group(2))
    end = _parse_clock(match.group(3), match.group(4))
    if end <= start:
        raise ParseError(f"End time must be later than start time: {text}")
    return start, end


def parse_time(clause: str) -> ParsedTime:
    clause = clause.strip()

    if clause == INTERVAL_TAG:
        return ParsedTime(kind="interval")

    if "," in clause:
        range_part, _, tail = clause.partition(",")
        if tail != INTERVAL_TAG:
            raise ParseError(f"Invalid time range with interval, expected HH:MM-HH:MM,E: {clause}")
        start, end = _parse_range(range_part)
        return ParsedTime(kind="time_range_with_interval", start=start, end=end)

    if "-" in clause:
        start, end = _parse_range(clause)
        return ParsedTime(kind="time_range", start=start, end=end)

    match = _TIME_RE.match(clause)
    if not match:
        raise ParseError(f"Invalid time, expected HH:MM: {clause}")
    return ParsedTime(kind="fixed_time", start=_parse_clock(match.group(1), match.group(2)))


# --- Days clause ---


def parse_days(clause: str) -> ParsedDays:
    parsed = ParsedDays()

    for raw in clause.split(","):
        token = raw.strip().upper()
        if token == EVERY_DAY_TAG:
            parsed.every_day = True
            continue
        if token in Weekday.__members__:
            parsed.days_of_week.add(Weekday[token])
            continue
        match = _INTERVAL_RE.match(token.lower())
        if not match:
            raise ParseError(f"Invalid day or interval: {raw.strip()}")
        value, unit = int(match.group(1)), match.group(2)
        if value <= 0:
            raise ParseError(f"Interval must be a positive number: {raw.strip()}")
        # A later interval token replaces an earlier one.
        parsed.interval_ticks = value * TICKS_PER_UNIT[unit]
        parsed.interval_unit = unit

    return parsed


# --- Combination ---


def parse_schedule(commands_clause: str, time_clause: str, days_clause: str) -> ScheduleSpec:
    """Parse the three clauses into a validated schedule spec.

    Raises ParseError on any malformed clause or contradictory combination.
    """
    commands = parse_commands(commands_clause)
    parsed_time = parse_time(time_clause)
    days = parse_days(days_clause)

    if parsed_time.kind == "interval" and days.interval_ticks <= 0:
        raise ParseError("Interval schedule (E) requires an interval such as 30s, 5m or 1h in the days clause")
    if parsed_time.kind == "time_range_with_interval" and days.interval_ticks <= 0:
        raise ParseError("Time range with interval requires an interval such as 30s, 5m or 1h in the days clause")

    if parsed_time.kind == "fixed_time":
        schedule = FixedTime(at=parsed_time.start)
    elif parsed_time.kind == "time_range":
        schedule = TimeRange(start=parsed_time.start, end=parsed_time.end)
    elif parsed_time.kind == "interval":
        schedule = Interval(interval_ticks=days.interval_ticks, interval_unit=days.interval_unit)
    else:
        schedule = TimeRangeWithInterval(
            start=parsed_time.start,
            end=parsed_time.end,
            interval_ticks=days.interval_ticks,
            interval_unit=days.interval_unit,
        )

    if commands.mode == "one_by_one":
        execution = SequentialPaced(execution_interval=commands.execution_interval)
    elif commands.mode == "all":
        execution = AllStaggered()
    else:
        execution = Single()

    try:
        return ScheduleSpec(
            commands=commands.commands,
            schedule=schedule,
            days_of_week=days.days_of_week,
            every_day=days.every_day,
            execution=execution,
        )
    except ValidationError as err:
        raise ParseError(str(err)) from err


def parse_create_args(args: list[str]) -> ScheduleSpec:
    """Parse ``[commands, time, days]`` as produced by the command line."""
    if len(args) < 3:
        raise ParseError("Not enough arguments, expected: {commands} <time> <days>")
    return parse_schedule(args[0], args[1], args[2])


def reconstruct_create_args(args: list[str]) -> list[str]:
    """Re-join a ``{...}`` commands clause split apart by whitespace tokenizing.

    ``["{/say", "Hello}", "14:00", "Eve"]`` becomes ``["{/say Hello}", "14:00", "Eve"]``.
    Arguments without a complete ``{...}`` are returned unchanged so the parser
    reports the problem.
    """
    start = end = -1
    for idx, arg in enumerate(args):
        if start == -1 and arg.startswith("{"):
            start = idx
        if start != -1 and arg.endswith("}"):
            end = idx
            break

    if start == -1 or end == -1:
        return list(args)

    return [*args[:start], " ".join(args[start : end + 1]), *args[end + 1 :]]
