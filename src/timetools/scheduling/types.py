"""Scheduling domain types."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator


class Weekday(str, Enum):
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"

    @classmethod
    def from_date(cls, day: date) -> Weekday:
        return _WEEKDAYS[day.weekday()]

    @property
    def full_name(self) -> str:
        return _FULL_NAMES[self]

    @classmethod
    def from_full_name(cls, name: str) -> Weekday:
        if not isinstance(name, str):
            raise ValueError(f"Unknown weekday: {name!r}")
        for weekday, full in _FULL_NAMES.items():
            if full == name.upper():
                return weekday
        raise ValueError(f"Unknown weekday: {name}")


_WEEKDAYS = list(Weekday)
_FULL_NAMES = {
    Weekday.MON: "MONDAY",
    Weekday.TUE: "TUESDAY",
    Weekday.WED: "WEDNESDAY",
    Weekday.THU: "THURSDAY",
    Weekday.FRI: "FRIDAY",
    Weekday.SAT: "SATURDAY",
    Weekday.SUN: "SUNDAY",
}

IntervalUnit = Literal["s", "m", "h"]


# --- Schedule variants ---


class FixedTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["fixed_time"] = "fixed_time"
    at: time


class TimeRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["time_range"] = "time_range"
    start: time
    end: time

    @model_validator(mode="after")
    def check_window(self) -> TimeRange:
        if self.end <= self.start:
            raise ValueError("end time must be later than start time")
        return self

    def contains(self, current: time) -> bool:
        return self.start <= current <= self.end


class Interval(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["interval"] = "interval"
    interval_ticks: PositiveInt
    interval_unit: IntervalUnit | None = None  # display only


class TimeRangeWithInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["time_range_with_interval"] = "time_range_with_interval"
    start: time
    end: time
    interval_ticks: PositiveInt
    interval_unit: IntervalUnit | None = None  # display only

    @model_validator(mode="after")
    def check_window(self) -> TimeRangeWithInterval:
        if self.end <= self.start:
            raise ValueError("end time must be later than start time")
        return self

    def contains(self, current: time) -> bool:
        return self.start <= current <= self.end


Schedule = Annotated[
    Union[FixedTime, TimeRange, Interval, TimeRangeWithInterval],
    Field(discriminator="kind"),
]

SCHEDULE_TYPE_NAMES: dict[type, str] = {
    FixedTime: "FIXED_TIME",
    TimeRange: "TIME_RANGE",
    Interval: "INTERVAL",
    TimeRangeWithInterval: "TIME_RANGE_WITH_INTERVAL",
}


# --- Execution mode variants ---


class Single(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"


class AllStaggered(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["all"] = "all"


class SequentialPaced(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["one_by_one"] = "one_by_one"
    execution_interval: int = 0  # ticks between commands, clamped at dispatch


Execution = Annotated[Union[Single, AllStaggered, SequentialPaced], Field(discriminator="kind")]

EXECUTION_MODE_NAMES: dict[type, str] = {
    Single: "SINGLE",
    AllStaggered: "ALL",
    SequentialPaced: "ONE_BY_ONE",
}


# --- Task ---


class ScheduleSpec(BaseModel):
    """Validated output of the schedule parser."""

    commands: list[str] = Field(min_length=1)
    schedule: Schedule
    days_of_week: set[Weekday] = Field(default_factory=set)
    every_day: bool = False
    execution: Execution = Field(default_factory=Single)


class Task(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    commands: list[str] = Field(min_length=1)
    schedule: Schedule
    days_of_week: set[Weekday] = Field(default_factory=set)
    every_day: bool = False
    execution: Execution = Field(default_factory=Single)
    enabled: bool = True
    last_execution_time: datetime | None = None

    @classmethod
    def from_spec(cls, spec: ScheduleSpec, id: str | None = None) -> Task:
        fields = spec.model_dump()
        if id:
            fields["id"] = id
        return cls.model_validate(fields)

    # --- Derived views ---

    @property
    def schedule_type(self) -> str:
        return SCHEDULE_TYPE_NAMES[type(self.schedule)]

    @property
    def execution_mode(self) -> str:
        return EXECUTION_MODE_NAMES[type(self.execution)]

    @property
    def start_time(self) -> time | None:
        if isinstance(self.schedule, FixedTime):
            return self.schedule.at
        if isinstance(self.schedule, (TimeRange, TimeRangeWithInterval)):
            return self.schedule.start
        return None

    @property
    def end_time(self) -> time | None:
        if isinstance(self.schedule, (TimeRange, TimeRangeWithInterval)):
            return self.schedule.end
        return None

    @property
    def interval_ticks(self) -> int:
        if isinstance(self.schedule, (Interval, TimeRangeWithInterval)):
            return self.schedule.interval_ticks
        return 0

    @property
    def interval_unit(self) -> str | None:
        if isinstance(self.schedule, (Interval, TimeRangeWithInterval)):
            return self.schedule.interval_unit
        return None

    @property
    def execution_interval(self) -> int:
        if isinstance(self.execution, SequentialPaced):
            return self.execution.execution_interval
        return 0

    @property
    def is_interval_driven(self) -> bool:
        """True when the interval timer manager, not the heartbeat, fires this task."""
        return isinstance(self.schedule, (Interval, TimeRangeWithInterval))

    def runs_on(self, weekday: Weekday) -> bool:
        # every_day wins over any explicit days
        return self.every_day or weekday in self.days_of_week
