"""Tests for scheduling domain types."""

from datetime import date, time

import pytest
from pydantic import ValidationError

from timetools.scheduling.parser import parse_schedule
from timetools.scheduling.types import Interval, Task, TimeRange, TimeRangeWithInterval, Weekday


class TestWeekday:
    def test_from_date(self):
        assert Weekday.from_date(date(2024, 1, 1)) == Weekday.MON
        assert Weekday.from_date(date(2024, 1, 7)) == Weekday.SUN

    def test_full_name_round_trip(self):
        for day in Weekday:
            assert Weekday.from_full_name(day.full_name) == day

    def test_unknown_full_name(self):
        with pytest.raises(ValueError):
            Weekday.from_full_name("FUNDAY")

    def test_non_string_full_name(self):
        with pytest.raises(ValueError):
            Weekday.from_full_name(1)


class TestScheduleVariants:
    def test_range_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            TimeRange(start=time(10, 0), end=time(9, 0))

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            Interval(interval_ticks=0)
        with pytest.raises(ValidationError):
            TimeRangeWithInterval(start=time(9, 0), end=time(10, 0), interval_ticks=-5)


class TestTaskViews:
    def test_fixed_time_views(self):
        task = Task.from_spec(parse_schedule("{/a}", "14:00", "Mon"))
        assert task.schedule_type == "FIXED_TIME"
        assert task.execution_mode == "SINGLE"
        assert task.start_time == time(14, 0)
        assert task.end_time is None
        assert task.interval_ticks == 0
        assert task.interval_unit is None
        assert not task.is_interval_driven

    def test_range_with_interval_views(self):
        task = Task.from_spec(parse_schedule("{/a,/b,Obo,4}", "09:00-17:00,E", "Eve,10s"))
        assert task.schedule_type == "TIME_RANGE_WITH_INTERVAL"
        assert task.execution_mode == "ONE_BY_ONE"
        assert (task.start_time, task.end_time) == (time(9, 0), time(17, 0))
        assert task.interval_ticks == 200
        assert task.interval_unit == "s"
        assert task.execution_interval == 4
        assert task.is_interval_driven

    def test_from_spec_keeps_given_id(self):
        task = Task.from_spec(parse_schedule("{/a}", "E", "Eve,1m"), id="fixed-id")
        assert task.id == "fixed-id"
        assert task.enabled is True

    def test_commands_required(self):
        with pytest.raises(ValidationError):
            Task(commands=[], schedule=Interval(interval_ticks=20))
