"""Tests for YAML task file persistence."""

from datetime import datetime, time

import pytest
import yaml

from timetools.scheduling.repository import PersistenceError, TaskFileRepository, record_to_task, task_to_record
from timetools.scheduling.types import SequentialPaced, TimeRangeWithInterval, Weekday


@pytest.fixture
def repo(tmp_path):
    return TaskFileRepository(tmp_path / "data" / "tasks.yml")


class TestTaskRecord:
    def test_record_shape(self, make_task):
        task = make_task("{/a,/b,Obo,5}", "09:00-17:00,E", "Mon,Wed,30m")
        record = task_to_record(task)
        assert record == {
            "id": task.id,
            "commands": ["/a", "/b"],
            "scheduleType": "TIME_RANGE_WITH_INTERVAL",
            "startTime": "09:00",
            "endTime": "17:00",
            "daysOfWeek": ["MONDAY", "WEDNESDAY"],
            "everyDay": False,
            "intervalTicks": 36000,
            "intervalUnit": "m",
            "executionMode": "ONE_BY_ONE",
            "executionInterval": 5,
            "enabled": True,
            "lastExecutionTime": 0,
        }

    def test_record_restores_task(self, make_task):
        fired_at = datetime(2024, 1, 1, 9, 30)
        task = make_task("{/a,/b,Obo,5}", "09:00-17:00,E", "Mon,30m", last_execution_time=fired_at, enabled=False)
        restored = record_to_task(task_to_record(task))

        assert restored.id == task.id
        assert restored.schedule == TimeRangeWithInterval(
            start=time(9, 0), end=time(17, 0), interval_ticks=36000, interval_unit="m"
        )
        assert restored.execution == SequentialPaced(execution_interval=5)
        assert restored.days_of_week == {Weekday.MON}
        assert restored.enabled is False
        assert restored.last_execution_time == fired_at

    def test_unknown_schedule_type(self, make_task):
        record = task_to_record(make_task())
        record["scheduleType"] = "CRON"
        with pytest.raises(ValueError, match="Unknown schedule type"):
            record_to_task(record)

    def test_missing_field(self, make_task):
        record = task_to_record(make_task())
        del record["executionMode"]
        with pytest.raises(KeyError):
            record_to_task(record)


class TestTaskFileRepository:
    def test_missing_file_loads_empty(self, repo):
        assert repo.load_all() == []

    def test_save_then_load(self, repo, make_task):
        tasks = [make_task("{/a}", "14:00", "Eve"), make_task("{/b}", "E", "Eve,1m")]
        repo.save_all(tasks)

        loaded = repo.load_all()
        assert [t.id for t in loaded] == [t.id for t in tasks]
        assert loaded[1].interval_ticks == 1200
        assert not repo.path.with_suffix(".yml.tmp").exists()

    def test_file_is_readable_yaml(self, repo, make_task):
        task = make_task()
        repo.save_all([task])
        data = yaml.safe_load(repo.path.read_text())
        assert data["tasks"][0]["id"] == task.id
        assert data["tasks"][0]["startTime"] == "09:00"

    def test_save_overwrites(self, repo, make_task):
        repo.save_all([make_task(), make_task()])
        repo.save_all([])
        assert repo.load_all() == []

    def test_invalid_record_skipped(self, repo, make_task):
        good = make_task()
        repo.path.parent.mkdir(parents=True)
        repo.path.write_text(
            yaml.safe_dump({"tasks": [{"id": "broken", "scheduleType": "FIXED_TIME"}, "junk", task_to_record(good)]})
        )
        assert [t.id for t in repo.load_all()] == [good.id]

    def test_invalid_yaml_raises(self, repo):
        repo.path.parent.mkdir(parents=True)
        repo.path.write_text("tasks: [unclosed")
        with pytest.raises(PersistenceError):
            repo.load_all()

    def test_non_list_tasks_raises(self, repo):
        repo.path.parent.mkdir(parents=True)
        repo.path.write_text("tasks: nope\n")
        with pytest.raises(PersistenceError):
            repo.load_all()

    def test_empty_file_loads_empty(self, repo):
        repo.path.parent.mkdir(parents=True)
        repo.path.write_text("")
        assert repo.load_all() == []

    def test_undecodable_file_raises(self, repo):
        repo.path.parent.mkdir(parents=True)
        repo.path.write_bytes(b"tasks:\n- id: \xff\xfe\n")
        with pytest.raises(PersistenceError):
            repo.load_all()

    def test_non_string_weekday_skips_only_that_record(self, repo, make_task):
        good = make_task("{/a}", "09:00", "Mon")
        bad = task_to_record(make_task("{/b}", "09:00", "Mon"))
        bad["daysOfWeek"] = [1]
        repo.path.parent.mkdir(parents=True)
        repo.path.write_text(yaml.safe_dump({"tasks": [task_to_record(good), bad]}))

        assert [t.id for t in repo.load_all()] == [good.id]

    @pytest.mark.parametrize("value", ["false", "no", "off", "0"])
    def test_quoted_false_flags_stay_false(self, make_task, value):
        record = task_to_record(make_task())
        record["enabled"] = value
        record["everyDay"] = value
        task = record_to_task(record)
        assert task.enabled is False
        assert task.every_day is False

    def test_garbage_flag_rejected(self, make_task):
        record = task_to_record(make_task())
        record["enabled"] = "sometimes"
        with pytest.raises(ValueError):
            record_to_task(record)
