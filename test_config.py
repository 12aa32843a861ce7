"""
Tests for scheduler configuration loading and fixed UTC offsets.
"""

import json
import logging
from datetime import timedelta

import pytest

from job_scheduler import timezones
from job_scheduler.config import LoggingConfig, SchedulerConfig, setup_logging


@pytest.mark.parametrize("text, minutes", [
    ("Z", 0),
    ("UTC", 0),
    ("+00:00", 0),
    ("+08:00", 480),
    ("-05:30", -330),
    ("+0545", 345),
    ("-03", -180),
])
def test_parse_offset(text, minutes):
    assert timezones.offset_minutes(timezones.parse_offset(text)) == minutes


@pytest.mark.parametrize("text", ["", "8", "+8:00", "+08:60", "+24:00", "Europe/Paris"])
def test_parse_offset_rejects(text):
    with pytest.raises(ValueError):
        timezones.parse_offset(text)


def test_fixed_offset():
    assert timezones.fixed_offset(0) is timezones.UTC
    assert timezones.fixed_offset(-90).utcoffset(None) == timedelta(minutes=-90)
    assert timezones.format_offset(timezones.fixed_offset(-90)) == "-01:30"
    with pytest.raises(ValueError):
        timezones.fixed_offset(24 * 60)


def test_defaults(clean_env):
    config = SchedulerConfig.load()

    assert config.timezone == "+00:00"
    assert config.idle_wait == timedelta(milliseconds=500)
    assert config.max_sleep_seconds is None
    assert config.logging.level == "INFO"
    assert config.validate() == []


def test_load_from_file(clean_env, tmp_path):
    path = tmp_path / "scheduler.json"
    path.write_text(json.dumps({
        'timezone': '+02:00',
        'idle_wait_ms': 1000,
        'logging': {'level': 'DEBUG'},
    }))

    config = SchedulerConfig.load(str(path))
    assert config.tzinfo.utcoffset(None) == timedelta(hours=2)
    assert config.idle_wait_ms == 1000
    assert config.logging.level == "DEBUG"


def test_config_path_from_environment(clean_env, tmp_path, monkeypatch):
    path = tmp_path / "scheduler.json"
    path.write_text(json.dumps({'timezone': '-04:00'}))
    monkeypatch.setenv('JOB_SCHEDULER_CONFIG_PATH', str(path))

    assert SchedulerConfig.load().timezone == "-04:00"


def test_environment_overrides_file(clean_env, tmp_path, monkeypatch):
    path = tmp_path / "scheduler.json"
    path.write_text(json.dumps({'timezone': '+02:00', 'idle_wait_ms': 1000}))
    monkeypatch.setenv('JOB_SCHEDULER_TIMEZONE', '+09:00')
    monkeypatch.setenv('JOB_SCHEDULER_MAX_SLEEP', '30')
    monkeypatch.setenv('JOB_SCHEDULER_LOG_LEVEL', 'warning')

    config = SchedulerConfig.load(str(path))
    assert config.timezone == "+09:00"
    assert config.idle_wait_ms == 1000
    assert config.max_sleep_seconds == 30.0
    assert config.logging.level == "WARNING"


def test_invalid_values_are_reported(clean_env, monkeypatch):
    config = SchedulerConfig(timezone="somewhere", idle_wait_ms=-1, max_sleep_seconds=0,
                             logging=LoggingConfig(level="LOUD"))
    errors = config.validate()
    assert len(errors) == 4

    monkeypatch.setenv('JOB_SCHEDULER_TIMEZONE', 'nowhere')
    with pytest.raises(ValueError):
        SchedulerConfig.load()


def test_unknown_keys_rejected(clean_env, tmp_path):
    path = tmp_path / "scheduler.json"
    path.write_text(json.dumps({'timezone': '+00:00', 'jobs': []}))

    with pytest.raises(ValueError):
        SchedulerConfig.load(str(path))


def test_save_and_reload(clean_env, tmp_path):
    path = tmp_path / "nested" / "scheduler.json"
    SchedulerConfig(timezone="+05:30", logging=LoggingConfig(file="sched.log")).save(str(path))

    config = SchedulerConfig.load(str(path))
    assert config.timezone == "+05:30"
    assert config.logging.file == "sched.log"


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "scheduler.log"
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        setup_logging(LoggingConfig(level="INFO", file=str(log_file)))
        logging.getLogger("job_scheduler.test").info("hello from the scheduler")
        for handler in root.handlers:
            handler.flush()
        assert "hello from the scheduler" in log_file.read_text()
    finally:
        for handler in root.handlers[:]:
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)


def test_unknown_logging_keys_rejected():
    with pytest.raises(ValueError, match="logging.colour"):
        SchedulerConfig.from_dict({'logging': {'colour': 'red'}})


@pytest.mark.parametrize("data", [[], "UTC", {'logging': "DEBUG"}])
def test_non_object_config_rejected(data):
    with pytest.raises(ValueError):
        SchedulerConfig.from_dict(data)


@pytest.mark.parametrize("data, key", [
    ({'idle_wait_ms': "500"}, "idle_wait_ms"),
    ({'idle_wait_ms': True}, "idle_wait_ms"),
    ({'max_sleep_seconds': "30"}, "max_sleep_seconds"),
    ({'timezone': 8}, "timezone"),
    ({'logging': {'level': 10}}, "logging.level"),
    ({'logging': {'file': 42}}, "logging.file"),
    ({'logging': {'backup_count': -1}}, "logging.backup_count"),
])
def test_wrong_types_are_reported(data, key):
    errors = SchedulerConfig.from_dict(data).validate()

    assert len(errors) == 1
    assert f"'{key}'" in errors[0]


def test_wrong_types_in_file_raise_value_error(clean_env, tmp_path):
    path = tmp_path / "scheduler.json"
    path.write_text(json.dumps({'idle_wait_ms': "soon", 'logging': {'level': 20}}))

    with pytest.raises(ValueError):
        SchedulerConfig.load(str(path))


def test_setup_logging_twice_does_not_duplicate_handlers(tmp_path):
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        setup_logging(LoggingConfig(file=str(tmp_path / "first.log")))
        setup_logging(LoggingConfig(file=str(tmp_path / "second.log")))

        added = [h for h in root.handlers if h not in handlers]
        assert len(added) == 2
        files = [h.baseFilename for h in added if isinstance(h, logging.FileHandler)]
        assert files == [str(tmp_path / "second.log")]
    finally:
        for handler in root.handlers[:]:
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)
