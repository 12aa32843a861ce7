"""
Shared pytest fixtures.
"""

from datetime import datetime, timedelta, timezone

import pytest

from job_scheduler import timezones


class FakeClock:
    """Stands in for timezones.utcnow(); moves only when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock(monkeypatch):
    """Freeze the library clock at 2024-01-01 10:00:00 UTC (a Monday)."""
    fake = FakeClock(datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(timezones, 'utcnow', fake)
    return fake


@pytest.fixture
def clean_env(monkeypatch):
    """Remove JOB_SCHEDULER_* variables that could leak in from the shell or a .env file."""
    for name in (
        'JOB_SCHEDULER_CONFIG_PATH',
        'JOB_SCHEDULER_TIMEZONE',
        'JOB_SCHEDULER_IDLE_WAIT_MS',
        'JOB_SCHEDULER_MAX_SLEEP',
        'JOB_SCHEDULER_LOG_LEVEL',
        'JOB_SCHEDULER_LOG_FILE',
    ):
        monkeypatch.delenv(name, raising=False)
