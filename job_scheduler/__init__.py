"""
Cron-style Job Scheduler

A small in-process scheduler that runs callables on cron schedules.

Features:
- Cron expressions with seconds and optional year field
- Poll-driven: call tick() yourself, or let run() loop for you
- Catch-up of missed runs, bounded per job
- Fixed UTC offsets per scheduler and per job
- Wake-up prediction via time_till_next_job()
"""

from job_scheduler.schedule import CronSchedule, Schedule, ScheduleParseError
from job_scheduler.jobs import Job, Primed, Unprimed
from job_scheduler.service import JobScheduler
from job_scheduler.config import SchedulerConfig, LoggingConfig, setup_logging
from job_scheduler.timezones import UTC, fixed_offset, parse_offset

__version__ = "0.1.0"
__all__ = [
    "CronSchedule",
    "Schedule",
    "ScheduleParseError",
    "Job",
    "Primed",
    "Unprimed",
    "JobScheduler",
    "SchedulerConfig",
    "LoggingConfig",
    "setup_logging",
    "UTC",
    "fixed_offset",
    "parse_offset",
]
