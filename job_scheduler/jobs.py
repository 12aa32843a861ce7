"""
Scheduled jobs.

A Job pairs a schedule with a zero-argument action and remembers when it
was last advanced. The scheduler calls ``Job.advance()`` on every tick;
the job then fires its action once per occurrence that fell due since
the previous advance, up to its missed-run limit.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, tzinfo
from itertools import islice
from typing import Any, Callable, Dict, Optional, Union

from job_scheduler import timezones

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unprimed:
    """The job has never been advanced; its next advance only records the time."""


@dataclass(frozen=True)
class Primed:
    """The job was last advanced at ``at``."""
    at: datetime


LastTick = Union[Unprimed, Primed]

UNPRIMED = Unprimed()


class Job:
    """
    A schedule plus the action to run on it.

    The action is invoked synchronously by the scheduler's tick and never
    overlaps with itself. Exceptions it raises are not caught.
    """

    def __init__(self, schedule, action: Callable[[], Any], name: Optional[str] = None):
        """
        Create a job.

        Args:
            schedule: Anything with ``after(datetime)`` and ``upcoming(tzinfo)``,
                      normally a CronSchedule
            action: Zero-argument callable; its return value is ignored
            name: Label for logs and listings (defaults to the action's name)
        """
        self._id = uuid.uuid4()
        self._schedule = schedule
        self._action = action
        self.name = name or getattr(action, '__name__', None) or 'job'

        self.last_tick: LastTick = UNPRIMED
        self.missed_run_limit = 1
        self.timezone: tzinfo = timezones.UTC

        self.run_count = 0
        self.last_run_at: Optional[datetime] = None

    @property
    def id(self) -> uuid.UUID:
        return self._id

    @property
    def schedule(self):
        return self._schedule

    @property
    def primed(self) -> bool:
        return isinstance(self.last_tick, Primed)

    def limit_missed_runs(self, limit: int):
        """
        Set how many missed occurrences one advance may catch up on.

        Args:
            limit: Maximum invocations per advance; 0 means unlimited

        Raises:
            TypeError: If limit is not an int
            ValueError: If limit is negative
        """
        if not isinstance(limit, int) or isinstance(limit, bool):
            raise TypeError(f"missed run limit must be an int, got {type(limit).__name__}")
        if limit < 0:
            raise ValueError(f"missed run limit must be non-negative, got {limit}")
        self.missed_run_limit = limit

    def set_last_tick(self, when: Optional[datetime]):
        """
        Force the job's last-advance time.

        ``None`` makes the job unprimed again. A past time makes the next
        advance catch up on everything since then (within the limit).
        Naive datetimes are taken as UTC.
        """
        if when is None:
            self.last_tick = UNPRIMED
            return
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezones.UTC)
        self.last_tick = Primed(when)

    def advance(self) -> int:
        """
        Fire every occurrence that fell due since the previous advance.

        Called by JobScheduler.tick(). The first advance only primes the
        job. Later advances walk the occurrences after the previous advance
        in ascending order, at most ``missed_run_limit`` of them (unless 0),
        and run the action for each one not after now. Occurrences beyond
        the limit are dropped, not deferred.

        Returns:
            Number of times the action ran
        """
        now = timezones.utcnow().astimezone(self.timezone)
        previous, self.last_tick = self.last_tick, Primed(now)

        if isinstance(previous, Unprimed):
            logger.debug(f"[{self.name}] Primed at {now.isoformat()}")
            return 0

        occurrences = self._schedule.after(previous.at)
        if self.missed_run_limit > 0:
            occurrences = islice(occurrences, self.missed_run_limit)

        fired = 0
        for occurrence in occurrences:
            if occurrence > now:
                break
            logger.debug(f"[{self.name}] Running occurrence {occurrence.isoformat()}")
            try:
                self._action()
            except Exception:
                logger.error(f"[{self.name}] Action raised for occurrence {occurrence.isoformat()}",
                             exc_info=True)
                raise
            fired += 1
            self.run_count += 1
            self.last_run_at = occurrence

        return fired

    def next_run(self, tz: Optional[tzinfo] = None) -> Optional[datetime]:
        """Next occurrence from now in ``tz`` (the job's own zone by default)."""
        return next(iter(self._schedule.upcoming(tz or self.timezone)), None)

    def info(self, tz: Optional[tzinfo] = None) -> Dict[str, Any]:
        """Summary of the job for listings."""
        next_run = self.next_run(tz)
        return {
            'id': str(self._id),
            'name': self.name,
            'schedule': str(self._schedule),
            'timezone': timezones.format_offset(self.timezone),
            'missed_run_limit': self.missed_run_limit,
            'primed': self.primed,
            'last_tick': self.last_tick.at.isoformat() if self.primed else None,
            'next_run': next_run.isoformat() if next_run else None,
            'run_count': self.run_count,
            'last_run_at': self.last_run_at.isoformat() if self.last_run_at else None,
        }

    def __repr__(self):
        return f"Job(id={self._id}, name={self.name!r}, schedule={self._schedule!s})"
