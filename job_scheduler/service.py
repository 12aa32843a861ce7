"""
Core scheduler service.

JobScheduler holds jobs keyed by id and advances them on every tick().
It never sleeps or spawns threads on its own: callers poll tick() and may
use time_till_next_job() to decide how long to wait in between, or hand
the loop over to run().

Not thread-safe: tick(), add() and remove() must be called from one
thread at a time.
"""

import logging
import signal
import threading
import uuid
from datetime import timedelta, tzinfo
from typing import Any, Dict, List, Optional

from job_scheduler import timezones
from job_scheduler.config import SchedulerConfig, DEFAULT_IDLE_WAIT_MS
from job_scheduler.jobs import Job

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Contains and executes scheduled jobs.

    Example::

        sched = JobScheduler()
        sched.add(Job(CronSchedule("0/10 * * * * *"), lambda: print("every 10s")))
        while True:
            sched.tick()
            time.sleep(sched.time_till_next_job().total_seconds())
    """

    def __init__(
        self,
        timezone: tzinfo = timezones.UTC,
        idle_wait: timedelta = timedelta(milliseconds=DEFAULT_IDLE_WAIT_MS),
        max_sleep: Optional[timedelta] = None
    ):
        """
        Initialize an empty scheduler.

        Args:
            timezone: Offset given to jobs when they are added (default UTC)
            idle_wait: Wait suggested by time_till_next_job() with no jobs
            max_sleep: Cap on a single wait inside run()
        """
        self._jobs: Dict[uuid.UUID, Job] = {}
        self._timezone = timezone
        self.idle_wait = idle_wait
        self.max_sleep = max_sleep
        self._stop_event: Optional[threading.Event] = None

    @classmethod
    def from_config(cls, config: Optional[SchedulerConfig] = None) -> 'JobScheduler':
        """Create a scheduler from a SchedulerConfig (loaded from the environment if omitted)."""
        config = config or SchedulerConfig.load()
        max_sleep = None
        if config.max_sleep_seconds is not None:
            max_sleep = timedelta(seconds=config.max_sleep_seconds)
        return cls(timezone=config.tzinfo, idle_wait=config.idle_wait, max_sleep=max_sleep)

    @property
    def timezone(self) -> tzinfo:
        return self._timezone

    def set_timezone(self, timezone: tzinfo):
        """
        Change the offset used for jobs added from now on and for
        time_till_next_job(). Jobs already added keep their offset.
        """
        logger.info(f"Scheduler timezone set to {timezones.format_offset(timezone)}")
        self._timezone = timezone

    def add(self, job: Job) -> uuid.UUID:
        """
        Add a job, pinning it to the scheduler's current timezone.

        Returns:
            The job's id
        """
        job.timezone = self._timezone
        self._jobs[job.id] = job
        logger.info(f"Job '{job.name}' ({job.id}) added with schedule '{job.schedule}'")
        return job.id

    def remove(self, job_id: uuid.UUID) -> bool:
        """
        Remove a job.

        Returns:
            True if removed, False if not found
        """
        job = self._jobs.pop(job_id, None)
        if job is None:
            logger.debug(f"No job with id {job_id} to remove")
            return False
        logger.info(f"Job '{job.name}' ({job_id}) removed")
        return True

    def get_job(self, job_id: uuid.UUID) -> Optional[Job]:
        return self._jobs.get(job_id)

    @property
    def jobs(self) -> List[Job]:
        return list(self._jobs.values())

    def __len__(self):
        return len(self._jobs)

    def __contains__(self, job_id):
        return job_id in self._jobs

    def tick(self):
        """
        Advance every job, running any that are due.

        Recommended to call at least every 500 milliseconds, or after
        sleeping for time_till_next_job(). Exceptions raised by an action
        propagate; jobs after it are not advanced in this tick.
        """
        for job in list(self._jobs.values()):
            job.advance()

    def time_till_next_job(self) -> timedelta:
        """
        How long the caller can wait before the next tick() is useful.

        Returns idle_wait (500ms by default) when there are no jobs.
        Otherwise returns the shortest positive wait until any job's next
        occurrence, evaluated in the scheduler's timezone; zero if there is
        none.
        """
        if not self._jobs:
            # Nothing to predict from, take a guess
            return self.idle_wait

        tz = self._timezone
        now = timezones.utcnow().astimezone(tz)
        duration = timedelta(0)
        for job in self._jobs.values():
            for occurrence in job.schedule.upcoming(tz):
                wait = occurrence - now
                if not duration or wait < duration:
                    duration = wait
                break

        duration = max(duration, timedelta(0))
        logger.debug(f"Next job due in {duration.total_seconds():.3f}s")
        return duration

    def get_jobs(self) -> List[Dict[str, Any]]:
        """
        Get list of all scheduled jobs.

        Returns:
            List of job information dictionaries
        """
        return [job.info(self._timezone) for job in self._jobs.values()]

    def run(self, stop_event: Optional[threading.Event] = None, handle_signals: bool = False):
        """
        Tick in a loop until stopped.

        Waits between ticks on an Event, so stop() or setting ``stop_event``
        ends the wait immediately. See next_wait() for how long each wait is.

        Args:
            stop_event: Event that ends the loop when set
            handle_signals: Stop on SIGINT/SIGTERM while running (main thread
                            only); the previous handlers are restored on exit
        """
        self._stop_event = stop_event or threading.Event()

        previous_handlers = self._setup_signal_handlers() if handle_signals else {}

        logger.info(f"Scheduler running with {len(self._jobs)} job(s)")
        try:
            while not self._stop_event.is_set():
                self.tick()
                self._stop_event.wait(self.next_wait().total_seconds())
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)
            logger.info("Scheduler stopped")

    def next_wait(self) -> timedelta:
        """
        How long run() waits before its next tick.

        This is time_till_next_job() capped at max_sleep. A zero prediction
        (no job has a future occurrence) is replaced by max_sleep, then
        idle_wait, then 500ms, so the loop never spins.
        """
        wait = self.time_till_next_job()
        if self.max_sleep:
            wait = min(wait, self.max_sleep)
        if not wait:
            wait = self.max_sleep or self.idle_wait or timedelta(milliseconds=DEFAULT_IDLE_WAIT_MS)
        return wait

    def stop(self):
        """Stop a loop started with run()."""
        if self._stop_event is None:
            logger.warning("Scheduler is not running")
            return
        logger.info("Stopping scheduler...")
        self._stop_event.set()

    def _setup_signal_handlers(self) -> Dict[int, Any]:
        """Setup signal handlers for graceful shutdown, returning the ones replaced."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            self.stop()

        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, signal_handler)
        return previous

    def __repr__(self):
        return f"JobScheduler(jobs={len(self._jobs)}, timezone={timezones.format_offset(self._timezone)})"
