#!/usr/bin/env python3
"""
Basic Usage Examples for JobScheduler

This script demonstrates polling the scheduler yourself, sleeping for the
predicted wait, and handing the loop over to run().
"""

import sys
import time
from datetime import timedelta
from pathlib import Path

# Add parent directory to path for imports (if running as standalone script)
sys.path.insert(0, str(Path(__file__).parent.parent))

from job_scheduler import CronSchedule, Job, JobScheduler, parse_offset, setup_logging


def example_1_manual_polling():
    """Example 1: Tick at a fixed interval"""
    print("\n" + "=" * 60)
    print("Example 1: Two jobs, polled every 500ms for 10 seconds")
    print("=" * 60)

    sched = JobScheduler()
    sched.add(Job(CronSchedule("0/2 * * * * *"), lambda: print("  every 2nd second")))
    sched.add(Job(CronSchedule("*/5 * * * * *"), lambda: print("  every 5 seconds")))

    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        sched.tick()
        time.sleep(0.5)


def example_2_predicted_sleep():
    """Example 2: Sleep until the next job is due"""
    print("\n" + "=" * 60)
    print("Example 2: Sleeping for time_till_next_job()")
    print("=" * 60)

    sched = JobScheduler()
    sched.add(Job(CronSchedule("*/3 * * * * *"), lambda: print("  every 3 seconds")))

    for _ in range(4):
        sched.tick()
        wait = sched.time_till_next_job()
        print(f"  sleeping {wait.total_seconds():.2f}s")
        time.sleep(wait.total_seconds())


def example_3_catch_up():
    """Example 3: Catching up on missed runs"""
    print("\n" + "=" * 60)
    print("Example 3: Bounded and unlimited catch-up")
    print("=" * 60)

    counts = {'limited': 0, 'unlimited': 0}

    def bump(key):
        def action():
            counts[key] += 1
        return action

    limited = Job(CronSchedule("* * * * * *"), bump('limited'), name="limited")
    limited.limit_missed_runs(2)
    unlimited = Job(CronSchedule("* * * * * *"), bump('unlimited'), name="unlimited")
    unlimited.limit_missed_runs(0)

    sched = JobScheduler()
    sched.add(limited)
    sched.add(unlimited)
    sched.tick()  # primes both jobs

    print("  pausing 5 seconds without ticking...")
    time.sleep(5)
    sched.tick()
    print(f"  limited ran {counts['limited']} time(s), unlimited ran {counts['unlimited']} time(s)")


def example_4_run_loop():
    """Example 4: Let the scheduler loop until stopped"""
    print("\n" + "=" * 60)
    print("Example 4: run() with a local timezone, stop after 3 runs")
    print("=" * 60)

    sched = JobScheduler(max_sleep=timedelta(seconds=1))
    sched.set_timezone(parse_offset("+08:00"))

    runs = []

    def heartbeat():
        runs.append(1)
        print(f"  heartbeat {len(runs)}")
        if len(runs) >= 3:
            sched.stop()

    sched.add(Job(CronSchedule("* * * * * *"), heartbeat))
    for info in sched.get_jobs():
        print(f"  {info['name']}: next run at {info['next_run']} ({info['timezone']})")

    sched.run(handle_signals=True)


if __name__ == "__main__":
    setup_logging()

    example_1_manual_polling()
    example_2_predicted_sleep()
    example_3_catch_up()
    example_4_run_loop()
