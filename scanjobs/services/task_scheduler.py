"""Deferred and recurring callbacks on top of APScheduler.

Callbacks are grouped under a hook name. Each scheduled event gets its own
APScheduler job id (``<hook>:<token>``) so that a one-shot event which is
currently firing never masks the next one being scheduled.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from apscheduler.job import Job as SchedulerJob
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


def create_background_scheduler() -> BackgroundScheduler:
    """Build the process-wide background scheduler."""
    return BackgroundScheduler(
        timezone=timezone.utc,
        job_defaults={
            "coalesce": True,  # Merge missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 300,
        },
    )


class TaskScheduler:
    """Schedules opaque callbacks for future or periodic execution."""

    def __init__(self, scheduler: Optional[BaseScheduler] = None):
        self.scheduler = scheduler or create_background_scheduler()

    def start(self, paused: bool = False) -> None:
        if not self.scheduler.running:
            self.scheduler.start(paused=paused)
            logger.info("Task scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Task scheduler stopped")

    def _jobs(self, hook: str) -> List[SchedulerJob]:
        return [job for job in self.scheduler.get_jobs() if job.name == hook]

    def next_scheduled(self, hook: str) -> Optional[int]:
        """Return the earliest pending run of ``hook`` as a UNIX timestamp.

        Events whose run time has already passed are treated as firing and
        are not reported.
        """
        now = datetime.now(timezone.utc)
        pending = []
        for job in self._jobs(hook):
            run_time = getattr(job, "next_run_time", None)
            if run_time is not None and run_time > now:
                pending.append(run_time)
        if not pending:
            return None
        return int(min(pending).timestamp())

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def schedule_single(self, hook: str, func: Callable, delay_seconds: int) -> bool:
        """Schedule ``func`` once, ``delay_seconds`` from now.

        Debounced: nothing is added while another event for ``hook`` is
        pending. Nothing is added to a scheduler that is not running; the
        worker process picks persisted work up on its next poll. Returns
        True when an event was added.
        """
        if not self.running:
            logger.debug(f"Scheduler not running, leaving {hook} to the worker")
            return False

        if self.next_scheduled(hook) is not None:
            logger.debug(f"Hook {hook} already scheduled, skipping")
            return False

        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        self.scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            id=f"{hook}:{uuid.uuid4().hex}",
            name=hook,
        )
        logger.debug(f"Scheduled {hook} at {run_date.isoformat()}")
        return True

    def schedule_recurring(
        self,
        hook: str,
        func: Callable,
        interval_seconds: int,
        first_run_at: Optional[int] = None,
    ) -> bool:
        """Register a recurring event for ``hook`` unless one exists.

        The first run happens at ``first_run_at`` (UNIX timestamp), or one
        interval from now when it is not given. Returns False without
        registering when the scheduler is not running.
        """
        if not self.running or self._jobs(hook):
            return False

        start_date = None
        if first_run_at is not None:
            start_date = datetime.fromtimestamp(first_run_at, timezone.utc)

        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(
                seconds=interval_seconds,
                start_date=start_date,
                timezone=timezone.utc,
            ),
            id=f"{hook}:{uuid.uuid4().hex}",
            name=hook,
        )
        logger.info(f"Registered recurring {hook} every {interval_seconds}s")
        return True

    def clear_scheduled(self, hook: str) -> int:
        """Remove every event for ``hook``. Returns the number removed."""
        removed = 0
        for job in self._jobs(hook):
            try:
                self.scheduler.remove_job(job.id)
                removed += 1
            except JobLookupError:
                # Already fired and removed
                pass
        if removed:
            logger.info(f"Cleared {removed} scheduled {hook} events")
        return removed
