"""Persistence of the single scan job and the last-run summary."""

import logging
from typing import Optional

from pydantic import ValidationError

from scanjobs.schemas.scan import Job, Summary
from scanjobs.services.state_store import StateStore
from scanjobs.services.task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)

OPTION_JOB = "scanjobs_scan_job"
OPTION_LAST_SUMMARY = "scanjobs_scan_last_summary"
OPTION_CRON_NEXT = "scanjobs_scan_cron_next"
PROCESS_HOOK = "scanjobs_scan_process"


class JobRepository:
    """Loads, saves and clears the one active job.

    Each call is a single whole-value read or write. Read-modify-write
    sequences belong to the caller.
    """

    def __init__(self, store: StateStore, tasks: TaskScheduler):
        self.store = store
        self.tasks = tasks

    def load(self) -> Optional[Job]:
        data = self.store.get(OPTION_JOB)
        if not isinstance(data, dict) or not data:
            return None
        try:
            return Job.model_validate(data)
        except ValidationError as e:
            logger.error(f"Discarding unreadable scan job record: {e}")
            return None

    def save(self, job: Job) -> None:
        self.store.set(OPTION_JOB, job.model_dump())

    def clear(self) -> None:
        """Delete the job and cancel any pending deferred batch."""
        self.store.delete(OPTION_JOB)
        self.tasks.clear_scheduled(PROCESS_HOOK)

    def load_summary(self) -> Optional[Summary]:
        data = self.store.get(OPTION_LAST_SUMMARY)
        if not isinstance(data, dict) or not data:
            return None
        try:
            return Summary.model_validate(data)
        except ValidationError as e:
            logger.error(f"Discarding unreadable scan summary: {e}")
            return None

    def save_summary(self, summary: Summary) -> None:
        self.store.set(OPTION_LAST_SUMMARY, summary.model_dump())

    def load_next_cron(self) -> Optional[int]:
        """Next run of the recurring timer, kept across restarts."""
        value = self.store.get(OPTION_CRON_NEXT)
        return int(value) if isinstance(value, (int, float)) else None

    def save_next_cron(self, timestamp: int) -> None:
        self.store.set(OPTION_CRON_NEXT, int(timestamp))
