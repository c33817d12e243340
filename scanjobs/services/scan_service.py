"""Scan job manager: admission, batch execution, finalization and status.

A scan walks every published record of the selected types and stamps each
one with the current time. Work is split into batches so a single deferred
invocation never handles more than ``batch_size`` records.
"""

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Union

from scanjobs.config import settings
from scanjobs.errors import AlreadyRunning, NoValidSelectors
from scanjobs.schemas.scan import Job, ScanRequest, Summary
from scanjobs.services.job_repository import PROCESS_HOOK, JobRepository
from scanjobs.services.progress import (
    ProgressSink,
    RecordProcessed,
    ScanFinished,
    ScanStarted,
    emit,
)
from scanjobs.services.record_catalog import RecordCatalog
from scanjobs.services.task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)

CRON_HOOK = "scanjobs_scan_cron"

QUEUED = "queued"
RUNNING = "running"
COMPLETED = "completed"
ACTIVE_STATUSES = (QUEUED, RUNNING)


class ScanService:
    """Shared scan logic for the HTTP, timer and command-line triggers."""

    def __init__(
        self,
        repository: JobRepository,
        catalog: RecordCatalog,
        tasks: TaskScheduler,
        default_batch_size: Optional[int] = None,
        min_batch_size: Optional[int] = None,
        max_batch_size: Optional[int] = None,
        batch_delay_seconds: Optional[int] = None,
        cron_interval_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.repository = repository
        self.catalog = catalog
        self.tasks = tasks
        self.default_batch_size = default_batch_size or settings.DEFAULT_BATCH_SIZE
        self.min_batch_size = min_batch_size or settings.MIN_BATCH_SIZE
        self.max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE
        self.batch_delay_seconds = (
            settings.BATCH_DELAY_SECONDS if batch_delay_seconds is None else batch_delay_seconds
        )
        self.cron_interval_seconds = cron_interval_seconds or settings.CRON_INTERVAL_SECONDS
        self.clock = clock

        # Held while a deferred batch runs in this process
        self._batch_lock = threading.Lock()

    def _now(self) -> int:
        return int(self.clock())

    def start_scan(
        self,
        request: Union[ScanRequest, Dict[str, Any], None] = None,
        origin: str = "admin",
        async_: bool = True,
        progress_sink: Optional[ProgressSink] = None,
        initiated_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start a scan job.

        Args:
            request: Requested record types and batch size
            origin: Trigger tag ('admin', 'cli', 'cron')
            async_: Queue the job for deferred batches instead of draining now
            progress_sink: Receives progress events during a synchronous drain
            initiated_by: Actor identity, None for timer jobs

        Returns:
            Formatted status of the new job

        Raises:
            AlreadyRunning: An async start while another job is active
            NoValidSelectors: No supported record types could be resolved
        """
        if async_ and self.is_running():
            raise AlreadyRunning()

        if request is None:
            request = ScanRequest()
        elif isinstance(request, dict):
            request = ScanRequest.model_validate(request)

        job = self._prepare_job(request, origin, initiated_by)

        if job.total == 0:
            job.status = COMPLETED
            job.finished_at = self._now()
            self.finalize_job(job)
            logger.info(f"Scan {job.id} matched no records, completed immediately")
            return self.format_status(job)

        if not async_:
            self.process_job_immediately(job, progress_sink)
            return self.format_status(job)

        job.status = QUEUED
        self.repository.save(job)
        self.schedule_next_batch()
        logger.info(f"Queued scan {job.id} ({job.total} records, origin={origin})")

        return self.format_status(job)

    def is_running(self) -> bool:
        """True when a job is queued or running with work left."""
        job = self.repository.load()
        if job is None or not job.queue:
            return False
        return job.status in ACTIVE_STATUSES

    def _prepare_job(self, request: ScanRequest, origin: str, initiated_by: Optional[str]) -> Job:
        requested = request.record_types
        record_types = self.catalog.sanitize_types(requested)

        if not record_types and not _has_values(requested):
            record_types = self.catalog.get_default_types()

        if not record_types:
            raise NoValidSelectors()

        batch_size = self.sanitize_batch_size(
            self.default_batch_size if request.batch_size is None else request.batch_size
        )

        # Snapshot taken once; the queue is not re-evaluated mid-run
        record_ids = self.catalog.find_ids(record_types)

        return Job(
            id=f"scan_{uuid.uuid4().hex}",
            status=QUEUED,
            record_types=record_types,
            batch_size=batch_size,
            total=len(record_ids),
            processed=0,
            queue=record_ids,
            created_at=self._now(),
            origin=origin,
            initiated_by=initiated_by,
        )

    def sanitize_batch_size(self, value: Any) -> int:
        """Clamp a batch size into [min_batch_size, max_batch_size]."""
        try:
            size = abs(int(value))
        except (TypeError, ValueError):
            size = 0

        if size < self.min_batch_size:
            return self.min_batch_size
        if size > self.max_batch_size:
            return self.max_batch_size
        return size

    def process_batch(self, job: Job, progress_sink: Optional[ProgressSink] = None) -> int:
        """Consume up to ``batch_size`` ids from the front of the queue.

        Returns the number of records processed.
        """
        batch = job.queue[: job.batch_size]
        job.queue = job.queue[job.batch_size :]

        handled = 0
        for record_id in batch:
            if not _valid_id(record_id):
                continue

            self.catalog.stamp(record_id)
            job.processed += 1
            handled += 1
            emit(progress_sink, RecordProcessed(job=job, record_id=record_id))

        return handled

    def process_job_immediately(self, job: Job, progress_sink: Optional[ProgressSink] = None) -> None:
        """Drain the whole queue in the calling context (CLI, tests)."""
        job.status = RUNNING
        if job.started_at is None:
            job.started_at = self._now()
        self.repository.save(job)

        emit(progress_sink, ScanStarted(job=job))

        while job.queue:
            self.process_batch(job, progress_sink)
            self.repository.save(job)

        job.finished_at = self._now()
        self.finalize_job(job)

        emit(progress_sink, ScanFinished(job=job))
        logger.info(f"Scan {job.id} finished: {job.processed}/{job.total} records")

    def handle_async_process(self, reschedule: bool = True) -> bool:
        """Run exactly one batch of the persisted job.

        Returns True when work remains. With ``reschedule`` the next batch
        is scheduled before returning.
        """
        job = self.repository.load()
        if job is None or not job.queue:
            return False

        job.status = RUNNING
        if job.started_at is None:
            job.started_at = self._now()

        handled = self.process_batch(job)
        logger.info(f"Scan {job.id} batch done: {handled} records, {job.remaining} remaining")

        if not job.queue:
            job.finished_at = self._now()
            self.finalize_job(job)
            logger.info(f"Scan {job.id} completed ({job.processed}/{job.total})")
            return False

        self.repository.save(job)
        if reschedule:
            self.schedule_next_batch()
        return True

    def run_deferred_batch(self) -> None:
        """Entry point for scheduled batches.

        Never raises: a failed batch leaves the job as last persisted until
        the worker picks it up again. The next batch is scheduled after the
        lock is released.
        """
        if not self._batch_lock.acquire(blocking=False):
            logger.warning("Deferred batch skipped: another batch is still running")
            return
        try:
            more = self.handle_async_process(reschedule=False)
        except Exception as e:
            logger.error(f"Deferred scan batch failed: {e}", exc_info=True)
            return
        finally:
            self._batch_lock.release()

        if more:
            self.schedule_next_batch()

    def schedule_next_batch(self) -> bool:
        """Schedule one deferred batch unless one is already pending."""
        return self.tasks.schedule_single(PROCESS_HOOK, self.run_deferred_batch, self.batch_delay_seconds)

    def resume_pending(self) -> bool:
        """Re-arm the deferred batch for a job left active by a restart."""
        if not self.is_running():
            return False
        scheduled = self.schedule_next_batch()
        if scheduled:
            logger.info("Resumed pending scan job")
        return scheduled

    def finalize_job(self, job: Job) -> Summary:
        """Mark the job completed, persist it and record the summary."""
        job.status = COMPLETED
        if job.finished_at is None:
            job.finished_at = self._now()
        job.queue = []
        self.repository.save(job)

        summary = Summary(
            total=job.total,
            processed=job.processed,
            record_types=list(job.record_types),
            finished_at=job.finished_at,
            origin=job.origin,
        )
        self.repository.save_summary(summary)
        return summary

    def clear_job(self) -> None:
        """Delete the job and cancel pending batches.

        A batch that is already executing is not interrupted.
        """
        self.repository.clear()
        logger.info("Scan job cleared")

    def handle_daily_cron(self) -> Optional[Dict[str, Any]]:
        """Start the recurring scan unless one is already active."""
        if self.is_running():
            logger.info("Scheduled scan skipped: a scan is already running")
            return None

        return self.start_scan(
            ScanRequest(
                record_types=self.catalog.get_default_types(),
                batch_size=self.default_batch_size,
            ),
            origin="cron",
            async_=True,
        )

    def run_cron(self) -> None:
        """Entry point for the recurring timer. Never raises."""
        try:
            self.repository.save_next_cron(self._now() + self.cron_interval_seconds)
            self.handle_daily_cron()
        except Exception as e:
            logger.error(f"Scheduled scan failed to start: {e}", exc_info=True)

    def maybe_schedule_cron(self) -> bool:
        """Register the recurring timer if it is not registered yet.

        The first run continues from the persisted next-run time, so a
        restart does not push the timer back. An overdue timer fires right
        away.
        """
        now = self._now()
        next_run = self.repository.load_next_cron()
        if next_run is None:
            next_run = now + self.cron_interval_seconds
        elif next_run <= now:
            logger.info("Scheduled scan overdue, running it now")
            next_run = now + 1

        registered = self.tasks.schedule_recurring(
            CRON_HOOK,
            self.run_cron,
            self.cron_interval_seconds,
            first_run_at=next_run,
        )
        if registered:
            self.repository.save_next_cron(next_run)
        return registered

    def get_next_cron(self) -> Optional[int]:
        """Next timer run from the live scheduler, else the persisted value."""
        next_run = self.tasks.next_scheduled(CRON_HOOK)
        if next_run is None:
            next_run = self.repository.load_next_cron()
        return next_run

    def get_last_summary(self) -> Dict[str, Any]:
        summary = self.repository.load_summary()
        return summary.model_dump() if summary else {}

    def get_status(self) -> Dict[str, Any]:
        """Current job formatted for APIs, or the idle shape."""
        job = self.repository.load()

        if job is None:
            return {
                "status": "idle",
                "lastRun": self.get_last_summary(),
                "nextRun": self.get_next_cron(),
                "record_types": self.catalog.get_default_types(),
            }

        return self.format_status(job)

    def format_status(self, job: Job) -> Dict[str, Any]:
        status = job.model_dump(exclude={"queue"})
        status["remaining"] = job.remaining
        status["percent"] = job.percent
        status["lastRun"] = self.get_last_summary()
        status["nextRun"] = self.get_next_cron()
        return status


def _valid_id(record_id: Any) -> bool:
    return isinstance(record_id, int) and not isinstance(record_id, bool) and record_id > 0


def _has_values(raw: Union[str, List[str], None]) -> bool:
    """True when the request named at least one non-blank selector."""
    if raw is None:
        return False
    if isinstance(raw, str):
        raw = raw.split(",")
    return any(str(value).strip() for value in raw)
