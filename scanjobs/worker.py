"""Background worker: owns the scheduler and the wired scan service."""

import logging
import threading
from typing import Optional

from sqlalchemy.orm import sessionmaker

from scanjobs.config import settings
from scanjobs.database import SessionLocal, init_db
from scanjobs.services.job_repository import JobRepository
from scanjobs.services.record_catalog import RecordCatalog
from scanjobs.services.scan_service import ScanService
from scanjobs.services.state_store import StateStore
from scanjobs.services.task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)

TOKEN_PURGE_HOOK = "scanjobs_token_purge"


def build_service(
    session_factory: Optional[sessionmaker] = None,
    tasks: Optional[TaskScheduler] = None,
) -> ScanService:
    """Wire the scan service and its collaborators once per process."""
    session_factory = session_factory or SessionLocal
    tasks = tasks or TaskScheduler()

    store = StateStore(session_factory)
    repository = JobRepository(store, tasks)
    catalog = RecordCatalog(session_factory)

    return ScanService(repository, catalog, tasks)


class Worker:
    """Runs deferred batches, the recurring scan timer and token cleanup."""

    def __init__(self, service: Optional[ScanService] = None, poll_interval: Optional[float] = None):
        """Initialize worker."""
        self.service = service or build_service()
        self.tasks = self.service.tasks
        self.poll_interval = settings.WORKER_POLL_INTERVAL if poll_interval is None else poll_interval

    def start(self):
        """Start the scheduler, register the timers and resume any pending job."""
        self.tasks.start()
        self.service.maybe_schedule_cron()
        self.tasks.schedule_recurring(
            TOKEN_PURGE_HOOK,
            self.service.repository.store.purge_expired_tokens,
            settings.TOKEN_PURGE_INTERVAL_SECONDS,
        )
        self.service.resume_pending()
        logger.info("Worker started")

    def stop(self):
        self.tasks.shutdown()
        logger.info("Worker stopped")

    def poll(self) -> bool:
        """Pick up jobs queued by other processes. Never raises."""
        try:
            return self.service.resume_pending()
        except Exception as e:
            logger.error(f"Worker error: {e}", exc_info=True)
            return False

    def run(self, stop_event: Optional[threading.Event] = None):
        """Poll for queued work until stopped.

        Args:
            stop_event: Optional threading.Event to signal worker to stop
        """
        stop_event = stop_event or threading.Event()
        self.start()
        try:
            while not stop_event.wait(timeout=self.poll_interval):
                self.poll()
        except KeyboardInterrupt:
            logger.info("Worker shutting down")
        finally:
            self.stop()


def main():
    """Entry point for standalone worker."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    init_db()
    Worker().run()


if __name__ == "__main__":
    main()
