"""FastAPI application entry point."""

import logging
import threading
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scanjobs import __version__
from scanjobs.config import settings
from scanjobs.errors import ScanError
from scanjobs.routes import scans
from scanjobs.services.scan_service import ScanService
from scanjobs.worker import Worker, build_service

logger = logging.getLogger(__name__)


def create_app(service: Optional[ScanService] = None, run_scheduler: Optional[bool] = None) -> FastAPI:
    """Build the application around one scan service."""
    if run_scheduler is None:
        run_scheduler = settings.RUN_SCHEDULER
    owns_database = service is None

    app = FastAPI(
        title="Scan Jobs",
        description="Durable single-flight batch-scan job manager",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(scans.router)

    app.state.scan_service = service or build_service()
    app.state.worker = None
    app.state.worker_thread = None
    app.state.worker_stop_event = threading.Event()

    @app.exception_handler(ScanError)
    async def scan_error_handler(request: Request, exc: ScanError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.on_event("startup")
    async def startup_event():
        """Start the background worker when the app starts."""
        logger.info("Starting application...")

        if owns_database:
            from scanjobs.database import init_db

            init_db()

        if run_scheduler:
            app.state.worker = Worker(app.state.scan_service)
            logger.info("Starting background worker thread...")
            app.state.worker_thread = threading.Thread(
                target=app.state.worker.run,
                args=(app.state.worker_stop_event,),
                daemon=True,
            )
            app.state.worker_thread.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the background worker when the app shuts down."""
        logger.info("Shutting down application...")
        app.state.worker_stop_event.set()

        # Wait for worker thread to finish (with timeout)
        worker_thread = app.state.worker_thread
        if worker_thread and worker_thread.is_alive():
            worker_thread.join(timeout=10)
            logger.info("Background worker thread stopped")

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = create_app()
