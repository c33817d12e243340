"""Command-line trigger for scans.

Usage::

    scanjobs scan-posts
    scanjobs scan-posts --types=post,page --batch-size=75
    scanjobs status
    scanjobs reset
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from scanjobs.config import settings
from scanjobs.database import init_db
from scanjobs.errors import AlreadyRunning, ScanError
from scanjobs.schemas.scan import ScanRequest
from scanjobs.services.progress import ProgressEvent, RecordProcessed, ScanFinished, ScanStarted
from scanjobs.services.scan_service import ScanService
from scanjobs.worker import build_service

__all__ = ["build_parser", "main"]

logger = logging.getLogger(__name__)


class ProgressPrinter:
    """Prints a tick per processed record and a closing line."""

    def __init__(self, stream=None, width: int = 50):
        self.stream = stream or sys.stdout
        self.width = width
        self.total = 0
        self.count = 0
        self.active = False

    def __call__(self, event: ProgressEvent) -> None:
        if isinstance(event, ScanStarted):
            self.total = max(1, event.job.total)
            self.count = 0
            self.active = True
            self.stream.write(f"Scanning records: 0/{event.job.total}\n")
        elif isinstance(event, RecordProcessed) and self.active:
            self.count += 1
            self.stream.write(".")
            if self.count % self.width == 0 or self.count == self.total:
                self.stream.write(f" {self.count}/{self.total}\n")
        elif isinstance(event, ScanFinished):
            self.finish()
        self.stream.flush()

    def finish(self) -> None:
        if self.active and self.count % self.width and self.count != self.total:
            self.stream.write("\n")
        self.active = False


def register_scan_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach options for ``scanjobs scan-posts``."""

    parser.add_argument(
        "--types",
        "--post-types",
        dest="types",
        default="",
        help='Comma-separated list of record types. Defaults to "post,page".',
    )
    parser.add_argument(
        "--batch-size",
        dest="batch_size",
        type=int,
        default=settings.DEFAULT_BATCH_SIZE,
        help=(
            f"Number of records per batch (between {settings.MIN_BATCH_SIZE} "
            f"and {settings.MAX_BATCH_SIZE}). Default {settings.DEFAULT_BATCH_SIZE}."
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scanjobs", description="Scan records in batches.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan-posts", help="Scan records and stamp their last-scan time.")
    register_scan_arguments(scan)
    scan.set_defaults(handler=scan_posts)

    status = subparsers.add_parser("status", help="Print the current scan status as JSON.")
    status.set_defaults(handler=show_status)

    reset = subparsers.add_parser("reset", help="Clear the current scan job.")
    reset.set_defaults(handler=reset_job)

    return parser


def scan_posts(args: argparse.Namespace, service: ScanService) -> int:
    """Run a blocking scan with progress output."""

    if service.is_running():
        raise AlreadyRunning("A scan is already running. Retry once it has completed.")

    types = [value.strip() for value in (args.types or "").split(",") if value.strip()]

    print("Starting scan…")
    progress = ProgressPrinter()
    try:
        result = service.start_scan(
            ScanRequest(record_types=types, batch_size=args.batch_size),
            origin="cli",
            async_=False,
            progress_sink=progress,
        )
    finally:
        progress.finish()

    print(
        "Success: Scan completed: {processed}/{total} records updated ({types}).".format(
            processed=result.get("processed", 0),
            total=result.get("total", 0),
            types=", ".join(result.get("record_types", [])),
        )
    )
    return 0


def show_status(args: argparse.Namespace, service: ScanService) -> int:
    print(json.dumps(service.get_status(), indent=2, sort_keys=True))
    return 0


def reset_job(args: argparse.Namespace, service: ScanService) -> int:
    service.clear_job()
    print("Scan job cleared.")
    return 0


def main(argv: Optional[Sequence[str]] = None, service: Optional[ScanService] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if service is None:
        init_db()
        service = build_service()

    try:
        return args.handler(args, service)
    except ScanError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
