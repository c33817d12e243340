"""Progress events emitted while a scan drains."""

from dataclasses import dataclass
from typing import Callable, Optional, Union

from scanjobs.schemas.scan import Job


@dataclass(frozen=True)
class ScanStarted:
    job: Job


@dataclass(frozen=True)
class RecordProcessed:
    job: Job
    record_id: int


@dataclass(frozen=True)
class ScanFinished:
    job: Job


ProgressEvent = Union[ScanStarted, RecordProcessed, ScanFinished]
ProgressSink = Callable[[ProgressEvent], None]


def emit(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    """Deliver an event to the sink, if any, on the caller's thread."""
    if sink is not None:
        sink(event)
