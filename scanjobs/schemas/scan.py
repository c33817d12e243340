"""Scan-related Pydantic schemas."""

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class ScanRequest(BaseModel):
    """Schema for starting a scan."""

    record_types: Union[List[str], str] = Field(default_factory=list)
    batch_size: Optional[int] = None


class Job(BaseModel):
    """The single mutable scan job, persisted as one option value."""

    id: str
    status: str  # 'queued', 'running', 'completed'
    record_types: List[str]
    batch_size: int
    total: int
    processed: int = 0
    queue: List[Optional[int]] = Field(default_factory=list)
    created_at: int
    started_at: Optional[int] = None
    finished_at: Optional[int] = None
    origin: str
    initiated_by: Optional[str] = None
    last_error: str = ""

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.processed)

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return (self.processed * 100) // self.total


class Summary(BaseModel):
    """Snapshot of the most recently completed job."""

    total: int
    processed: int
    record_types: List[str]
    finished_at: Optional[int]
    origin: str


class ClearResponse(BaseModel):
    """Response after clearing the job."""

    message: str
