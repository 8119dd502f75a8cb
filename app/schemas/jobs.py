"""Pydantic schemas for queued jobs and their HTTP responses"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field

from app.schemas.ai import CamelModel


class JobStatus(str, Enum):
    """Lifecycle of a queued job. COMPLETED and FAILED are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def ms_to_datetime(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class Job(BaseModel):
    """A unit of queued work as stored by the queue backend"""

    id: str
    kind: str
    payload: Dict[str, Any]
    status: JobStatus
    attempts: int = 0
    max_attempts: int = 3
    result: Optional[Any] = None
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def processing_time_ms(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds() * 1000
        return None


class JobSubmittedResponse(CamelModel):
    """Response model for an accepted async job"""

    success: bool = True
    job_id: str
    message: str
    status: str = JobStatus.PENDING.value
    estimated_time: float
    poll_url: str


class JobStatusResponse(CamelModel):
    """Response model for job status"""

    success: bool = True
    job_id: str
    status: JobStatus
    progress: int = Field(0, ge=0, le=100, description="Progress from 0 to 100")
    estimated_time_remaining: Optional[int] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class JobSummary(CamelModel):
    """Job listing entry for monitoring endpoints"""

    job_id: str
    status: JobStatus
    attempts: int
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    processing_time: Optional[float] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        return cls(
            job_id=job.id,
            status=job.status,
            attempts=job.attempts,
            error=job.error,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.finished_at,
            processing_time=job.processing_time_ms,
        )
