"""AI job routes: async submission, status polling and synchronous execution

One router is built per job kind, mounted at ``/ai/<kind>``.
"""
import logging
import time
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.dependencies import get_current_user, get_queue_manager
from app.exceptions import JobNotFoundError
from app.queues.processors import JobKind
from app.queues.queue_manager import QueueManager
from app.schemas.jobs import JobStatus, JobStatusResponse, JobSubmittedResponse, JobSummary
from app.utils.responses import format_success_response

logger = logging.getLogger(__name__)


def with_user(payload: Dict[str, Any], user: dict) -> Dict[str, Any]:
    """Stamp the caller's id on the payload; a verified token wins over the body."""
    payload = dict(payload)
    if user["auth_type"] == "jwt" or not payload.get("userId"):
        payload["userId"] = user["user_id"]
    return payload


def build_ai_router(kind: JobKind) -> APIRouter:
    router = APIRouter(prefix=f"/ai/{kind.value}", tags=[kind.value])

    @router.post(
        "/async",
        status_code=status.HTTP_202_ACCEPTED,
        response_model=JobSubmittedResponse,
        response_model_by_alias=True,
    )
    async def submit_job(
        payload: Dict[str, Any] = Body(...),
        user: dict = Depends(get_current_user),
        queue_manager: QueueManager = Depends(get_queue_manager),
    ):
        """
        Validate and enqueue a job.

        Invalid submissions are rejected here and never reach the queue.
        """
        queue = queue_manager.get_queue(kind)
        job_payload = queue.processor.validate(with_user(payload, user))
        job_id = await queue.enqueue(job_payload)

        return JobSubmittedResponse(
            job_id=job_id,
            message=f"{kind.value} job queued",
            estimated_time=queue.estimate_seconds(job_payload),
            poll_url=f"/api/ai/{kind.value}/jobs/{job_id}/status",
        )

    @router.get(
        "/jobs/{job_id}/status",
        response_model=JobStatusResponse,
        response_model_by_alias=True,
    )
    async def get_job_status(
        job_id: str,
        queue_manager: QueueManager = Depends(get_queue_manager),
    ):
        queue = queue_manager.get_queue(kind)
        job = await queue.get_status(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        estimated_remaining = None
        if job.status == JobStatus.PENDING:
            estimated_remaining = round(queue.estimate_seconds(job.payload))
        elif job.status == JobStatus.PROCESSING and job.started_at:
            elapsed = time.time() - job.started_at.timestamp()
            estimated_remaining = max(0, round(queue.estimate_seconds(job.payload) - elapsed))

        return JobStatusResponse(
            job_id=job.id,
            status=job.status,
            progress=queue.progress_of(job),
            estimated_time_remaining=estimated_remaining,
            result=job.result if job.status == JobStatus.COMPLETED else None,
            error=job.error if job.status == JobStatus.FAILED else None,
            created_at=job.created_at,
            updated_at=job.updated_at or job.created_at,
        )

    @router.post("/sync")
    async def run_sync(
        payload: Dict[str, Any] = Body(...),
        user: dict = Depends(get_current_user),
        queue_manager: QueueManager = Depends(get_queue_manager),
    ):
        """Run the same processor inline, bypassing the queue."""
        processor = queue_manager.get_processor(kind)
        job_payload = processor.validate(with_user(payload, user))
        result = await processor.process(job_payload)
        return format_success_response(data=result)

    @router.get("/jobs", response_model=List[JobSummary], response_model_by_alias=True)
    async def list_jobs(
        limit: int = Query(20, ge=1, le=100),
        user: dict = Depends(get_current_user),
        queue_manager: QueueManager = Depends(get_queue_manager),
    ):
        """The caller's recent jobs of this kind."""
        jobs = await queue_manager.get_jobs_for_user(kind, user["user_id"], limit=limit)
        return [JobSummary.from_job(job) for job in jobs]

    @router.get("/stats")
    async def queue_stats(queue_manager: QueueManager = Depends(get_queue_manager)):
        """Job counts per state for this kind's queue."""
        stats = await queue_manager.get_queue(kind).get_stats()
        return format_success_response(data=stats, queue=kind.value)

    return router


routers = [build_ai_router(kind) for kind in JobKind]
