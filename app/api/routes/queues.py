"""Queue monitoring routes"""
from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_queue_manager
from app.queues.queue_manager import QueueManager
from app.utils.responses import format_success_response

router = APIRouter(prefix="/queues", tags=["queues"])


@router.get("/health")
async def queue_health(queue_manager: QueueManager = Depends(get_queue_manager)):
    health = await queue_manager.get_health_status()
    return format_success_response(data=health)


@router.get("/stats")
async def queue_stats(queue_manager: QueueManager = Depends(get_queue_manager)):
    """Job counts per status for every queue"""
    return format_success_response(data=await queue_manager.get_all_stats())


@router.post("/cleanup")
async def cleanup_queues(
    max_age_hours: float = Query(24, gt=0),
    queue_manager: QueueManager = Depends(get_queue_manager),
):
    """Prune completed and failed jobs older than ``max_age_hours``"""
    removed = await queue_manager.cleanup_all(max_age_hours)
    return format_success_response(data={"removed": removed, "total": sum(removed.values())})
