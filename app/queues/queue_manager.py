"""Owns one queue per job kind"""
import logging
from typing import Any, Dict, List, Mapping, Union

from redis.exceptions import RedisError

from app.core.config import Settings
from app.core.error_codes import ErrorCodeDictionary
from app.core.redis import RedisClient
from app.exceptions import RecruiterError
from app.queues.base_queue import BaseQueueService
from app.queues.processors import JobKind, JobProcessor
from app.schemas.jobs import Job

logger = logging.getLogger(__name__)


class QueueManager:
    """
    Creates and supervises the per-kind queues.

    Built once in the application lifespan and handed to routes through
    ``app.state``; there is no module-level instance.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        processors: Mapping[JobKind, JobProcessor],
        settings: Settings,
    ):
        self.redis_client = redis_client
        self.processors = dict(processors)
        self.queues: Dict[JobKind, BaseQueueService] = {
            kind: BaseQueueService(
                name=kind.value,
                processor=processor,
                redis_client=redis_client,
                key_prefix=settings.queue_key_prefix,
                job_id_prefix=kind.job_id_prefix,
                concurrency=settings.queue_concurrency,
                max_attempts=settings.queue_max_attempts,
                backoff_seconds=settings.queue_backoff_seconds,
                poll_interval=settings.queue_poll_interval,
                keep_completed=settings.queue_keep_completed,
                keep_failed=settings.queue_keep_failed,
                stalled_job_seconds=settings.queue_stalled_job_seconds,
            )
            for kind, processor in self.processors.items()
        }

    @staticmethod
    def resolve_kind(kind: Union[JobKind, str]) -> JobKind:
        try:
            return JobKind(kind)
        except ValueError:
            raise RecruiterError(
                f"Unknown job kind: {kind}",
                error_code=ErrorCodeDictionary.UNKNOWN_JOB_KIND,
            ) from None

    def get_queue(self, kind: Union[JobKind, str]) -> BaseQueueService:
        resolved = self.resolve_kind(kind)
        if resolved not in self.queues:
            raise RecruiterError(
                f"No queue registered for {resolved.value}",
                error_code=ErrorCodeDictionary.UNKNOWN_JOB_KIND,
            )
        return self.queues[resolved]

    def get_processor(self, kind: Union[JobKind, str]) -> JobProcessor:
        return self.get_queue(kind).processor

    async def start(self):
        for queue in self.queues.values():
            await queue.start()
        logger.info("queue manager started %d queues", len(self.queues))

    async def get_jobs_for_user(self, kind: Union[JobKind, str], user_id: str, limit: int = 20) -> List[Job]:
        return await self.get_queue(kind).get_jobs_for_user(user_id, limit=limit)

    async def get_all_stats(self) -> Dict[str, Dict[str, int]]:
        return {kind.value: await queue.get_stats() for kind, queue in self.queues.items()}

    async def get_health_status(self) -> Dict[str, Any]:
        """Redis reachability plus per-queue stats."""
        try:
            redis_ok = await self.redis_client.ping()
            stats = await self.get_all_stats() if redis_ok else {}
        except (RedisError, OSError) as e:
            logger.error("queue health check failed: %s", e)
            return {"healthy": False, "redis": False, "queues": {}, "error": str(e)}

        workers_ok = all(queue.is_running for queue in self.queues.values())
        return {
            "healthy": redis_ok and workers_ok,
            "redis": redis_ok,
            "workers": {kind.value: queue.is_running for kind, queue in self.queues.items()},
            "queues": stats,
        }

    async def cleanup_all(self, max_age_hours: float = 24) -> Dict[str, int]:
        removed = {}
        for kind, queue in self.queues.items():
            removed[kind.value] = await queue.cleanup_old_jobs(max_age_hours)
        return removed

    async def shutdown_all(self):
        """Shut down every queue; the Redis client is released by its owner."""
        for queue in self.queues.values():
            await queue.shutdown()
        logger.info("all queues shut down")
