"""Redis-backed job queue (BullMQ-compatible layout)

Keys, all under ``{prefix}{name}``:

    :wait       list of job ids ready to run (FIFO)
    :active     list of job ids leased by a worker
    :delayed    zset of job ids waiting out a retry backoff, scored by due time
    :completed  zset of finished job ids, scored by finish time
    :failed     zset of permanently failed job ids, scored by finish time
    :job:{id}   hash holding the job record
    :user:{id}  zset of a user's job ids, scored by creation time

Timestamps are epoch milliseconds. A job id is leased by an atomic LMOVE from
``wait`` to ``active``, so at most one worker runs a given job at a time.
"""
import asyncio
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from app.core.redis import RedisClient
from app.exceptions import QueueUnavailableError, RecruiterError
from app.queues.processors import JobProcessor
from app.schemas.jobs import Job, JobStatus, ms_to_datetime

logger = logging.getLogger(__name__)

STORE_ERRORS = (RedisError, OSError)

PROMOTE_BATCH = 100


def now_ms() -> float:
    return time.time() * 1000


class BaseQueueService:
    """
    One named queue with its own worker pool.

    The queue does not validate payloads; callers validate before enqueueing.
    Processor failures are retried with exponential backoff up to
    ``max_attempts``; non-retryable errors fail the job at once.
    """

    def __init__(
        self,
        name: str,
        processor: JobProcessor,
        redis_client: RedisClient,
        key_prefix: str = "queue:",
        job_id_prefix: Optional[str] = None,
        concurrency: int = 2,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        poll_interval: float = 0.5,
        keep_completed: int = 100,
        keep_failed: int = 50,
        stalled_job_seconds: int = 0,
    ):
        self.name = name
        self.processor = processor
        self.redis_client = redis_client
        self.job_id_prefix = job_id_prefix or name.replace("-", "_")
        self.concurrency = max(1, concurrency)
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.poll_interval = poll_interval
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed
        self.stalled_job_seconds = stalled_job_seconds

        base = f"{key_prefix}{name}"
        self.wait_key = f"{base}:wait"
        self.active_key = f"{base}:active"
        self.delayed_key = f"{base}:delayed"
        self.completed_key = f"{base}:completed"
        self.failed_key = f"{base}:failed"
        self._job_key_prefix = f"{base}:job:"
        self._user_key_prefix = f"{base}:user:"

        self._workers: List[asyncio.Task] = []
        self._running = False
        self._closed = False
        self._stopping = asyncio.Event()

    def job_key(self, job_id: str) -> str:
        return f"{self._job_key_prefix}{job_id}"

    def user_key(self, user_id: str) -> str:
        return f"{self._user_key_prefix}{user_id}"

    @property
    def is_running(self) -> bool:
        return self._running

    # ---------- Producer side ----------
    async def enqueue(self, payload: Dict[str, Any]) -> str:
        """
        Persist a job and make it available to workers.

        Raises:
            QueueUnavailableError: Redis unreachable or queue shut down
        """
        if self._closed:
            raise QueueUnavailableError(f"Queue {self.name} is shutting down")

        created = now_ms()
        job_id = f"{self.job_id_prefix}_{int(created)}_{uuid.uuid4().hex[:9]}"
        record = {
            "id": job_id,
            "kind": self.name,
            "payload": json.dumps(payload),
            "status": JobStatus.PENDING.value,
            "attempts": 0,
            "max_attempts": self.max_attempts,
            "created_at": created,
            "updated_at": created,
        }

        try:
            client = await self.redis_client.get_client()
            async with client.pipeline(transaction=True) as pipe:
                pipe.hset(self.job_key(job_id), mapping=record)
                pipe.rpush(self.wait_key, job_id)
                if payload.get("userId"):
                    pipe.zadd(self.user_key(str(payload["userId"])), {job_id: created})
                await pipe.execute()
        except STORE_ERRORS as e:
            logger.error("failed to enqueue %s job: %s", self.name, e)
            raise QueueUnavailableError(context={"queue": self.name}) from e

        logger.info("enqueued job %s on %s", job_id, self.name)
        return job_id

    # ---------- Introspection ----------
    async def get_status(self, job_id: str) -> Optional[Job]:
        """Return the job, or None if the id is unknown or was pruned."""
        client = await self.redis_client.get_client()
        data = await client.hgetall(self.job_key(job_id))
        if not data:
            return None
        return self._to_job(data)

    async def get_progress(self, job_id: str) -> int:
        """
        Heuristic progress from elapsed time against the processor estimate.

        Processors report no checkpoints, so a running job tops out at 95.
        """
        job = await self.get_status(job_id)
        if job is None:
            return 0
        return self.progress_of(job)

    def progress_of(self, job: Job) -> int:
        if job.status.is_terminal:
            return 100
        if job.status != JobStatus.PROCESSING or job.started_at is None:
            return 0
        elapsed = time.time() - job.started_at.timestamp()
        estimate = self.estimate_seconds(job.payload)
        return max(0, min(round(elapsed / estimate * 100), 95))

    def estimate_seconds(self, payload: Dict[str, Any]) -> float:
        return max(float(self.processor.estimate_processing_time(payload)), 1.0)

    async def get_stats(self) -> Dict[str, int]:
        """Counts per status; ``pending`` includes jobs waiting out a retry."""
        client = await self.redis_client.get_client()
        async with client.pipeline(transaction=False) as pipe:
            pipe.llen(self.wait_key)
            pipe.llen(self.active_key)
            pipe.zcard(self.delayed_key)
            pipe.zcard(self.completed_key)
            pipe.zcard(self.failed_key)
            waiting, active, delayed, completed, failed = await pipe.execute()
        return {
            "pending": int(waiting) + int(delayed),
            "processing": int(active),
            "completed": int(completed),
            "failed": int(failed),
            "delayed": int(delayed),
        }

    async def get_all_jobs(self, limit: int = 50) -> List[Job]:
        """Most recently created jobs across every state."""
        client = await self.redis_client.get_client()
        ids = set(await client.lrange(self.active_key, 0, -1))
        ids.update(await client.lrange(self.wait_key, 0, limit - 1))
        ids.update(await client.zrange(self.delayed_key, 0, limit - 1))
        ids.update(await client.zrevrange(self.completed_key, 0, limit - 1))
        ids.update(await client.zrevrange(self.failed_key, 0, limit - 1))

        jobs = []
        for job_id in ids:
            data = await client.hgetall(self.job_key(job_id))
            if data:
                jobs.append(self._to_job(data))
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    async def get_jobs_for_user(self, user_id: str, limit: int = 20) -> List[Job]:
        """
        Newest jobs submitted by ``user_id``, read from the per-user index.

        Ids whose job was pruned are dropped from the index on the way.
        """
        client = await self.redis_client.get_client()
        user_key = self.user_key(user_id)
        jobs: List[Job] = []
        stale: List[str] = []
        start = 0
        while len(jobs) < limit:
            ids = await client.zrevrange(user_key, start, start + limit - 1)
            if not ids:
                break
            for job_id in ids:
                data = await client.hgetall(self.job_key(job_id))
                if data:
                    jobs.append(self._to_job(data))
                else:
                    stale.append(job_id)
            start += len(ids)
        if stale:
            await client.zrem(user_key, *stale)
        return jobs[:limit]

    # ---------- Maintenance ----------
    async def cleanup_old_jobs(self, max_age_hours: float = 24) -> int:
        """Delete completed and failed jobs that finished before the cutoff."""
        cutoff = now_ms() - max_age_hours * 3600 * 1000
        client = await self.redis_client.get_client()
        removed = 0
        for key in (self.completed_key, self.failed_key):
            old_ids = await client.zrangebyscore(key, "-inf", cutoff)
            if old_ids:
                removed += await self._delete_jobs(client, key, old_ids)
        if removed:
            logger.info("cleaned up %d old jobs from %s", removed, self.name)
        return removed

    async def requeue_stalled_jobs(self, max_processing_seconds: float) -> int:
        """
        Move jobs stuck in ``active`` longer than the threshold back to ``wait``.

        A job is judged by its latest ``started_at``/``updated_at`` stamp, so a
        job another instance has just leased or started is left alone.
        """
        client = await self.redis_client.get_client()
        cutoff = now_ms() - max_processing_seconds * 1000
        requeued = 0
        for job_id in await client.lrange(self.active_key, 0, -1):
            stamps = await client.hmget(self.job_key(job_id), "started_at", "updated_at")
            seen = [float(stamp) for stamp in stamps if stamp not in (None, "")]
            if seen and max(seen) > cutoff:
                continue
            if await client.lrem(self.active_key, 1, job_id):
                async with client.pipeline(transaction=True) as pipe:
                    pipe.hset(
                        self.job_key(job_id),
                        mapping={"status": JobStatus.PENDING.value, "updated_at": now_ms()},
                    )
                    pipe.hdel(self.job_key(job_id), "started_at")
                    pipe.rpush(self.wait_key, job_id)
                    await pipe.execute()
                requeued += 1
        if requeued:
            logger.warning("requeued %d stalled jobs on %s", requeued, self.name)
        return requeued

    async def _delete_jobs(self, client, set_key: str, job_ids: List[str]) -> int:
        async with client.pipeline(transaction=True) as pipe:
            for job_id in job_ids:
                pipe.delete(self.job_key(job_id))
            pipe.zrem(set_key, *job_ids)
            results = await pipe.execute()
        return int(results[-1])

    async def _trim(self, client, set_key: str, keep: int):
        count = await client.zcard(set_key)
        if count <= keep:
            return
        old_ids = await client.zrange(set_key, 0, count - keep - 1)
        if old_ids:
            await self._delete_jobs(client, set_key, old_ids)

    # ---------- Workers ----------
    async def start(self):
        """Spawn the worker pool. Calling it twice is a no-op."""
        if self._running:
            return
        if self._closed:
            raise QueueUnavailableError(f"Queue {self.name} has been shut down")
        if self.stalled_job_seconds > 0:
            await self.requeue_stalled_jobs(self.stalled_job_seconds)

        self._running = True
        self._stopping.clear()
        self._workers = [
            asyncio.create_task(self._worker_loop(i), name=f"{self.name}-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info("started %d workers for %s", self.concurrency, self.name)

    async def shutdown(self):
        """Stop accepting jobs, let in-flight jobs finish, stop the workers."""
        self._closed = True
        self._running = False
        self._stopping.set()
        if self._workers:
            await asyncio.gather(*self._workers)
            self._workers = []
        logger.info("queue %s shut down", self.name)

    async def _idle(self):
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def _worker_loop(self, worker_id: int):
        while self._running:
            try:
                job_id = await self._lease()
            except STORE_ERRORS as e:
                logger.error("%s worker %d cannot reach redis: %s", self.name, worker_id, e)
                await self._idle()
                continue

            if job_id is None:
                await self._idle()
                continue

            try:
                await self._run(job_id)
            except STORE_ERRORS as e:
                # Job stays in the active list; stall recovery picks it up
                logger.error("%s worker %d lost job %s: %s", self.name, worker_id, job_id, e)

    async def _lease(self) -> Optional[str]:
        client = await self.redis_client.get_client()
        await self._promote_delayed(client)
        return await client.lmove(self.wait_key, self.active_key, "LEFT", "RIGHT")

    async def _promote_delayed(self, client):
        due = await client.zrangebyscore(self.delayed_key, "-inf", now_ms(), start=0, num=PROMOTE_BATCH)
        for job_id in due:
            # ZREM decides which worker promotes the job
            if await client.zrem(self.delayed_key, job_id):
                await client.rpush(self.wait_key, job_id)

    async def _run(self, job_id: str):
        client = await self.redis_client.get_client()
        job_key = self.job_key(job_id)

        raw_payload = await client.hget(job_key, "payload")
        if raw_payload is None:
            logger.warning("job %s vanished before processing", job_id)
            await client.lrem(self.active_key, 1, job_id)
            return

        attempts = await client.hincrby(job_key, "attempts", 1)
        started = now_ms()
        await client.hset(
            job_key,
            mapping={"status": JobStatus.PROCESSING.value, "started_at": started, "updated_at": started},
        )
        logger.info("processing job %s (attempt %d/%d)", job_id, attempts, self.max_attempts)

        try:
            result = await self.processor.process(json.loads(raw_payload))
        except RecruiterError as e:
            await self._handle_failure(client, job_id, attempts, e.message, e.retryable)
        except Exception as e:
            logger.exception("job %s raised an unexpected error", job_id)
            await self._handle_failure(client, job_id, attempts, str(e) or type(e).__name__, True)
        else:
            await self._complete(client, job_id, result, started)

    async def _complete(self, client, job_id: str, result: Any, started: float):
        finished = now_ms()
        async with client.pipeline(transaction=True) as pipe:
            pipe.hset(
                self.job_key(job_id),
                mapping={
                    "status": JobStatus.COMPLETED.value,
                    "result": json.dumps(result),
                    "finished_at": finished,
                    "updated_at": finished,
                },
            )
            pipe.hdel(self.job_key(job_id), "error")
            pipe.lrem(self.active_key, 1, job_id)
            pipe.zadd(self.completed_key, {job_id: finished})
            await pipe.execute()
        logger.info("job %s completed in %.0fms", job_id, finished - started)
        await self._trim(client, self.completed_key, self.keep_completed)

    async def _handle_failure(self, client, job_id: str, attempts: int, error: str, retryable: bool):
        now = now_ms()
        if retryable and attempts < self.max_attempts:
            delay_ms = self.backoff_seconds * 2 ** (attempts - 1) * 1000
            async with client.pipeline(transaction=True) as pipe:
                pipe.hset(
                    self.job_key(job_id),
                    mapping={"status": JobStatus.PENDING.value, "error": error, "updated_at": now},
                )
                pipe.hdel(self.job_key(job_id), "started_at")
                pipe.lrem(self.active_key, 1, job_id)
                pipe.zadd(self.delayed_key, {job_id: now + delay_ms})
                await pipe.execute()
            logger.warning(
                "job %s failed (attempt %d/%d), retrying in %.1fs: %s",
                job_id, attempts, self.max_attempts, delay_ms / 1000, error,
            )
            return

        async with client.pipeline(transaction=True) as pipe:
            pipe.hset(
                self.job_key(job_id),
                mapping={
                    "status": JobStatus.FAILED.value,
                    "error": error,
                    "finished_at": now,
                    "updated_at": now,
                },
            )
            pipe.lrem(self.active_key, 1, job_id)
            pipe.zadd(self.failed_key, {job_id: now})
            await pipe.execute()
        logger.error("job %s failed permanently after %d attempt(s): %s", job_id, attempts, error)
        await self._trim(client, self.failed_key, self.keep_failed)

    @staticmethod
    def _to_job(data: Dict[str, str]) -> Job:
        def ms(field: str) -> Optional[float]:
            value = data.get(field)
            return float(value) if value not in (None, "") else None

        return Job(
            id=data["id"],
            kind=data.get("kind", ""),
            payload=json.loads(data.get("payload") or "{}"),
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
            attempts=int(data.get("attempts", 0)),
            max_attempts=int(data.get("max_attempts", 3)),
            result=json.loads(data["result"]) if "result" in data else None,
            error=data.get("error"),
            created_at=ms_to_datetime(ms("created_at")),
            started_at=ms_to_datetime(ms("started_at")),
            finished_at=ms_to_datetime(ms("finished_at")),
            updated_at=ms_to_datetime(ms("updated_at")),
        )
