"""Unit tests for the Redis-backed job queue"""
import asyncio
import re
from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.exceptions import InvalidRequestError, QueueUnavailableError, UpstreamAIError
from app.queues.base_queue import BaseQueueService, now_ms
from app.schemas.jobs import Job, JobStatus


class ScriptedProcessor:
    """Processor whose outcomes are scripted per call; the last outcome repeats"""

    def __init__(self, *outcomes, estimate=10):
        self.outcomes = list(outcomes) or [{"ok": True}]
        self.estimate = estimate
        self.calls = []

    def validate(self, payload):
        return payload

    async def process(self, payload):
        self.calls.append(payload)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def estimate_processing_time(self, payload):
        return self.estimate


class SlowProcessor(ScriptedProcessor):
    """Processor that signals when it starts and then takes a while"""

    def __init__(self, seconds=0.2):
        super().__init__({"score": 90})
        self.seconds = seconds
        self.started = asyncio.Event()

    async def process(self, payload):
        self.started.set()
        await asyncio.sleep(self.seconds)
        return await super().process(payload)


class BrokenRedisClient:
    async def get_client(self):
        raise RedisConnectionError("connection refused")


@pytest.fixture
async def make_queue(redis_client):
    queues = []

    def factory(processor, **kwargs):
        options = {"job_id_prefix": "cv", "backoff_seconds": 0, "poll_interval": 0.02}
        options.update(kwargs)
        queue = BaseQueueService("cv-analysis", processor, redis_client, **options)
        queues.append(queue)
        return queue

    yield factory
    for queue in queues:
        await queue.shutdown()


async def wait_for(queue, job_id, status, timeout=3.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        job = await queue.get_status(job_id)
        if job is not None and job.status == status:
            return job
        await asyncio.sleep(0.02)
    raise AssertionError(f"job {job_id} never reached {status.value}")


async def run_next(queue):
    """Lease and run one job inline, without workers"""
    job_id = await queue._lease()
    assert job_id is not None
    await queue._run(job_id)
    return job_id


class TestEnqueue:
    async def test_job_id_format(self, make_queue):
        """Test job ids are prefix, epoch ms and nine hex digits"""
        queue = make_queue(ScriptedProcessor())
        job_id = await queue.enqueue({"userId": "u1"})
        assert re.fullmatch(r"cv_\d{13}_[0-9a-f]{9}", job_id)

    async def test_new_job_is_pending(self, make_queue):
        """Test a fresh job is pending with no attempts"""
        queue = make_queue(ScriptedProcessor())
        job_id = await queue.enqueue({"userId": "u1"})

        job = await queue.get_status(job_id)
        assert job.status == JobStatus.PENDING
        assert job.payload == {"userId": "u1"}
        assert job.attempts == 0
        assert await queue.get_progress(job_id) == 0
        assert (await queue.get_stats())["pending"] == 1

    async def test_unknown_job(self, make_queue):
        """Test unknown ids have no status"""
        queue = make_queue(ScriptedProcessor())
        assert await queue.get_status("cv_0_missing") is None

    async def test_closed_queue_rejects(self, make_queue):
        """Test a shut down queue refuses new jobs"""
        queue = make_queue(ScriptedProcessor())
        await queue.shutdown()
        with pytest.raises(QueueUnavailableError):
            await queue.enqueue({})

    async def test_store_failure_rejects(self):
        """Test an unreachable store surfaces as QUEUE_UNAVAILABLE"""
        queue = BaseQueueService("cv-analysis", ScriptedProcessor(), BrokenRedisClient())
        with pytest.raises(QueueUnavailableError) as exc_info:
            await queue.enqueue({})
        assert exc_info.value.status_code == 503


class TestProcessing:
    async def test_workers_complete_jobs(self, make_queue):
        """Test workers run a job to completion and store the result"""
        processor = ScriptedProcessor({"score": 80})
        queue = make_queue(processor)
        await queue.start()

        job_id = await queue.enqueue({"userId": "u1"})
        job = await wait_for(queue, job_id, JobStatus.COMPLETED)

        assert job.result == {"score": 80}
        assert job.error is None
        assert job.attempts == 1
        assert job.finished_at is not None
        assert await queue.get_progress(job_id) == 100
        stats = await queue.get_stats()
        assert stats["completed"] == 1
        assert stats["pending"] == 0
        assert stats["processing"] == 0

    async def test_each_job_runs_once(self, make_queue):
        """Test concurrent workers never run the same job twice"""
        processor = ScriptedProcessor()
        queue = make_queue(processor, concurrency=3)
        await queue.start()

        job_ids = [await queue.enqueue({"n": i}) for i in range(6)]
        for job_id in job_ids:
            await wait_for(queue, job_id, JobStatus.COMPLETED)
        assert sorted(p["n"] for p in processor.calls) == list(range(6))

    async def test_retryable_error_is_retried(self, make_queue):
        """Test an upstream failure is retried and the error cleared on success"""
        processor = ScriptedProcessor(UpstreamAIError("flaky"), {"score": 70})
        queue = make_queue(processor)
        await queue.start()

        job_id = await queue.enqueue({})
        job = await wait_for(queue, job_id, JobStatus.COMPLETED)
        assert job.attempts == 2
        assert job.result == {"score": 70}
        assert job.error is None

    async def test_retry_waits_in_delayed_set(self, make_queue):
        """Test a retry waits out its backoff before it can be leased"""
        queue = make_queue(ScriptedProcessor(UpstreamAIError("flaky")), backoff_seconds=60)
        job_id = await queue.enqueue({})
        await run_next(queue)

        job = await queue.get_status(job_id)
        assert job.status == JobStatus.PENDING
        assert job.error == "flaky"
        stats = await queue.get_stats()
        assert stats["delayed"] == 1
        assert stats["pending"] == 1
        assert await queue._lease() is None

    async def test_retry_clears_start_time(self, make_queue):
        """Test a job scheduled for retry no longer carries the failed attempt's start time"""
        queue = make_queue(ScriptedProcessor(UpstreamAIError("flaky")), backoff_seconds=60)
        job_id = await queue.enqueue({})
        await run_next(queue)

        job = await queue.get_status(job_id)
        assert job.status == JobStatus.PENDING
        assert job.started_at is None

    async def test_attempts_are_bounded(self, make_queue):
        """Test a job fails permanently after max_attempts"""
        processor = ScriptedProcessor(UpstreamAIError("down"))
        queue = make_queue(processor, max_attempts=3)
        await queue.start()

        job_id = await queue.enqueue({})
        job = await wait_for(queue, job_id, JobStatus.FAILED)
        assert job.attempts == 3
        assert job.error == "down"
        assert len(processor.calls) == 3

    async def test_non_retryable_error_fails_at_once(self, make_queue):
        """Test caller errors fail the job on the first attempt"""
        processor = ScriptedProcessor(InvalidRequestError("bad payload"))
        queue = make_queue(processor)
        job_id = await queue.enqueue({})
        await run_next(queue)

        job = await queue.get_status(job_id)
        assert job.status == JobStatus.FAILED
        assert job.attempts == 1
        assert job.error == "bad payload"
        assert (await queue.get_stats())["failed"] == 1

    async def test_unexpected_error_is_retried(self, make_queue):
        """Test unexpected exceptions count as retryable"""
        queue = make_queue(ScriptedProcessor(KeyError("x"), {"ok": True}))
        job_id = await queue.enqueue({})
        await run_next(queue)
        assert (await queue.get_status(job_id)).status == JobStatus.PENDING
        await run_next(queue)
        assert (await queue.get_status(job_id)).status == JobStatus.COMPLETED


class TestShutdown:
    async def test_in_flight_job_finishes(self, make_queue):
        """Test shutdown waits for the running job and then refuses new ones"""
        processor = SlowProcessor(seconds=0.2)
        queue = make_queue(processor, concurrency=1)
        await queue.start()
        job_id = await queue.enqueue({"userId": "u1"})
        await asyncio.wait_for(processor.started.wait(), timeout=3)

        await queue.shutdown()

        job = await queue.get_status(job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.result == {"score": 90}
        assert not queue.is_running
        with pytest.raises(QueueUnavailableError):
            await queue.enqueue({"userId": "u1"})

    async def test_shutdown_is_idempotent(self, make_queue):
        """Test a second shutdown is a no-op"""
        queue = make_queue(ScriptedProcessor())
        await queue.start()
        await queue.shutdown()
        await queue.shutdown()
        assert not queue.is_running

    async def test_closed_queue_cannot_restart(self, make_queue):
        """Test start after shutdown is refused"""
        queue = make_queue(ScriptedProcessor())
        await queue.shutdown()
        with pytest.raises(QueueUnavailableError):
            await queue.start()


class TestProgress:
    def make_job(self, status, started_seconds_ago=None):
        now = datetime.now(timezone.utc)
        return Job(
            id="cv_1_abc",
            kind="cv-analysis",
            payload={},
            status=status,
            created_at=now,
            started_at=now - timedelta(seconds=started_seconds_ago) if started_seconds_ago is not None else None,
        )

    def make_queue(self, estimate=10):
        return BaseQueueService("cv-analysis", ScriptedProcessor(estimate=estimate), redis_client=None)

    def test_pending_is_zero(self):
        """Test pending jobs report no progress"""
        queue = self.make_queue()
        assert queue.progress_of(self.make_job(JobStatus.PENDING)) == 0

    def test_processing_follows_elapsed_time(self):
        """Test progress is elapsed time over the estimate"""
        queue = self.make_queue()
        assert queue.progress_of(self.make_job(JobStatus.PROCESSING, 5)) == 50

    def test_processing_caps_below_complete(self):
        """Test a running job never reports more than 95"""
        queue = self.make_queue()
        assert queue.progress_of(self.make_job(JobStatus.PROCESSING, 60)) == 95

    def test_terminal_is_complete(self):
        """Test finished jobs report 100"""
        queue = self.make_queue()
        assert queue.progress_of(self.make_job(JobStatus.FAILED)) == 100

    def test_estimate_has_a_floor(self):
        """Test estimates never drop below one second"""
        queue = self.make_queue(estimate=0)
        assert queue.estimate_seconds({}) == 1.0


class TestMaintenance:
    async def test_cleanup_removes_finished_jobs(self, make_queue):
        """Test cleanup deletes finished jobs past the age and keeps pending ones"""
        queue = make_queue(ScriptedProcessor())
        job_id = await queue.enqueue({})
        await run_next(queue)
        pending_id = await queue.enqueue({})

        assert await queue.cleanup_old_jobs(max_age_hours=0) == 1
        assert await queue.get_status(job_id) is None
        assert await queue.get_status(pending_id) is not None

    async def test_cleanup_keeps_recent_jobs(self, make_queue):
        """Test cleanup leaves jobs younger than the age"""
        queue = make_queue(ScriptedProcessor())
        job_id = await queue.enqueue({})
        await run_next(queue)
        assert await queue.cleanup_old_jobs(max_age_hours=24) == 0
        assert await queue.get_status(job_id) is not None

    async def test_completed_set_is_trimmed(self, make_queue):
        """Test only keep_completed finished jobs are retained"""
        queue = make_queue(ScriptedProcessor(), keep_completed=2)
        first = await queue.enqueue({})
        for _ in range(2):
            await queue.enqueue({})
        for _ in range(3):
            await run_next(queue)

        assert (await queue.get_stats())["completed"] == 2
        assert await queue.get_status(first) is None

    async def test_stalled_jobs_are_requeued(self, make_queue, redis_client):
        """Test a job untouched past the threshold goes back to wait"""
        queue = make_queue(ScriptedProcessor())
        job_id = await queue.enqueue({})
        assert await queue._lease() == job_id
        long_ago = now_ms() - 120_000
        client = await redis_client.get_client()
        await client.hset(queue.job_key(job_id), mapping={"started_at": long_ago, "updated_at": long_ago})

        assert await queue.requeue_stalled_jobs(60) == 1

        stats = await queue.get_stats()
        assert stats["processing"] == 0
        assert stats["pending"] == 1
        job = await queue.get_status(job_id)
        assert job.status == JobStatus.PENDING
        assert job.started_at is None

    async def test_recently_leased_job_is_left_alone(self, make_queue):
        """Test a job leased moments ago without a start time is not requeued"""
        queue = make_queue(ScriptedProcessor())
        job_id = await queue.enqueue({})
        assert await queue._lease() == job_id

        assert await queue.requeue_stalled_jobs(60) == 0
        assert (await queue.get_stats())["processing"] == 1

    async def test_recently_updated_job_is_left_alone(self, make_queue, redis_client):
        """Test an old start time does not count when the job was updated recently"""
        queue = make_queue(ScriptedProcessor())
        job_id = await queue.enqueue({})
        assert await queue._lease() == job_id
        client = await redis_client.get_client()
        await client.hset(queue.job_key(job_id), mapping={"started_at": now_ms() - 120_000})

        assert await queue.requeue_stalled_jobs(60) == 0

    async def test_get_all_jobs_newest_first(self, make_queue):
        """Test monitoring listing is newest first"""
        queue = make_queue(ScriptedProcessor())
        first = await queue.enqueue({"n": 1})
        await run_next(queue)
        await asyncio.sleep(0.005)
        second = await queue.enqueue({"n": 2})

        jobs = await queue.get_all_jobs()
        assert [job.id for job in jobs] == [second, first]


class TestUserIndex:
    async def test_newest_first_with_limit(self, make_queue):
        """Test a user's jobs come back newest first, up to the limit"""
        queue = make_queue(ScriptedProcessor())
        ids = []
        for _ in range(3):
            ids.append(await queue.enqueue({"userId": "u1"}))
            await asyncio.sleep(0.005)

        jobs = await queue.get_jobs_for_user("u1", limit=2)
        assert [job.id for job in jobs] == [ids[2], ids[1]]

    async def test_older_jobs_are_not_crowded_out(self, make_queue):
        """Test other users' newer jobs do not hide a user's older job"""
        queue = make_queue(ScriptedProcessor())
        mine = await queue.enqueue({"userId": "u1"})
        for _ in range(150):
            await queue.enqueue({"userId": "u2"})

        jobs = await queue.get_jobs_for_user("u1")
        assert [job.id for job in jobs] == [mine]

    async def test_jobs_without_user_are_not_indexed(self, make_queue):
        """Test jobs without a userId never show up in a user listing"""
        queue = make_queue(ScriptedProcessor())
        await queue.enqueue({})
        assert await queue.get_jobs_for_user("anonymous") == []

    async def test_pruned_jobs_leave_the_index(self, make_queue, redis_client):
        """Test ids of cleaned up jobs are dropped from the user index"""
        queue = make_queue(ScriptedProcessor())
        await queue.enqueue({"userId": "u1"})
        await run_next(queue)
        assert await queue.cleanup_old_jobs(max_age_hours=0) == 1

        assert await queue.get_jobs_for_user("u1") == []
        client = await redis_client.get_client()
        assert await client.zcard(queue.user_key("u1")) == 0
