"""Redis-backed cache for AI results and rate-limit counters.

The cache is a best-effort optimization: store failures are logged and
treated as a miss (reads) or a no-op (writes), never raised to the caller.
"""
import hashlib
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from redis.exceptions import RedisError

from app.core.redis import RedisClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_HASH_LENGTH = 16
RATE_LIMIT_PREFIX = "rate_limit:"

STORE_ERRORS = (RedisError, OSError)


def canonical_json(data: Any) -> str:
    """Serialize ``data`` so that equal payloads always produce equal text."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def hash_payload(data: Any) -> str:
    """Fixed-width digest of the canonical JSON form of ``data``."""
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()[:KEY_HASH_LENGTH]


def _sorted_strings(values: Optional[Iterable[str]]) -> List[str]:
    return sorted(v.strip() for v in (values or []) if v is not None)


class CacheService:
    """Keyed JSON cache with TTLs on top of the shared Redis store."""

    def __init__(
        self,
        redis_client: RedisClient,
        key_prefix: str = "smart-recruiter:",
        default_ttl: int = 3600,
    ):
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl

    def generate_key(self, key: str, data: Any = None, prefix: Optional[str] = None) -> str:
        """
        Build a cache key.

        Args:
            key: Logical key (e.g. ``cv_analysis``)
            data: Fields that affect the cached value; hashed into the key
            prefix: Overrides the service key prefix

        Returns:
            ``prefix + key`` or ``prefix + key + ':' + digest``
        """
        final_key = f"{prefix if prefix is not None else self.key_prefix}{key}"
        if data is not None:
            final_key += f":{hash_payload(data)}"
        return final_key

    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value stored under ``key`` or None."""
        start = time.perf_counter()
        try:
            client = await self.redis_client.get_client()
            raw = await client.get(key)
        except STORE_ERRORS as e:
            logger.warning("cache get failed for %s: %s", key, e)
            return None

        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug("cache_get key=%s hit=%s duration_ms=%.1f", key, raw is not None, duration_ms)

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache entry %s is not valid JSON, ignoring", key)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store ``value`` as JSON under ``key`` for ``ttl`` seconds."""
        ttl = ttl or self.default_ttl
        try:
            payload = json.dumps(value, default=str)
            client = await self.redis_client.get_client()
            await client.set(key, payload, ex=ttl)
        except STORE_ERRORS as e:
            logger.warning("cache set failed for %s: %s", key, e)
            return False
        except (TypeError, ValueError) as e:
            logger.warning("cache value for %s is not serializable: %s", key, e)
            return False
        logger.debug("cache_set key=%s ttl=%s", key, ttl)
        return True

    async def delete(self, key: str) -> bool:
        try:
            client = await self.redis_client.get_client()
            return bool(await client.delete(key))
        except STORE_ERRORS as e:
            logger.warning("cache delete failed for %s: %s", key, e)
            return False

    async def get_or_set(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        ttl: Optional[int] = None,
    ) -> T:
        """
        Read-through helper.

        Not lock-protected: concurrent misses on the same key each call
        ``fetch`` and the last write wins. Errors raised by ``fetch``
        propagate and nothing is cached.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.info("cache hit for %s", key)
            return cached

        logger.info("cache miss for %s", key)
        result = await fetch()
        await self.set(key, result, ttl)
        return result

    async def multi_get(self, keys: List[str]) -> List[Optional[Any]]:
        if not keys:
            return []
        try:
            client = await self.redis_client.get_client()
            raw_values = await client.mget(keys)
        except STORE_ERRORS as e:
            logger.warning("cache multi get failed: %s", e)
            return [None] * len(keys)

        values: List[Optional[Any]] = []
        for raw in raw_values:
            try:
                values.append(json.loads(raw) if raw is not None else None)
            except ValueError:
                values.append(None)
        return values

    # ---------- Domain keys ----------
    def cv_analysis_key(self, cv_text: str, job_requirements: str, user_id: str) -> str:
        return self.generate_key(
            "cv_analysis",
            {"cvText": cv_text, "jobRequirements": job_requirements, "userId": user_id},
        )

    def questions_key(
        self,
        job_title: str,
        skills: Iterable[str],
        count: int,
        difficulty: str,
        question_type: str,
    ) -> str:
        return self.generate_key(
            "questions",
            {
                "jobTitle": job_title,
                "skills": _sorted_strings(skills),
                "count": count,
                "difficulty": difficulty,
                "type": question_type,
            },
        )

    def interview_analysis_key(self, session_id: str, user_id: str, answers: Dict[str, str]) -> str:
        return self.generate_key(
            "interview_analysis",
            {"sessionId": session_id, "userId": user_id, "answers": answers},
        )

    def job_requirements_key(
        self,
        job_title: str,
        industry: str,
        seniority: str,
        company_size: str,
        location: str,
        user_id: str,
    ) -> str:
        return self.generate_key(
            "job_requirements",
            {
                "jobTitle": job_title,
                "industry": industry,
                "seniority": seniority,
                "companySize": company_size,
                "location": location,
                "userId": user_id,
            },
        )

    # ---------- Rate limiting counters ----------
    @staticmethod
    def rate_limit_key(identifier: str, endpoint: str) -> str:
        return f"{RATE_LIMIT_PREFIX}{identifier}:{endpoint}"

    async def get_rate_limit_count(self, identifier: str, endpoint: str) -> int:
        try:
            client = await self.redis_client.get_client()
            count = await client.get(self.rate_limit_key(identifier, endpoint))
        except STORE_ERRORS as e:
            logger.warning("rate limit read failed for %s: %s", identifier, e)
            return 0
        return int(count) if count else 0

    async def increment_rate_limit(self, identifier: str, endpoint: str, window_seconds: int) -> int:
        """
        Increment the fixed-window counter and return the new count.

        The window starts on the first increment; the key expires with it.
        Store errors propagate so the caller decides how to fail.
        """
        key = self.rate_limit_key(identifier, endpoint)
        client = await self.redis_client.get_client()
        count = await client.incr(key)
        if count == 1:
            await client.expire(key, window_seconds)
        return int(count)

    async def get_rate_limit_ttl(self, identifier: str, endpoint: str) -> Optional[int]:
        try:
            client = await self.redis_client.get_client()
            ttl = await client.ttl(self.rate_limit_key(identifier, endpoint))
        except STORE_ERRORS:
            return None
        return ttl if ttl and ttl > 0 else None

    # ---------- Health ----------
    async def health_check(self) -> bool:
        key = self.generate_key("health_check")
        value = {"timestamp": time.time()}
        await self.set(key, value, ttl=60)
        retrieved = await self.get(key)
        await self.delete(key)
        return retrieved is not None
