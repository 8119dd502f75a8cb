"""Fixed-window rate limiting per endpoint class"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.auth import is_admin, try_resolve_user
from app.core.config import Settings
from app.core.error_codes import ErrorCode, ErrorCodeDictionary
from app.exceptions import RateLimitExceededError
from app.services.cache import CacheService

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/health", "/", "/docs", "/openapi.json", "/redoc"}


@dataclass(frozen=True)
class RateLimitRule:
    window_seconds: int
    max_requests: int
    error_code: ErrorCode


def build_rate_limit_config(settings: Settings) -> Dict[str, RateLimitRule]:
    """Limits per endpoint class; the general class comes from settings."""
    return {
        "general": RateLimitRule(
            settings.rate_limit_window_seconds,
            settings.rate_limit_max_requests,
            ErrorCodeDictionary.RATE_LIMIT_EXCEEDED,
        ),
        "ai": RateLimitRule(15 * 60, 20, ErrorCodeDictionary.AI_RATE_LIMIT_EXCEEDED),
        "payment": RateLimitRule(60 * 60, 5, ErrorCodeDictionary.PAYMENT_RATE_LIMIT_EXCEEDED),
        "auth": RateLimitRule(15 * 60, 10, ErrorCodeDictionary.AUTH_RATE_LIMIT_EXCEEDED),
        "upload": RateLimitRule(60, 10, ErrorCodeDictionary.UPLOAD_RATE_LIMIT_EXCEEDED),
    }


# Routes that start model work; polling and listing under /ai/ stay in "general"
AI_GENERATION_SUFFIXES = ("/async", "/sync", "/batch", "/by-difficulty")


def classify_path(path: str, method: str = "POST") -> str:
    """Map a request to its endpoint class"""
    lowered = path.lower().rstrip("/")
    if method.upper() == "POST" and (
        ("/ai/" in lowered and lowered.endswith(AI_GENERATION_SUFFIXES))
        or "/analyze" in lowered
        or "/generate" in lowered
    ):
        return "ai"
    if "/payment" in lowered or "/stripe" in lowered:
        return "payment"
    if "/auth" in lowered or "/login" in lowered or "/register" in lowered:
        return "auth"
    if "/upload" in lowered:
        return "upload"
    return "general"


def get_identifier(request: Request, user: Optional[dict]) -> str:
    """``user:<id>`` for authenticated callers, ``ip:<address>`` otherwise"""
    if user and user.get("auth_type") == "jwt":
        return f"user:{user['user_id']}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


class RateLimiter:
    """Counts requests in fixed windows on top of the cache's counters"""

    def __init__(self, cache: CacheService, config: Dict[str, RateLimitRule]):
        self.cache = cache
        self.config = config

    async def hit(self, identifier: str, endpoint_class: str) -> Tuple[int, RateLimitRule]:
        """
        Count one request. The window starts with the first request and the
        counter expires with it.

        Raises:
            RateLimitExceededError: count exceeds the class limit
            RedisError: the counter store failed
        """
        rule = self.config[endpoint_class]
        count = await self.cache.increment_rate_limit(identifier, endpoint_class, rule.window_seconds)
        if count > rule.max_requests:
            retry_after = await self.cache.get_rate_limit_ttl(identifier, endpoint_class)
            raise RateLimitExceededError(rule.error_code, retry_after or rule.window_seconds)
        return count, rule

    async def status(self, identifier: str) -> Dict[str, Dict[str, int]]:
        result = {}
        for endpoint_class, rule in self.config.items():
            count = await self.cache.get_rate_limit_count(identifier, endpoint_class)
            ttl = await self.cache.get_rate_limit_ttl(identifier, endpoint_class)
            result[endpoint_class] = {
                "limit": rule.max_requests,
                "used": count,
                "remaining": max(rule.max_requests - count, 0),
                "windowSeconds": rule.window_seconds,
                "resetIn": ttl or 0,
            }
        return result


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware for API requests"""

    async def dispatch(self, request: Request, call_next):
        # Skip rate limiting for health checks and docs
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        settings: Settings = request.app.state.settings
        limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
        if not settings.rate_limit_enabled or limiter is None:
            return await call_next(request)

        user = try_resolve_user(request, settings)
        if is_admin(user):
            return await call_next(request)

        identifier = get_identifier(request, user)
        endpoint_class = classify_path(request.url.path, request.method)
        try:
            count, rule = await limiter.hit(identifier, endpoint_class)
        except RateLimitExceededError as e:
            logger.warning(
                "rate limit exceeded: %s on %s (%s)", identifier, request.url.path, endpoint_class
            )
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_dict(),
                headers={"Retry-After": str(e.retry_after)},
            )
        except (RedisError, OSError) as e:
            # Counter store down: let the request through
            logger.error("rate limit store unavailable, allowing request: %s", e)
            return await call_next(request)

        response = await call_next(request)
        response.headers["RateLimit-Limit"] = str(rule.max_requests)
        response.headers["RateLimit-Remaining"] = str(max(rule.max_requests - count, 0))
        return response
