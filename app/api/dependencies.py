"""FastAPI dependency injection for the recruiter AI services"""
from typing import Optional

from fastapi import Depends, Request

from app.core.auth import resolve_user
from app.core.config import Settings
from app.core.rate_limit import RateLimiter
from app.queues.processors import JobKind
from app.queues.queue_manager import QueueManager
from app.repositories.analysis_repository import AnalysisRepository
from app.services.ai.base import BaseAIService
from app.services.cache import CacheService


def get_app_settings(request: Request) -> Settings:
    """Get settings the application was built with"""
    return request.app.state.settings


def get_queue_manager(request: Request) -> QueueManager:
    """Get the queue manager created in the lifespan"""
    return request.app.state.queue_manager


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_repository(request: Request) -> Optional[AnalysisRepository]:
    return request.app.state.repository


def ai_service(kind: JobKind):
    """Build a dependency returning the AI service for ``kind``"""

    def dependency(request: Request) -> BaseAIService:
        return request.app.state.ai_services[kind]

    return dependency


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """
    Current caller from the bearer token, or the anonymous user.

    Raises:
        AuthError: a token was sent but is invalid
    """
    return resolve_user(request, settings)
