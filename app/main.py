"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from openai import AsyncOpenAI
from redis.exceptions import RedisError

from app.api.exception_handlers import (
    recruiter_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from app.api.routes import ai_job_routers, ai_tools_router, queues_router, rate_limits_router
from app.core.config import Settings, get_settings
from app.core.rate_limit import RateLimiter, RateLimitMiddleware, build_rate_limit_config
from app.core.redis import RedisClient
from app.exceptions import RecruiterError
from app.queues.processors import JobKind, build_processors
from app.queues.queue_manager import QueueManager
from app.repositories.analysis_repository import AnalysisRepository
from app.services.ai import (
    CVAnalysisService,
    InterviewAnalysisService,
    JobRequirementsService,
    QuestionGenerationService,
    build_openai_client,
)
from app.services.cache import CacheService

logger = logging.getLogger(__name__)

APP_NAME = "Smart Recruiter AI"
APP_VERSION = "0.1.0"


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    redis_client: Optional[RedisClient] = None,
    openai_client: Optional[AsyncOpenAI] = None,
    repository: Optional[AnalysisRepository] = None,
) -> FastAPI:
    """
    Build the application.

    Every collaborator can be injected; anything left out is built from
    ``settings`` when the lifespan starts.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        # Startup
        redis = redis_client or RedisClient(settings.redis_url)
        await redis.connect()

        cache = CacheService(redis, key_prefix=settings.cache_key_prefix, default_ttl=settings.cache_default_ttl)
        client = openai_client or build_openai_client(settings)
        ai_services = {
            JobKind.CV_ANALYSIS: CVAnalysisService(client, cache, settings),
            JobKind.JOB_REQUIREMENTS: JobRequirementsService(client, cache, settings),
            JobKind.INTERVIEW_ANALYSIS: InterviewAnalysisService(client, cache, settings),
            JobKind.QUESTION_GENERATION: QuestionGenerationService(client, cache, settings),
        }
        repo = repository or AnalysisRepository(settings.supabase_url, settings.supabase_service_role_key)
        if not repo.is_configured:
            logger.info("supabase not configured, analysis history is disabled")

        processors = build_processors(
            ai_services[JobKind.CV_ANALYSIS],
            ai_services[JobKind.JOB_REQUIREMENTS],
            ai_services[JobKind.INTERVIEW_ANALYSIS],
            ai_services[JobKind.QUESTION_GENERATION],
            repository=repo,
        )
        queue_manager = QueueManager(redis, processors, settings)

        app.state.redis = redis
        app.state.cache = cache
        app.state.ai_services = ai_services
        app.state.repository = repo
        app.state.queue_manager = queue_manager
        app.state.rate_limiter = RateLimiter(cache, build_rate_limit_config(settings))

        await queue_manager.start()
        logger.info("%s started (%s)", APP_NAME, settings.environment)

        yield

        # Shutdown
        await queue_manager.shutdown_all()
        await repo.close()
        await redis.disconnect()
        logger.info("%s stopped", APP_NAME)

    app = FastAPI(
        title=APP_NAME,
        description="Asynchronous AI job processing for recruiting",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    # The rate limit middleware reads settings before the lifespan has run
    app.state.settings = settings

    app.add_middleware(RateLimitMiddleware)

    # Register exception handlers
    app.add_exception_handler(RecruiterError, recruiter_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include routers
    for router in ai_job_routers:
        app.include_router(router, prefix="/api")
    app.include_router(ai_tools_router, prefix="/api")
    app.include_router(queues_router, prefix="/api")
    app.include_router(rate_limits_router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "description": "Asynchronous AI job processing for recruiting",
            "status": "operational",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        try:
            redis_ok = await app.state.redis.ping()
        except (RedisError, OSError) as e:
            logger.error("redis health check failed: %s", e)
            redis_ok = False
        return {
            "status": "healthy" if redis_ok else "degraded",
            "redis": "connected" if redis_ok else "unavailable",
            "environment": settings.environment,
        }

    return app


def __getattr__(name: str):
    # ``app`` is built on first access so importing this module needs no environment
    if name == "app":
        app = create_app()
        globals()["app"] = app
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
