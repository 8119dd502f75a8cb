"""API layer - Routes, dependencies, and exception handlers"""
from app.api.routes import ai_job_routers, ai_tools_router, queues_router, rate_limits_router
from app.api.exception_handlers import (
    recruiter_error_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

__all__ = [
    # Routers
    "ai_job_routers",
    "ai_tools_router",
    "queues_router",
    "rate_limits_router",
    # Exception Handlers
    "recruiter_error_handler",
    "validation_exception_handler",
    "unhandled_exception_handler",
]
