"""API route modules"""
from app.api.routes.ai_jobs import build_ai_router, routers as ai_job_routers
from app.api.routes.ai_tools import router as ai_tools_router
from app.api.routes.queues import router as queues_router
from app.api.routes.rate_limits import router as rate_limits_router

__all__ = [
    "build_ai_router", "ai_job_routers", "ai_tools_router", "queues_router", "rate_limits_router",
]
