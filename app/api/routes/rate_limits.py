"""Rate limit introspection"""
from fastapi import APIRouter, Depends, Request

from app.api.dependencies import get_current_user, get_rate_limiter
from app.core.rate_limit import RateLimiter, get_identifier
from app.utils.responses import format_success_response

router = APIRouter(prefix="/rate-limit", tags=["rate-limit"])


@router.get("/status")
async def rate_limit_status(
    request: Request,
    user: dict = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Usage of every endpoint class for the caller in the current windows"""
    identifier = get_identifier(request, user)
    return format_success_response(data={"identifier": identifier, "limits": await limiter.status(identifier)})
