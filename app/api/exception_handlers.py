"""Exception handlers for FastAPI application

Every failure leaves the API as ``{"success": false, "code", "message"}``.
"""
import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.error_codes import ErrorCodeDictionary
from app.exceptions import RateLimitExceededError, RecruiterError
from app.utils.responses import format_error_response

logger = logging.getLogger(__name__)


async def recruiter_error_handler(request: Request, exc: RecruiterError) -> JSONResponse:
    """Handle application errors"""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message)

    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    error = ErrorCodeDictionary.INVALID_REQUEST
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=format_error_response(
            error.message,
            error_code=error.code,
            details=jsonable_encoder(exc.errors()),
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the trace, never return it"""
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    error = ErrorCodeDictionary.INTERNAL_ERROR
    return JSONResponse(
        status_code=error.status_code,
        content=format_error_response(error.message, error_code=error.code),
    )
