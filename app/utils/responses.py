"""Response formatting utilities"""
from typing import Any, Optional


def format_error_response(message: str, error_code: str, **kwargs) -> dict:
    """
    Format the standard error envelope

    Args:
        message: Human-readable message
        error_code: Machine-readable code (e.g. MISSING_FIELDS)
        **kwargs: Additional fields to include in response

    Returns:
        ``{"success": False, "code": ..., "message": ...}`` plus extras

    Example:
        return format_error_response(
            "Missing required fields: cvText",
            error_code="MISSING_FIELDS",
        )
    """
    response = {"success": False, "code": error_code, "message": message}
    response.update(kwargs)
    return response


def format_success_response(data: Any = None, message: Optional[str] = None, **kwargs) -> dict:
    """
    Format the standard success envelope

    Args:
        data: Payload returned under ``data``
        message: Optional message
        **kwargs: Additional fields to include in response

    Example:
        return format_success_response(data=result)
    """
    response: dict = {"success": True}
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    response.update(kwargs)
    return response
