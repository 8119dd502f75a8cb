"""Shared utility functions and helpers"""
from app.utils.responses import format_error_response, format_success_response

__all__ = [
    "format_error_response",
    "format_success_response",
]
