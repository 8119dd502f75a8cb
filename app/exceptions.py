"""Custom exceptions for the recruiter AI service"""
from typing import Optional, Dict, Any

from app.core.error_codes import ErrorCode, ErrorCodeDictionary


class RecruiterError(Exception):
    """Base exception carrying a machine-readable error code"""

    default_error_code: ErrorCode = ErrorCodeDictionary.INTERNAL_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = error_code or self.default_error_code
        self.message = message or self.error_code.message
        self.context = context or {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.error_code.code

    @property
    def status_code(self) -> int:
        return self.error_code.status_code

    @property
    def retryable(self) -> bool:
        return self.error_code.retryable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        body: Dict[str, Any] = {
            "success": False,
            "code": self.code,
            "message": self.message,
        }
        if self.context:
            body["context"] = self.context
        return body


class InvalidRequestError(RecruiterError):
    """Caller error: missing or malformed fields. Never retried."""

    default_error_code = ErrorCodeDictionary.INVALID_REQUEST


class JobNotFoundError(RecruiterError):
    """Raised when a job id is unknown to the queue"""

    default_error_code = ErrorCodeDictionary.JOB_NOT_FOUND


class QueueUnavailableError(RecruiterError):
    """Raised when the queue's backing store cannot accept a submission"""

    default_error_code = ErrorCodeDictionary.QUEUE_UNAVAILABLE


class UpstreamAIError(RecruiterError):
    """The AI provider call failed or returned an unusable answer"""

    default_error_code = ErrorCodeDictionary.AI_REQUEST_FAILED


class MalformedAIResponseError(UpstreamAIError):
    """The AI provider answered with content that is not valid JSON"""

    default_error_code = ErrorCodeDictionary.AI_MALFORMED_RESPONSE


class PersistenceError(RecruiterError):
    """Supabase PostgREST request failed"""

    default_error_code = ErrorCodeDictionary.PERSISTENCE_FAILED


class RateLimitExceededError(RecruiterError):
    """Fixed-window rate limit exceeded"""

    default_error_code = ErrorCodeDictionary.RATE_LIMIT_EXCEEDED

    def __init__(self, error_code: ErrorCode, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message=message, error_code=error_code)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["retryAfter"] = self.retry_after
        return body


class AuthError(RecruiterError):
    """Bearer token could not be verified"""

    default_error_code = ErrorCodeDictionary.INVALID_TOKEN


class AnalysisNotFoundError(RecruiterError):
    """No persisted analysis with the requested id"""

    default_error_code = ErrorCodeDictionary.ANALYSIS_NOT_FOUND


class AccessDeniedError(RecruiterError):
    """The persisted analysis belongs to another user"""

    default_error_code = ErrorCodeDictionary.ACCESS_DENIED
