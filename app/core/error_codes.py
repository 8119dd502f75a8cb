"""Error code dictionary - machine-readable codes for every API failure."""
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional


@dataclass(frozen=True)
class ErrorCode:
    """
    Standardized error code.

    Attributes:
        code: Unique error code identifier (e.g., MISSING_FIELDS)
        message: Default human-readable message
        status_code: HTTP status the API layer answers with
        retryable: Whether a queued job failing with this code may be retried
    """

    code: str
    message: str
    status_code: int = 400
    retryable: bool = False

    def to_dict(self) -> Dict[str, str]:
        """Convert error code to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
        }


class ErrorCodeDictionary:
    """Catalog of the error codes the service can answer with."""

    # Request errors
    MISSING_FIELDS: ClassVar[ErrorCode] = ErrorCode(
        code="MISSING_FIELDS",
        message="Missing required fields",
        status_code=400,
    )

    INVALID_REQUEST: ClassVar[ErrorCode] = ErrorCode(
        code="INVALID_REQUEST",
        message="Request validation failed",
        status_code=400,
    )

    UNKNOWN_JOB_KIND: ClassVar[ErrorCode] = ErrorCode(
        code="UNKNOWN_JOB_KIND",
        message="Unknown job kind",
        status_code=404,
    )

    # Queue errors
    JOB_NOT_FOUND: ClassVar[ErrorCode] = ErrorCode(
        code="JOB_NOT_FOUND",
        message="Job not found",
        status_code=404,
    )

    QUEUE_UNAVAILABLE: ClassVar[ErrorCode] = ErrorCode(
        code="QUEUE_UNAVAILABLE",
        message="Job queue is unavailable, please resubmit later",
        status_code=503,
    )

    # Upstream AI errors
    AI_REQUEST_FAILED: ClassVar[ErrorCode] = ErrorCode(
        code="AI_REQUEST_FAILED",
        message="AI provider request failed",
        status_code=502,
        retryable=True,
    )

    AI_EMPTY_RESPONSE: ClassVar[ErrorCode] = ErrorCode(
        code="AI_EMPTY_RESPONSE",
        message="No response from AI provider",
        status_code=502,
        retryable=True,
    )

    AI_MALFORMED_RESPONSE: ClassVar[ErrorCode] = ErrorCode(
        code="AI_MALFORMED_RESPONSE",
        message="AI provider returned malformed JSON",
        status_code=502,
        retryable=True,
    )

    # Persistence errors
    PERSISTENCE_FAILED: ClassVar[ErrorCode] = ErrorCode(
        code="PERSISTENCE_FAILED",
        message="Database request failed",
        status_code=502,
    )

    PERSISTENCE_NOT_CONFIGURED: ClassVar[ErrorCode] = ErrorCode(
        code="PERSISTENCE_NOT_CONFIGURED",
        message="Result persistence is not configured",
        status_code=503,
    )

    # Rate limiting
    RATE_LIMIT_EXCEEDED: ClassVar[ErrorCode] = ErrorCode(
        code="RATE_LIMIT_EXCEEDED",
        message="Too many requests",
        status_code=429,
    )

    AI_RATE_LIMIT_EXCEEDED: ClassVar[ErrorCode] = ErrorCode(
        code="AI_RATE_LIMIT_EXCEEDED",
        message="Too many AI requests",
        status_code=429,
    )

    PAYMENT_RATE_LIMIT_EXCEEDED: ClassVar[ErrorCode] = ErrorCode(
        code="PAYMENT_RATE_LIMIT_EXCEEDED",
        message="Too many payment attempts",
        status_code=429,
    )

    AUTH_RATE_LIMIT_EXCEEDED: ClassVar[ErrorCode] = ErrorCode(
        code="AUTH_RATE_LIMIT_EXCEEDED",
        message="Too many authentication attempts",
        status_code=429,
    )

    UPLOAD_RATE_LIMIT_EXCEEDED: ClassVar[ErrorCode] = ErrorCode(
        code="UPLOAD_RATE_LIMIT_EXCEEDED",
        message="Too many upload requests",
        status_code=429,
    )

    # Authentication
    INVALID_TOKEN: ClassVar[ErrorCode] = ErrorCode(
        code="INVALID_TOKEN",
        message="Invalid authentication credentials",
        status_code=401,
    )

    # Analysis history
    ANALYSIS_NOT_FOUND: ClassVar[ErrorCode] = ErrorCode(
        code="ANALYSIS_NOT_FOUND",
        message="Analysis not found",
        status_code=404,
    )

    ACCESS_DENIED: ClassVar[ErrorCode] = ErrorCode(
        code="ACCESS_DENIED",
        message="Access denied",
        status_code=403,
    )

    # Generic
    INTERNAL_ERROR: ClassVar[ErrorCode] = ErrorCode(
        code="INTERNAL_ERROR",
        message="Internal server error",
        status_code=500,
    )

    # Error code registry for efficient lookup
    _ERROR_REGISTRY: ClassVar[Dict[str, ErrorCode]] = {}

    @classmethod
    def _build_registry(cls) -> Dict[str, ErrorCode]:
        """Build error code registry from class attributes."""
        if not cls._ERROR_REGISTRY:
            for attr_name in dir(cls):
                if not attr_name.startswith("_"):
                    attr = getattr(cls, attr_name)
                    if isinstance(attr, ErrorCode):
                        cls._ERROR_REGISTRY[attr.code] = attr
        return cls._ERROR_REGISTRY

    @classmethod
    def get_error(cls, code: str) -> Optional[ErrorCode]:
        """
        Get error code by code string.

        Args:
            code: Error code identifier (e.g., "JOB_NOT_FOUND")

        Returns:
            ErrorCode if found, None otherwise
        """
        registry = cls._build_registry()
        return registry.get(code)

    @classmethod
    def get_all_errors(cls) -> List[ErrorCode]:
        """Get all error codes in the dictionary."""
        registry = cls._build_registry()
        return list(registry.values())
