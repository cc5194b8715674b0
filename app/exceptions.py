"""
Base exception classes for the PDF → ASYCUDA XML portal.

This module provides the common error hierarchy shared by the
conversion clients, the orchestrator, the upload surface and the API.
"""

from typing import Any


class BaseServiceError(Exception):
    """Base exception for all service errors."""

    def __init__(self, message: str, error_type: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}


class ApiServiceError(BaseServiceError):
    """Raised when the conversion service answers with an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
        error_type: str = "API_ERROR",
    ):
        super().__init__(message, error_type, {"status_code": status_code})
        self.status_code = status_code
        self.body = body


class RequestTimeoutError(ApiServiceError):
    """Raised when a request exceeds its wall-clock budget."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"The conversion request timed out after {timeout_seconds:g} seconds",
            status_code=408,
            error_type="TIMEOUT_ERROR",
        )
        self.details["timeout_seconds"] = timeout_seconds


class PollingTimeoutError(ApiServiceError):
    """Raised when a job never reaches a terminal status."""

    def __init__(self, attempts: int):
        super().__init__(
            "The conversion took too long (timeout)",
            status_code=408,
            error_type="TIMEOUT_ERROR",
        )
        self.details["poll_attempts"] = attempts


class JobFailedError(ApiServiceError):
    """Raised when an accepted job ends as failed or cancelled."""

    def __init__(self, message: str, job_id: str, cancelled: bool = False):
        super().__init__(
            message,
            status_code=499 if cancelled else 500,
            error_type="JOB_CANCELLED" if cancelled else "JOB_FAILED",
        )
        self.details["job_id"] = job_id
        self.cancelled = cancelled


class ConversionCancelledError(BaseServiceError):
    """Raised inside a batch when its cancellation token fires."""

    def __init__(self) -> None:
        super().__init__("Conversion cancelled", "CANCELLED")


class UploadValidationError(BaseServiceError):
    """Raised when a file or one of its parameters is invalid."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "VALIDATION_ERROR", {"field": field})
        self.field = field


class ArchiveError(BaseServiceError):
    """Raised when an archive cannot be built."""

    def __init__(self, message: str):
        super().__init__(message, "ARCHIVE_ERROR")


class AuthError(BaseServiceError):
    """Raised when the authentication provider rejects a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, "AUTH_ERROR", {"status_code": status_code})
        self.status_code = status_code


class ConfigurationError(BaseServiceError):
    """Raised when a required setting is missing."""

    def __init__(self, message: str, setting: str):
        super().__init__(message, "CONFIGURATION_ERROR", {"setting": setting})


# Common error types for consistency
class ErrorTypes:
    """Common error type constants."""

    API_ERROR = "API_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    JOB_FAILED = "JOB_FAILED"
    JOB_CANCELLED = "JOB_CANCELLED"
    CANCELLED = "CANCELLED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ARCHIVE_ERROR = "ARCHIVE_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
