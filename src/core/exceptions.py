"""Structured exception hierarchy for consistent error handling.

This module defines the exception system shared by the notification service
and the client library.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **InvoiceNotifyError**: Base exception with context and cause chaining
- **Specialized exceptions**: Type-specific errors (validation, channel, etc.)

API-facing errors are rendered by ``src.api.middleware.error_handler``.
Client-side errors (``ApiRequestError``, ``ChannelError``) are captured into
client state and surfaced to the user instead of crashing the caller.
"""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for the application."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input validation failed due to invalid or malformed data."""

    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    UNAUTHORIZED = "UNAUTHORIZED"
    """The caller could not be identified or presented a wrong secret."""

    API_REQUEST_FAILED = "API_REQUEST_FAILED"
    """A client request to the notification API failed."""

    CHANNEL_ERROR = "CHANNEL_ERROR"
    """The real-time delivery channel failed to connect or dropped."""


class Severity(Enum):
    """Severity levels for errors."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class InvoiceNotifyError(Exception):
    """Base exception class for all application exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def is_expected(self) -> bool:
        """Whether this error occurs during normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    def __str__(self) -> str:
        """Return a string representation of the exception."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception."""
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ValidationError(InvoiceNotifyError):
    """Raised when input does not satisfy a rule of the notification model."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.VALIDATION_ERROR,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class NotFoundError(InvoiceNotifyError):
    """Raised when a notification (or other resource) does not exist for the user."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.NOT_FOUND,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class UnauthorizedError(InvoiceNotifyError):
    """Raised when the caller identity or the cron secret is missing or wrong."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.UNAUTHORIZED,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.HIGH, context, cause)


class ApiRequestError(InvoiceNotifyError):
    """Raised by the client library when an API call fails.

    Args:
        message: Error message reported by the server or the transport
        status_code: HTTP status code, None for transport failures
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(
            ErrorCode.API_REQUEST_FAILED, message, Severity.MEDIUM, context, cause
        )


class ChannelError(InvoiceNotifyError):
    """Describes a delivery channel failure.

    Channel errors are stored on the channel (``ClientChannel.error``) and
    drive the fallback to polling; they are not raised to application code.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.CHANNEL_ERROR, message, Severity.MEDIUM, context, cause
        )
