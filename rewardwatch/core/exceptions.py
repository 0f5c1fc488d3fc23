"""
Infrastructure exceptions for RewardWatch.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
configuration errors, database failures, upstream API failures and notification
delivery failures.

Design Notes
------------
- All infrastructure exceptions inherit from `RewardWatchInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Upstream HTTP status failures are raised as `ResponseCodeError` and then
  classified into a `RewardStatus`; they never reach end users as exceptions.
- Connection-level failures from aiohttp are not wrapped here; the fetch
  dispatcher logs them and drops the affected id.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RewardWatchInfrastructureException(Exception):
    """
    Base exception for all RewardWatch infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(RewardWatchInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(RewardWatchInfrastructureException):
    """
    Raised when database operations fail.

    Args:
        operation: Description of the database operation that failed
        original_error: The underlying database exception
    """

    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )


# ============================================================================
# Upstream API
# ============================================================================


class UpstreamError(RewardWatchInfrastructureException):
    """Base class for failures talking to the upstream rewards API."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True


class ResponseCodeError(UpstreamError):
    """
    Raised when the upstream API answers with a non-2xx status.

    Only the status code is trusted; the body of an error response is not
    guaranteed to be JSON or even text, so it is never read.
    """

    def __init__(self, status_code: int, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(
            f"Upstream responded with HTTP {status_code}",
            details={"status_code": status_code, "url": url},
            error_code="UPSTREAM_STATUS",
        )


class PayloadDecodeError(UpstreamError):
    """Raised when an upstream 200 response cannot be decoded into an entity."""

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, reason: str, payload: Any = None) -> None:
        self.reason = reason
        super().__init__(
            f"Could not decode upstream payload: {reason}",
            details={"reason": reason, "payload": repr(payload)[:200]},
            error_code="UPSTREAM_DECODE",
        )


# ============================================================================
# Notification transport
# ============================================================================


class NotificationDeliveryError(RewardWatchInfrastructureException):
    """
    Raised when a notification could not be delivered to a user.

    The update job treats this as "not notified" and keeps the previous
    `last_notified` value so the next sweep tries again.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, discord_id: int, kind: str, original_error: Exception) -> None:
        self.discord_id = discord_id
        self.kind = kind
        self.original_error = original_error
        super().__init__(
            f"Failed to deliver '{kind}' notification to {discord_id}: {original_error}",
            details={
                "discord_id": discord_id,
                "kind": kind,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="NOTIFICATION_FAILED",
        )
