"""
Domain exceptions for RewardWatch.

Purpose
-------
User-facing business rule violations raised by services. Cogs translate these
into friendly embeds; they are never logged as errors.

Design Notes
------------
- All domain exceptions inherit from `RewardWatchDomainException`.
- Severity reuses `ErrorSeverity` from the infrastructure hierarchy so the
  error handler can treat both families uniformly.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from rewardwatch.core.exceptions import ErrorSeverity


class RewardWatchDomainException(Exception):
    """
    Base exception for all RewardWatch domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.INFO

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.severity = severity or self.DEFAULT_SEVERITY
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class UserNotRegisteredError(RewardWatchDomainException):
    """Raised when a Discord user without an account invokes a command."""

    def __init__(self, discord_id: int) -> None:
        self.discord_id = discord_id
        super().__init__(
            "You are not registered yet. Use `start` first.",
            details={"discord_id": discord_id},
            error_code="USER_NOT_REGISTERED",
        )


class InvalidInputError(RewardWatchDomainException):
    """Raised when command arguments cannot be used."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(
            reason,
            details={"field": field},
            error_code="INVALID_INPUT",
        )


class NoCampaignError(RewardWatchDomainException):
    """Raised when a found reward carries no campaign reference."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, reward_id: int) -> None:
        self.reward_id = reward_id
        super().__init__(
            f"Reward {reward_id} has no associated campaign",
            details={"reward_id": reward_id},
            error_code="NO_CAMPAIGN",
        )
