"""
Domain exceptions for the season ranking engine.

Purpose
-------
Define the structured exception hierarchy raised by the ranking services.
Validation and domain errors propagate verbatim through
``RankingOperations``; anything else is logged and surfaced as an
``OperationFailedError`` carrying a fixed, detail-free message.

Design Notes
------------
- All exceptions inherit from `RankingDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"  # validation failures, missing entities
    WARNING = "warning"  # retryable contention
    ERROR = "error"
    CRITICAL = "critical"  # infrastructure unavailable


class RankingDomainException(Exception):
    """
    Base exception for all ranking engine errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
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
        """Convert exception to dictionary for logging/serialization."""
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


# ============================================================================
# Validation
# ============================================================================


class ValidationError(RankingDomainException):
    """
    Raised when request input fails validation.

    Never retried. The message always names the offending field.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        error_message = f"Validation error for {field}: {message}"
        super().__init__(
            error_message,
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class MissingParameterError(ValidationError):
    """A required request parameter is absent or empty."""

    def __init__(self, field: str) -> None:
        super().__init__(field, "is required")
        self.error_code = "MISSING_PARAMETERS"


class LeagueOutOfRangeError(ValidationError):
    """League number outside 1..15 (or not an integer)."""

    def __init__(self, league_number: Any, min_league: int = 1, max_league: int = 15) -> None:
        self.league_number = league_number
        super().__init__(
            "leagueNumber",
            f"must be an integer between {min_league} and {max_league}, got {league_number!r}",
        )
        self.details["value"] = league_number
        self.error_code = "LEAGUE_OUT_OF_RANGE"


class NonNumericDeltaError(ValidationError):
    """Points delta is not a real number."""

    def __init__(self, delta: Any) -> None:
        self.delta = delta
        super().__init__("delta", f"must be a finite number, got {delta!r}")
        self.error_code = "NON_NUMERIC_DELTA"


# ============================================================================
# Domain
# ============================================================================


class NotFoundError(RankingDomainException):
    """
    Raised when a requested entity cannot be found.

    Args:
        resource_type: Type of resource (e.g., "User", "Season")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class UserNotFoundError(NotFoundError):
    """The user profile does not exist in the profile store."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("User", user_id)


class GroupFullError(RankingDomainException):
    """
    The chosen group reached capacity between scan and admission.

    Retryable: the caller re-scans and picks (or creates) another group.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, group_id: int, capacity: int, current_count: int) -> None:
        self.group_id = group_id
        self.capacity = capacity
        self.current_count = current_count
        super().__init__(
            f"Group {group_id} is full",
            details={
                "group_id": group_id,
                "capacity": capacity,
                "current_count": current_count,
            },
            error_code="GROUP_FULL",
        )


class NoActiveSeasonError(RankingDomainException):
    """No active season exists (read paths never create one)."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self) -> None:
        super().__init__("No active season", error_code="NO_ACTIVE_SEASON")


class UnauthorizedError(RankingDomainException):
    """The caller is not authenticated."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, message: str = "User must be authenticated") -> None:
        super().__init__(message, error_code="UNAUTHENTICATED")


class InvalidOperationError(RankingDomainException):
    """
    Raised when an action violates a ranking rule.

    Args:
        action: Description of the invalid action
        reason: Explanation of why it's not allowed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        message = f"Invalid operation '{action}': {reason}"
        super().__init__(
            message,
            details={
                "action": action,
                "reason": reason,
            },
            error_code=f"INVALID_{action.upper()}",
        )


class OperationFailedError(RankingDomainException):
    """
    Generic failure surfaced to callers for unexpected errors.

    The message is fixed per operation and never carries internal detail;
    the underlying cause is logged where it is caught.
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = False

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        self.operation = operation
        super().__init__(
            message,
            details={"operation": operation} if operation else None,
            error_code="INTERNAL",
        )


# ============================================================================
# Infrastructure
# ============================================================================


class DatabaseInitializationError(RankingDomainException):
    """Raised when database engine initialization fails."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="DATABASE_INIT_FAILED")


class DatabaseNotInitializedError(RankingDomainException):
    """Raised when database operations are attempted before initialization."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="DATABASE_NOT_INITIALIZED")


class ConfigurationError(RankingDomainException):
    """Invalid or missing static configuration."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        super().__init__(
            f"Invalid configuration for {key}: {reason}",
            details={"key": key, "reason": reason},
            error_code="CONFIGURATION_ERROR",
        )


# ============================================================================
# Helpers
# ============================================================================


def is_domain_error(exc: BaseException) -> bool:
    """
    Whether an exception should reach the caller verbatim.

    Infrastructure errors are not domain errors: they are masked like any
    unexpected failure.
    """
    return isinstance(exc, RankingDomainException) and not isinstance(
        exc,
        (
            DatabaseInitializationError,
            DatabaseNotInitializedError,
            ConfigurationError,
        ),
    )


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, RankingDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    if isinstance(exc, RankingDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
