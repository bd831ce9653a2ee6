"""
Shared foundations for the ranking modules.

Purpose
-------
- Domain exceptions and error handling helpers
- Request validation utilities

The base service and repository classes live in
``src.modules.shared.base_service`` and ``src.modules.shared.base_repository``
and are imported from there directly; they depend on the database layer,
which itself imports the exceptions defined here.

Usage
-----
    from src.modules.shared import GroupFullError, validate_league_number
"""

from __future__ import annotations

from .exceptions import (
    ConfigurationError,
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    ErrorSeverity,
    GroupFullError,
    InvalidOperationError,
    LeagueOutOfRangeError,
    MissingParameterError,
    NoActiveSeasonError,
    NonNumericDeltaError,
    NotFoundError,
    OperationFailedError,
    RankingDomainException,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
    get_error_severity,
    is_domain_error,
    is_transient_error,
    should_alert,
)
from .validators import (
    require_params,
    validate_delta,
    validate_league_number,
    validate_season_id,
    validate_user_id,
)

__all__ = [
    # Exceptions
    "RankingDomainException",
    "ErrorSeverity",
    "ValidationError",
    "MissingParameterError",
    "LeagueOutOfRangeError",
    "NonNumericDeltaError",
    "NotFoundError",
    "UserNotFoundError",
    "GroupFullError",
    "NoActiveSeasonError",
    "UnauthorizedError",
    "InvalidOperationError",
    "OperationFailedError",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    "ConfigurationError",
    "is_domain_error",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Validators
    "require_params",
    "validate_user_id",
    "validate_league_number",
    "validate_delta",
    "validate_season_id",
]
