"""
Ranking Request Validators

Purpose
-------
Validation utilities for the inputs of the ranking operations. Validators
raise structured `ValidationError` subclasses when validation fails.

Design Notes
------------
Validators:
- Accept data to validate as parameters
- Raise specific domain exceptions on failure
- Return the normalized value on success
- Never touch the database

Usage
-----
    from src.modules.shared.validators import validate_league_number

    league = validate_league_number(data.get("leagueNumber"))
    # Raises: LeagueOutOfRangeError for 0, 16, "3", True, ...
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping, Optional, Union

from .exceptions import (
    LeagueOutOfRangeError,
    MissingParameterError,
    NonNumericDeltaError,
    ValidationError,
)

MIN_LEAGUE = 1
MAX_LEAGUE = 15

SEASON_ID_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}_\d{4}-\d{2}-\d{2}$")


def is_missing(value: Any) -> bool:
    """None and empty strings count as absent request parameters."""
    return value is None or (isinstance(value, str) and not value.strip())


def require_params(data: Optional[Mapping[str, Any]], *fields: str) -> None:
    """
    Validate that every named field is present in the request payload.

    Raises:
        MissingParameterError: naming the first missing field
    """
    payload = data or {}
    for field in fields:
        if is_missing(payload.get(field)):
            raise MissingParameterError(field)


def validate_user_id(user_id: Any, field: str = "userId") -> str:
    """
    Validate a user identifier (opaque non-empty string).

    Raises:
        MissingParameterError: If absent or blank
        ValidationError: If not a string
    """
    if is_missing(user_id):
        raise MissingParameterError(field)
    if not isinstance(user_id, str):
        raise ValidationError(field, f"must be a string, got {type(user_id).__name__}")
    return user_id


def validate_league_number(
    league_number: Any,
    min_league: int = MIN_LEAGUE,
    max_league: int = MAX_LEAGUE,
) -> int:
    """
    Validate that a league number is an integer within the tier range.

    Booleans are rejected even though they are ints in Python.

    Raises:
        LeagueOutOfRangeError: If not an integer in [min_league, max_league]
    """
    if isinstance(league_number, bool) or not isinstance(league_number, int):
        raise LeagueOutOfRangeError(league_number, min_league, max_league)
    if not (min_league <= league_number <= max_league):
        raise LeagueOutOfRangeError(league_number, min_league, max_league)
    return league_number


def validate_delta(delta: Any) -> Union[int, float]:
    """
    Validate a points delta. Negative values are allowed.

    Raises:
        NonNumericDeltaError: If not a finite int/float (bool excluded)
    """
    if isinstance(delta, bool) or not isinstance(delta, (int, float)):
        raise NonNumericDeltaError(delta)
    if isinstance(delta, float) and not math.isfinite(delta):
        raise NonNumericDeltaError(delta)
    return delta


def validate_season_id(season_id: Any, field: str = "seasonId") -> Optional[str]:
    """
    Validate an optional season id of the form ``YYYY-MM-DD_YYYY-MM-DD``.

    Returns None when the id is absent so callers fall back to the active
    season.
    """
    if is_missing(season_id):
        return None
    if not isinstance(season_id, str) or not SEASON_ID_PATTERN.match(season_id):
        raise ValidationError(field, "must look like YYYY-MM-DD_YYYY-MM-DD")
    return season_id
