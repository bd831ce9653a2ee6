"""
Database Model Enums
====================

Lightweight enumerations for ranking model fields. Stored as plain strings.
"""

from __future__ import annotations

import enum


class SeasonStatus(str, enum.Enum):
    """Lifecycle of a weekly season. Exactly one season is ACTIVE at a time."""

    ACTIVE = "active"
    CLOSED = "closed"
