"""
Database subsystem for the season ranking engine.

Provides the async SQLAlchemy engine, session management and the retry
policy used for contended writes. Also exports the ORM base classes and
mixins for model definitions.
"""

from src.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    ensure_utc,
    utc_now,
)
from src.core.database.retry_policy import RetryConfig, RetryPolicy
from src.core.database.service import DatabaseService

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "ensure_utc",
    "utc_now",
    # Main service
    "DatabaseService",
    # Retry
    "RetryConfig",
    "RetryPolicy",
]
