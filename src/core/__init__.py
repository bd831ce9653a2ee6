"""
Core infrastructure layer for the season ranking engine.

Purpose
-------
A single import surface for the infrastructure subsystems:

- Configuration (Config)
- Database subsystem (DatabaseService, RetryPolicy)
- Logging (structured logging, logger factory)

Non-Responsibilities
--------------------
- Business logic (lives in src.modules)
- Any side effects beyond re-exports

The service container is not re-exported here; import it from
src.core.services so that domain modules can import src.core.* without
pulling in every service.
"""

from __future__ import annotations

from src.core.config import Config
from src.core.database import DatabaseService, RetryConfig, RetryPolicy
from src.core.logging import get_logger, setup_logging

__all__ = [
    # Configuration
    "Config",
    # Database
    "DatabaseService",
    "RetryConfig",
    "RetryPolicy",
    # Logging
    "setup_logging",
    "get_logger",
]
