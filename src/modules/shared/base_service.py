"""
Common base for the ranking services.

Every service receives a named logger from the ServiceContainer and opens
its own sessions through DatabaseService. Services are shared by all
concurrent callers and keep no per-request state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from src.core.config.config import Config

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger


class BaseService:
    def __init__(self, logger: Logger) -> None:
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Read a Config attribute.

        Raises:
            ConfigurationError: ``required`` is set and the value is None.
        """
        value = getattr(Config, key, default)
        if value is None and required:
            raise ConfigurationError(key, f"Configuration key '{key}' is not set")
        return value

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(operation, extra={"operation": operation, **context})

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        """Log ``error`` with its traceback under ``operation``."""
        self.log.error(
            f"{operation} failed: {type(error).__name__}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
            exc_info=error,
        )
