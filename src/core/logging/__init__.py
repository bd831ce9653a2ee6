"""Structured logging for the ranking engine: queue-backed sinks and per-operation context."""

from src.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    LoggerConfig,
    LoggingHealth,
    clear_log_context,
    get_log_context,
    get_logger,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "ContextFilter",
    "JSONFormatter",
    "LogContext",
    "LoggerConfig",
    "LoggingHealth",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "get_logging_health",
    "set_log_context",
    "setup_logging",
    "shutdown_logging",
]
