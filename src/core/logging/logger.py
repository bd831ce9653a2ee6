"""
Season Ranking Logging Subsystem

Purpose
-------
Structured, async-safe logging for the ranking engine.

- Every record carries the ranking context bound by the operation that
  produced it: ``user_id``, ``season_id``, ``operation``, ``component`` and a
  ``correlation_id`` shared by all records of one call.
- Records are handed to a bounded in-memory queue and written by a
  background listener, so a slow sink never blocks an admission
  transaction.
- Output: JSON on the console in production (colored text in a dev
  terminal) plus a daily-rotated JSON file under ``Config.LOGS_DIR``.

Usage
-----
    from src.core.logging.logger import LogContext, get_logger

    log = get_logger(__name__)

    async with LogContext(user_id="u1", operation="submit_points"):
        log.info("Points submitted", extra={"delta": 10})

Nothing is configured at import time; entry points call ``setup_logging()``
once and ``shutdown_logging()`` on exit. Until then records go through the
standard library defaults (which is what the test suite relies on).
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from src.core.config.config import Config

_MISSING = "N/A"

# Keys a LogContext binds; mirrored onto every record by ContextFilter.
CONTEXT_KEYS = ("user_id", "season_id", "operation", "component", "correlation_id", "request_id")

_request_context: ContextVar[Dict[str, Any]] = ContextVar("ranking_log_context", default={})


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Snapshot of the logging settings taken from Config at setup time."""

    level: int = logging.INFO
    production: bool = False
    json_console: bool = False
    colors: bool = False
    logs_dir: Path = Path("logs")

    daily_filename: str = "ranking_daily.json.log"
    daily_backups: int = 1
    queue_size: int = 10_000
    text_format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    # Chatty third-party loggers held at WARNING.
    quiet_loggers: tuple = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "asyncio")

    @classmethod
    def from_config(cls) -> "LoggerConfig":
        environment = str(getattr(Config, "ENVIRONMENT", "development")).lower()
        production = environment == "production"

        level_name = getattr(Config, "LOG_LEVEL", "INFO")
        level = logging.getLevelName(str(level_name).upper())
        if not isinstance(level, int):
            level = logging.INFO

        json_flag = getattr(Config, "LOG_JSON", None)
        json_console = production if json_flag is None else bool(json_flag)

        return cls(
            level=level,
            production=production,
            json_console=json_console,
            colors=bool(getattr(Config, "LOG_COLORS", True)) and not json_console and sys.stdout.isatty(),
            logs_dir=Path(getattr(Config, "LOGS_DIR", "logs")).resolve(),
        )


# ============================================================================
# Health
# ============================================================================


@dataclass
class LoggingHealth:
    initialized: bool = False
    queue_size: int = 0
    queue_max_size: int = 0
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass
class _LoggingState:
    settings: Optional[LoggerConfig] = None
    queue: Optional["queue.Queue[logging.LogRecord]"] = None
    listener: Optional[QueueListener] = None
    handler: Optional[QueueHandler] = None
    enqueued: int = 0
    dropped: int = 0
    listener_errors: int = 0


_state = _LoggingState()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """
    Copy the bound LogContext onto the record.

    Values passed explicitly through ``extra={...}`` are kept; a friend lookup
    logged inside a user's operation keeps the friend's ``user_id``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _request_context.get()

        for key in ("user_id", "season_id", "operation"):
            if not hasattr(record, key):
                setattr(record, key, context.get(key) or _MISSING)

        correlation_id = context.get("correlation_id") or context.get("request_id") or _MISSING
        record.correlation_id = correlation_id
        record.request_id = context.get("request_id") or correlation_id
        record.component = context.get("component") or record.name.split(".")[0]
        return True


class ColoredFormatter(logging.Formatter):
    _LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    _RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().format(record)
        color = self._LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}{self._RESET}" if color else line


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Top level: timestamp, level, logger, message, source location, the
    ranking context keys that are set, and ``exception``. Anything else
    passed through ``extra`` lands under ``"extra"``.
    """

    # Attributes every LogRecord has; never copied into "extra".
    _RECORD_ATTRS = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", (), None))
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None and value != _MISSING:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RECORD_ATTRS
            and key not in CONTEXT_KEYS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class RankingQueueHandler(QueueHandler):
    """Drops records instead of blocking when the queue is full."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
            _state.enqueued += 1
        except queue.Full:
            _state.dropped += 1
            sys.stderr.write("ranking logging: queue full, record dropped\n")


class RankingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.listener_errors += 1
        sys.stderr.write("ranking logging: handler failed while writing a record\n")


def _console_handler(settings: LoggerConfig) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(settings.level)
    if settings.json_console:
        handler.setFormatter(JSONFormatter())
    else:
        formatter_cls = ColoredFormatter if settings.colors else logging.Formatter
        handler.setFormatter(formatter_cls(settings.text_format, settings.date_format))
    return handler


def _daily_file_handler(settings: LoggerConfig) -> logging.Handler:
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(settings.logs_dir / settings.daily_filename),
        when="midnight",
        backupCount=settings.daily_backups,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(settings.level)
    handler.setFormatter(JSONFormatter())
    return handler


# ============================================================================
# Lifecycle
# ============================================================================


def setup_logging(*, file_output: bool = True) -> None:
    """Install the queue handler on the root logger. Idempotent."""
    if _state.listener is not None:
        return

    settings = LoggerConfig.from_config()

    sinks = [_console_handler(settings)]
    if file_output:
        sinks.append(_daily_file_handler(settings))

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(settings.queue_size)
    listener = RankingQueueListener(log_queue, *sinks, respect_handler_level=True)

    handler = RankingQueueHandler(log_queue)
    handler.setLevel(settings.level)
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(settings.level)
    root.addHandler(handler)

    for name in settings.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _state.settings = settings
    _state.queue = log_queue
    _state.listener = listener
    _state.handler = handler
    _state.enqueued = _state.dropped = _state.listener_errors = 0
    listener.start()

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(settings.level),
            "json_console": settings.json_console,
            "file_output": file_output,
            "logs_dir": str(settings.logs_dir),
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and detach the handler. Safe to call repeatedly."""
    if _state.listener is None:
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem")

    try:
        _state.listener.stop()
    finally:
        if _state.handler is not None:
            logging.getLogger().removeHandler(_state.handler)
            _state.handler.close()
        _state.listener = None
        _state.handler = None
        _state.queue = None


def get_logging_health() -> LoggingHealth:
    log_queue = _state.queue
    return LoggingHealth(
        initialized=_state.listener is not None,
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_max_size=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_state.enqueued,
        records_dropped=_state.dropped,
        listener_errors=_state.listener_errors,
    )


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


# ============================================================================
# Context binding
# ============================================================================


def _new_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


class LogContext:
    """
    Bind ranking context for the enclosed block (sync or async).

    The previous context is restored on exit, so nested contexts compose.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        season_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        correlation_id = correlation_id or request_id or _new_correlation_id()
        self.context: Dict[str, Any] = {
            "user_id": str(user_id) if user_id is not None else _MISSING,
            "season_id": str(season_id) if season_id is not None else _MISSING,
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id,
            "request_id": request_id or correlation_id,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(
    user_id: Optional[str] = None,
    season_id: Optional[str] = None,
    component: Optional[str] = None,
    operation: Optional[str] = None,
    correlation_id: Optional[str] = None,
    request_id: Optional[str] = None,
    **extra: Any,
) -> None:
    """Merge values into the current context without a scope."""
    current = dict(_request_context.get())

    updates = {
        "user_id": str(user_id) if user_id is not None else None,
        "season_id": str(season_id) if season_id is not None else None,
        "component": component,
        "operation": operation,
        "correlation_id": correlation_id,
        "request_id": request_id,
    }
    current.update({key: value for key, value in updates.items() if value})
    if request_id and "correlation_id" not in current:
        current["correlation_id"] = request_id
    current.update(extra)

    _request_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get())


def clear_log_context() -> None:
    _request_context.set({})
