"""
Bounded retry for writes that can lose a race.

Group admission scans for an open group outside any transaction, so by the
time it locks the row another caller may have taken the last seat
(``GroupFullError``). SQLite and PostgreSQL can also report transient lock
or connection failures as ``OperationalError``. Both are worth another
attempt after a short, jittered pause; everything else is not.

Delay before retry ``n`` (1-indexed)::

    min(initial_backoff_ms * 2 ** (n - 1), max_backoff_ms) + uniform(0, jitter_ms)

Each attempt must open its own transaction; ``execute`` never runs inside
one.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar, Union

from sqlalchemy.exc import OperationalError

from src.core.config.config import Config
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ExceptionTypes = Tuple[Type[BaseException], ...]


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    retriable_exceptions: ExceptionTypes = (OperationalError,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def for_group_assignment(
        cls, retriable_exceptions: ExceptionTypes = (OperationalError,)
    ) -> RetryConfig:
        """Admission tuning from the GROUP_ASSIGN_* settings."""
        return cls(
            max_attempts=Config.GROUP_ASSIGN_MAX_ATTEMPTS,
            initial_backoff_ms=Config.GROUP_ASSIGN_INITIAL_BACKOFF_MS,
            max_backoff_ms=Config.GROUP_ASSIGN_MAX_BACKOFF_MS,
            jitter_ms=Config.GROUP_ASSIGN_JITTER_MS,
            retriable_exceptions=retriable_exceptions,
        )


class RetryPolicy:
    """
    Runs a zero-argument coroutine factory until it succeeds or attempts run out.

    ``config`` is either a fixed RetryConfig or a zero-argument callable
    returning one; a callable is consulted at the start of every
    ``execute`` so that reloaded settings apply to the next call.
    """

    def __init__(self, config: Union[RetryConfig, Callable[[], RetryConfig]]) -> None:
        self._source = config

    @classmethod
    def for_group_assignment(
        cls, retriable_exceptions: ExceptionTypes = (OperationalError,)
    ) -> RetryPolicy:
        """Policy that follows the live GROUP_ASSIGN_* settings."""
        return cls(lambda: RetryConfig.for_group_assignment(retriable_exceptions))

    @property
    def config(self) -> RetryConfig:
        source = self._source
        return source if isinstance(source, RetryConfig) else source()

    def _compute_backoff_ms(self, attempt: int, cfg: Optional[RetryConfig] = None) -> int:
        cfg = cfg or self.config
        delay = min(cfg.initial_backoff_ms << max(attempt - 1, 0), cfg.max_backoff_ms)
        if cfg.jitter_ms > 0:
            delay += random.randint(0, cfg.jitter_ms)
        return delay

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Raises:
            The first non-retriable exception, or the last retriable one once
            ``max_attempts`` calls have failed.
        """
        log_extra = {**(context or {}), "operation": operation_name}
        cfg = self.config
        limit = cfg.max_attempts

        for attempt in range(1, limit + 1):
            try:
                return await operation()
            except cfg.retriable_exceptions as exc:
                if attempt == limit:
                    logger.warning(
                        "Retries exhausted",
                        extra={
                            **log_extra,
                            "attempt": attempt,
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise

                delay_ms = self._compute_backoff_ms(attempt, cfg)
                logger.info(
                    "Lost a race, retrying",
                    extra={
                        **log_extra,
                        "attempt": attempt,
                        "error_type": type(exc).__name__,
                        "backoff_ms": delay_ms,
                    },
                )
                await asyncio.sleep(delay_ms / 1000.0)

        raise AssertionError("unreachable: retry loop ended without returning")
