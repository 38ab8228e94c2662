"""Bounded retry with exponential backoff for transfer operations."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    retries: int = 0
    delay: float = 1.0
    backoff: float = 1.0
    max_delay: float = 60.0
    exceptions: tuple[type, ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be non-negative")
        if self.delay <= 0:
            raise ValueError("delay must be positive")
        if self.backoff <= 0:
            raise ValueError("backoff must be positive")
        if self.max_delay <= 0:
            raise ValueError("max_delay must be positive")

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry following the given zero-based attempt."""
        return min(self.delay * (self.backoff**attempt), self.max_delay)


def _is_retriable(error: Exception, retry_config: RetryConfig) -> bool:
    """Check if the error is an instance of any retriable exception type."""
    return any(isinstance(error, exc_type) for exc_type in retry_config.exceptions)


def call_with_retry(
    fn: Callable[[], T],
    retry_config: RetryConfig,
    description: str,
    logger: logging.Logger | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call fn, retrying retriable failures.

    Non-retriable errors propagate immediately. When retries are exhausted
    the last error is raised.
    """
    log = logger or logging.getLogger(__name__)

    for attempt in range(retry_config.retries + 1):
        try:
            return fn()
        except Exception as e:
            if not _is_retriable(e, retry_config):
                raise
            if attempt >= retry_config.retries:
                log.warning(
                    f"{description} failed after {attempt + 1} attempt(s): {e}"
                )
                raise
            delay = retry_config.delay_for(attempt)
            log.info(
                f"{description} failed (attempt {attempt + 1}/"
                f"{retry_config.retries + 1}), retrying in {delay:.1f}s: {e}"
            )
            sleep(delay)

    raise AssertionError("unreachable")
