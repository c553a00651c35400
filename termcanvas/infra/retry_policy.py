"""Retry policies for connecting to the canvas host.

Bounded exponential backoff with optional jitter.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Backoff settings for a retried operation"""

    attempts: int = 5
    min_delay_ms: int = 100
    max_delay_ms: int = 5000
    jitter: float = 0.0


CANVAS_CONNECT_RETRY = RetryConfig(
    attempts=5,
    min_delay_ms=100,
    max_delay_ms=5000,
    jitter=0.0,
)


def backoff_delay_ms(attempt: int, config: RetryConfig) -> float:
    """Delay before retrying after ``attempt`` (1-based) failed."""
    delay_ms = config.min_delay_ms * (2 ** (attempt - 1))
    delay_ms = min(delay_ms, config.max_delay_ms)

    if config.jitter > 0:
        jitter_amount = delay_ms * config.jitter
        delay_ms += random.uniform(-jitter_amount, jitter_amount)

    return max(0, delay_ms)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[dict[str, Any]], None]] = None,
    label: Optional[str] = None,
) -> T:
    """Await ``fn()`` until it succeeds or the attempts run out.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt
        config: Backoff settings (``CANVAS_CONNECT_RETRY`` if omitted)
        should_retry: Predicate on the raised exception; a False result
            re-raises at once
        on_retry: Receives a dict describing each scheduled retry
        label: Operation name used in log messages

    Raises:
        Whatever the final attempt raised
    """
    config = config or CANVAS_CONNECT_RETRY
    max_attempts = max(1, config.attempts)
    attempt = 0

    while True:
        attempt += 1
        try:
            return await fn()
        except Exception as exc:
            retryable = should_retry is None or should_retry(exc)
            if not retryable or attempt >= max_attempts:
                raise
            wait_ms = backoff_delay_ms(attempt, config)

            if on_retry is not None:
                on_retry({
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay_ms": wait_ms,
                    "label": label,
                    "error": str(exc),
                })
            logger.debug(f"{label or 'operation'} failed ({attempt}/{max_attempts}), retrying in {wait_ms:.0f}ms: {exc}")

        await asyncio.sleep(wait_ms / 1000)


__all__ = [
    "RetryConfig",
    "CANVAS_CONNECT_RETRY",
    "backoff_delay_ms",
    "retry_async",
]
