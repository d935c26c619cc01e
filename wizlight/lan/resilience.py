"""Retry helper for lossy UDP exchanges.

Provides:
- ``RetryPolicy``      — attempt count and flat delay between attempts
- ``retry_exchange``   — retry wrapper for async exchange callables

Delays are flat and non-adaptive.  Only ``TransportError`` (timeouts, garbled
replies, socket errors) is retried; anything else propagates at once.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from wizlight.lan.errors import TransportError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry parameters.

    Parameters
    ----------
    attempts:
        Total number of attempts, including the first (minimum 1).
    delay:
        Seconds to wait between attempts.
    """

    attempts: int = 3
    delay: float = 0.5

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")


DEFAULT_RETRY = RetryPolicy()


async def retry_exchange(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy = DEFAULT_RETRY,
    label: str = "exchange",
    **kwargs: Any,
) -> T:
    """Call *fn* until it returns or *policy* is exhausted.

    Intermediate ``TransportError``s are swallowed; the last one is re-raised
    unchanged.
    """
    for attempt in range(1, policy.attempts + 1):
        try:
            result = await fn(*args, **kwargs)
        except TransportError as exc:
            if attempt == policy.attempts:
                logger.warning(
                    "[Wiz/Retry] {} failed after {} attempts: {}", label, attempt, exc,
                )
                raise
            logger.debug(
                "[Wiz/Retry] {} attempt {}/{} failed ({}), retrying in {:.1f}s",
                label, attempt, policy.attempts, exc, policy.delay,
            )
            await asyncio.sleep(policy.delay)
            continue
        if attempt > 1:
            logger.info("[Wiz/Retry] {} succeeded on attempt {}/{}", label, attempt, policy.attempts)
        return result
    raise AssertionError("unreachable")
