"""
Bounded async retry combinator.

retry_async() runs an attempt function up to max_attempts times. An
attempt "fails" when it returns None or raises; any other value ends the
loop. The caller gets a RetryResult instead of an exception, so the
retry policy never leaks into control flow.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fixed delay in seconds, or a function of the upcoming attempt number (2..N)
DelaySchedule = Union[float, Callable[[int], float]]


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Outcome of a bounded retry."""

    value: Optional[T]
    attempts: int
    last_error: Optional[Exception] = None

    @property
    def exhausted(self) -> bool:
        """True when every attempt failed."""
        return self.value is None


async def retry_async(
    attempt: Callable[[int], Awaitable[Optional[T]]],
    max_attempts: int,
    delay: DelaySchedule = 0.0,
    label: str = "operation",
) -> RetryResult[T]:
    """
    Run attempt(n) for n = 1..max_attempts until it returns a value.

    The delay is applied before every attempt after the first.

    Args:
        attempt: Coroutine function taking the 1-based attempt number
        max_attempts: Upper bound on attempts (at least 1)
        delay: Seconds to wait between attempts, or a schedule function
        label: Name used in log messages

    Returns:
        RetryResult with the first non-None value, or value=None if
        every attempt failed
    """
    max_attempts = max(1, max_attempts)
    last_error: Optional[Exception] = None

    for n in range(1, max_attempts + 1):
        if n > 1:
            wait = delay(n) if callable(delay) else delay
            if wait > 0:
                logger.debug(f"Waiting {wait:.1f}s before {label} attempt {n}/{max_attempts}")
                await asyncio.sleep(wait)

        try:
            value = await attempt(n)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            logger.warning(f"{label} attempt {n}/{max_attempts} failed: {e}")
            continue

        if value is not None:
            return RetryResult(value=value, attempts=n, last_error=last_error)

        logger.debug(f"{label} attempt {n}/{max_attempts} returned nothing")

    return RetryResult(value=None, attempts=max_attempts, last_error=last_error)
