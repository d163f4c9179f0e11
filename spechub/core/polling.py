"""
Fixed-Interval Polling

One "poll until the probe yields something" loop for every eventual-consistency
wait in the synchronizer. Call sites differ only in what happens when the
attempts run out, so that is an explicit parameter:

- ExhaustionPolicy.WARN: log a warning and return None (the resource is
  assumed to exist already, e.g. a collection being re-synchronized)
- ExhaustionPolicy.RAISE: raise the given timeout error (nothing is known to
  exist yet, e.g. a collection being generated for the first time)

There is no backoff and no jitter: every attempt sleeps `interval` seconds
first, then probes.

Usage:
    from spechub.core.polling import ExhaustionPolicy, poll_until

    found = await poll_until(
        probe,
        interval=2.0,
        max_attempts=10,
        on_exhausted=ExhaustionPolicy.RAISE,
        description="collection 'Task API - Docs'",
        timeout_error=GenerationTimeoutError,
    )
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from spechub.core.errors import PollTimeoutError
from spechub.core.metrics import poll_attempts

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExhaustionPolicy(str, Enum):
    """What to do when the attempt cap is reached."""
    WARN = "warn"
    RAISE = "raise"


async def poll_until(
    probe: Callable[[], Awaitable[Optional[T]]],
    *,
    interval: float,
    max_attempts: int,
    on_exhausted: ExhaustionPolicy,
    description: str,
    retry_on: Tuple[Type[BaseException], ...] = (),
    timeout_error: Type[PollTimeoutError] = PollTimeoutError,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Optional[T]:
    """
    Call `probe` until it returns a non-None value.

    Args:
        probe: Coroutine factory; None means "not there yet"
        interval: Seconds slept before every attempt
        max_attempts: Attempt cap
        on_exhausted: WARN returns None, RAISE raises `timeout_error`
        description: What is being waited for (logs and error text)
        retry_on: Exception types treated as a miss instead of propagating
        timeout_error: PollTimeoutError subclass raised under RAISE
        sleep: Injected for tests

    Returns:
        The first non-None probe result, or None after a WARN exhaustion
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    for attempt in range(1, max_attempts + 1):
        await sleep(interval)
        try:
            result = await probe()
        except retry_on as e:
            poll_attempts.labels(outcome="error").inc()
            logger.info(
                f"Waiting for {description}... ({attempt}/{max_attempts})",
                extra={"attempt": attempt, "error": str(e)},
            )
            continue

        if result is not None:
            poll_attempts.labels(outcome="found").inc()
            logger.debug(f"{description} ready after {attempt} attempt(s)")
            return result

        poll_attempts.labels(outcome="miss").inc()
        logger.info(f"Waiting for {description}... ({attempt}/{max_attempts})")

    poll_attempts.labels(outcome="exhausted").inc()
    if on_exhausted is ExhaustionPolicy.WARN:
        logger.warning(
            f"Wait for {description} timed out after {max_attempts} attempts; "
            "assuming it is up to date"
        )
        return None

    raise timeout_error(what=description, attempts=max_attempts, interval=interval)
