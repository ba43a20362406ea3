"""Bounded exponential-backoff retry for upstream calls.

Only :class:`~refdata_rag.utils.errors.TransientUpstreamError` is retried.
Any other exception propagates on the first attempt.  When every attempt
fails transiently the last error is wrapped in
:class:`~refdata_rag.utils.errors.UpstreamFailureError`.

Delays double from ``base_delay``: with the defaults (3 attempts, 1 s) a
failing call sleeps 1 s, then 2 s, then gives up.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from refdata_rag.utils.errors import TransientUpstreamError, UpstreamFailureError

logger = structlog.get_logger(logger_name=__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an upstream call and how long to wait between tries."""

    max_attempts: int = 3
    base_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retrying after failed *attempt* (1-based)."""
        return self.base_delay * (2 ** (attempt - 1))


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    operation_name: str,
    provider_name: str | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds or *policy* is exhausted.

    Parameters
    ----------
    operation:
        Zero-argument coroutine factory; called afresh on every attempt.
    policy:
        Attempt count and base delay.
    operation_name:
        Short label used in log events (e.g. ``"embedding"``).
    provider_name:
        Attached to the :class:`UpstreamFailureError` raised on exhaustion.
    sleep:
        Awaitable sleep, injectable so tests do not wait in real time.
    """
    last_error: TransientUpstreamError | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except TransientUpstreamError as exc:
            last_error = exc
            if attempt == policy.max_attempts:
                break
            backoff = policy.delay_for(attempt)
            logger.warning(
                "upstream_call_retrying",
                operation=operation_name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                backoff_s=backoff,
                error=str(exc),
            )
            await sleep(backoff)

    logger.error(
        "upstream_call_exhausted",
        operation=operation_name,
        attempts=policy.max_attempts,
        error=str(last_error),
    )
    raise UpstreamFailureError(
        message=(
            f"{operation_name} failed after {policy.max_attempts} attempts: "
            f"{last_error.message if last_error else 'unknown error'}"
        ),
        provider_name=provider_name,
    ) from last_error
