"""Bounded exponential backoff around a single generation attempt."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .errors import error_text, is_retryable
from .logger import Logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait in between."""

    max_retries: int = 3
    base_delay_ms: float = 1000.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Milliseconds to wait after failed attempt *attempt* (0-based); no cap, no jitter."""
        return self.base_delay_ms * 2**attempt


class RetryExhaustedError(Exception):
    """Carries the last failure together with the number of attempts made."""

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        super().__init__(error_text(last_error))
        self.last_error = last_error
        self.attempts = attempts


async def _sleep(delay_ms: float) -> None:
    await asyncio.sleep(delay_ms / 1000)


async def run_with_retry(
    attempt_fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    logger: Logger,
    model: str,
) -> T:
    """Run *attempt_fn* until it succeeds, fails terminally or runs out of attempts.

    Attempts are strictly sequential. A failure is retried only when
    :func:`~generative.errors.is_retryable` accepts it and attempts remain;
    otherwise :class:`RetryExhaustedError` wraps the last failure.
    """
    for attempt in range(policy.max_attempts):
        if attempt > 0:
            logger.info("Retrying generation", {"attempt": attempt, "model": model})
        try:
            return await attempt_fn()
        except Exception as exc:
            if not is_retryable(exc) or attempt == policy.max_retries:
                raise RetryExhaustedError(exc, attempt + 1) from exc

            delay = policy.delay_for(attempt)
            logger.warn(
                "Generation failed, will retry",
                {"attempt": attempt, "delay": delay, "error": error_text(exc)},
            )
            await _sleep(delay)

    raise AssertionError("retry loop exited without a result")  # pragma: no cover


__all__ = ["RetryPolicy", "RetryExhaustedError", "run_with_retry"]
