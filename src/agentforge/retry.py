"""Retry controller for remote LLM calls: exponential backoff with jitter.

Every remote call in the pipeline goes through with_retry(). Rate-limit
failures (HTTP 429, quota exhausted) cool down on a larger base delay
than other failures.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from tenacity import RetryCallState, Retrying, stop_after_attempt

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_MARKERS = (
    "429",
    "rate limit",
    "rate-limit",
    "resource_exhausted",
    "resource has been exhausted",
    "quota",
    "too many requests",
)


def is_rate_limited(exc: BaseException | None) -> bool:
    """Classify an error as rate limiting by substring match on its message."""
    if exc is None:
        return False
    msg = str(exc).lower()
    return any(marker in msg for marker in RATE_LIMIT_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt a call and how long to wait in between.

    Delay after failed attempt ``i`` (0-based) is
    ``base * 2**i + uniform(0, jitter)`` where ``base`` is
    ``rate_limit_delay`` for rate-limit errors and ``base_delay`` otherwise.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    rate_limit_delay: float = 3.0
    jitter: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if min(self.base_delay, self.rate_limit_delay, self.jitter) < 0:
            raise ValueError("delays must be non-negative")

    def compute_delay(self, attempt: int, exc: BaseException | None) -> float:
        base = self.rate_limit_delay if is_rate_limited(exc) else self.base_delay
        return base * (2**attempt) + random.uniform(0, self.jitter)

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return self.compute_delay(retry_state.attempt_number - 1, exc)

    @classmethod
    def from_settings(cls, settings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay,
            rate_limit_delay=settings.rate_limit_base_delay,
            jitter=settings.retry_jitter,
        )


DEFAULT_RETRY = RetryPolicy()


def with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    description: str = "LLM call",
) -> T:
    """Run *operation* until it succeeds or the policy's attempts run out.

    Attempts are strictly serial. After the last failure the original
    exception is re-raised unchanged.
    """
    policy = policy or DEFAULT_RETRY

    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s failed (attempt %d/%d)%s: %s. Retrying in %.1fs",
            description,
            retry_state.attempt_number,
            policy.max_attempts,
            " [rate limited]" if is_rate_limited(exc) else "",
            exc,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy._wait,
        sleep=policy.sleep,
        reraise=True,
        before_sleep=_log_retry,
    )
    return retrying(operation)
