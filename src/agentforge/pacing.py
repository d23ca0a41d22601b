"""Pacing for sequential expert calls.

A token bucket the expert sequencer asks for permission before every
remote call. Clock and sleep are injectable so tests run on virtual time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


class Pacer(Protocol):
    def acquire(self, tokens: int = 1) -> float: ...


@dataclass
class TokenBucket:
    """
    Token bucket algorithm for rate limiting.

    The bucket has a maximum capacity and refills at a constant rate.
    Each call consumes one token; when the bucket is empty, acquire()
    sleeps until enough tokens have refilled.

    Args:
        capacity: Maximum number of tokens (burst size)
        refill_rate: Tokens added per second
    """

    capacity: int
    refill_rate: float
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    tokens: float = field(init=False)
    last_refill: float = field(init=False)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        if self.refill_rate <= 0:
            raise ValueError("refill_rate must be > 0")
        self.tokens = float(self.capacity)
        self.last_refill = self.clock()

    @classmethod
    def from_interval(
        cls,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> TokenBucket:
        """One call per *interval* seconds, no bursting."""
        if interval <= 0:
            raise ValueError("interval must be > 0")
        return cls(capacity=1, refill_rate=1.0 / interval, clock=clock, sleep=sleep)

    def _refill(self) -> None:
        now = self.clock()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def try_acquire(self, tokens: int = 1) -> bool:
        """Take tokens if available without waiting."""
        self._refill()
        if self.tokens + _EPSILON >= tokens:
            self.tokens = max(0.0, self.tokens - tokens)
            return True
        return False

    def time_until_available(self, tokens: int = 1) -> float:
        """Seconds until *tokens* can be taken; 0 if available now."""
        self._refill()
        if self.tokens + _EPSILON >= tokens:
            return 0.0
        return (tokens - self.tokens) / self.refill_rate

    def acquire(self, tokens: int = 1) -> float:
        """Take tokens, sleeping as long as necessary.

        Returns the total time spent waiting.
        """
        if tokens > self.capacity:
            raise ValueError(f"cannot acquire {tokens} tokens from a bucket of {self.capacity}")
        waited = 0.0
        while not self.try_acquire(tokens):
            wait = self.time_until_available(tokens)
            logger.debug("Pacing: waiting %.2fs before next call", wait)
            self.sleep(wait)
            waited += wait
        return waited


def pacer_from_interval(interval: float) -> TokenBucket | None:
    """Build the default pacer; None when pacing is disabled (interval 0)."""
    if interval <= 0:
        return None
    return TokenBucket.from_interval(interval)
