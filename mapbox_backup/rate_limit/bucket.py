"""Token Bucket with interval refills.

Models an API quota of "R requests per T seconds":
- Requests consume tokens from a reservoir of at most R
- Every full interval T adds A tokens back, capped at R
- Burst allowed up to the reservoir size

Clock and sleep are injectable so tests can drive time by hand.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from mapbox_backup.config.constants import STYLES_RATE_INTERVAL, STYLES_RATE_RESERVOIR
from mapbox_backup.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TokenBucket:
    """Token bucket rate limiter with a reservoir refilled per interval.

    Usage:
        bucket = TokenBucket(reservoir=2000, refill_amount=2000, refill_interval=60.0)

        # Acquire before making request
        await bucket.acquire()
        await make_request()
    """

    # Configuration
    reservoir: int = STYLES_RATE_RESERVOIR  # Maximum bucket capacity
    refill_amount: int | None = None  # Tokens added per interval (default: reservoir)
    refill_interval: float = STYLES_RATE_INTERVAL  # Seconds
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    # State
    _tokens: float = field(init=False)
    _last_refill: float = field(init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize bucket to full capacity."""
        if self.refill_amount is None:
            self.refill_amount = self.reservoir
        if self.reservoir < 1 or self.refill_amount < 1:
            raise ValueError("reservoir and refill_amount must be at least 1")
        if self.refill_interval <= 0:
            raise ValueError("refill_interval must be positive")

        self._tokens = float(self.reservoir)
        self._last_refill = self.clock()

    def _refill(self) -> None:
        """Add tokens for every full interval elapsed since the last refill."""
        elapsed = self.clock() - self._last_refill
        intervals = int(elapsed // self.refill_interval)
        if intervals > 0:
            self._tokens = min(
                float(self.reservoir),
                self._tokens + intervals * self.refill_amount,
            )
            self._last_refill += intervals * self.refill_interval

    async def acquire(self, tokens: int = 1) -> float:
        """Acquire tokens from the bucket.

        Blocks until tokens are available. Waiters are served in order.

        Args:
            tokens: Number of tokens to acquire

        Returns:
            Wait time in seconds (0 if no wait needed)
        """
        if tokens > self.reservoir:
            raise ValueError(f"Cannot acquire {tokens} tokens from a reservoir of {self.reservoir}")

        async with self._lock:
            waited = 0.0
            self._refill()

            while self._tokens < tokens:
                wait_time = max(0.0, self._last_refill + self.refill_interval - self.clock())
                logger.debug(
                    f"Rate budget exhausted, waiting {wait_time:.1f}s for refill",
                    extra={"tokens": self._tokens},
                )
                await self.sleep(wait_time)
                waited += wait_time
                self._refill()

            self._tokens -= tokens
            return waited

