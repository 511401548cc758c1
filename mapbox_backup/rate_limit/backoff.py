"""Backoff between throttle retries."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from mapbox_backup.config.constants import MAX_THROTTLE_RETRIES, THROTTLE_RETRY_DELAY


class BackoffPolicy(ABC):
    """How long a throttled job waits before its next attempt, and how often
    it may try again.
    """

    max_retries: int

    @abstractmethod
    def delay_for(self, retry: int, error: BaseException | None = None) -> float:
        """Seconds to wait before retry number `retry` (0-indexed).

        Args:
            retry: Retries already made
            error: The throttling error that triggered the retry
        """
        ...

    def allows(self, retry: int) -> bool:
        """Whether one more retry may be made after `retry` retries."""
        return retry < self.max_retries


@dataclass
class FixedBackoff(BackoffPolicy):
    """Wait the same delay before every retry.

    A longer `Retry-After` hint from the server wins over the fixed delay.
    """

    delay: float = THROTTLE_RETRY_DELAY  # seconds
    max_retries: int = MAX_THROTTLE_RETRIES
    honor_retry_after: bool = True

    def delay_for(self, retry: int, error: BaseException | None = None) -> float:
        hint = getattr(error, "retry_after", None) if self.honor_retry_after else None
        if hint is not None:
            return max(self.delay, hint)
        return self.delay

