"""Rate limiting infrastructure for artifact downloads."""

from .backoff import BackoffPolicy, FixedBackoff
from .bucket import TokenBucket
from .scheduler import RateLimitedScheduler

__all__ = [
    # Backoff policies
    "BackoffPolicy",
    "FixedBackoff",
    # Budget
    "TokenBucket",
    # Scheduling
    "RateLimitedScheduler",
]
