"""Tests for mapbox_backup/rate_limit/bucket.py.

Time is driven by a fake clock; sleeping advances it.
"""

import pytest

from mapbox_backup.rate_limit.bucket import TokenBucket


def _bucket(clock, reservoir=3, refill_amount=None, refill_interval=60.0):
    return TokenBucket(
        reservoir=reservoir,
        refill_amount=refill_amount,
        refill_interval=refill_interval,
        clock=clock,
        sleep=clock.sleep,
    )


class TestTokenBucketConfiguration:
    """Tests for bucket construction."""

    def test_refill_amount_defaults_to_reservoir(self, fake_clock):
        """Without refill_amount the whole reservoir comes back each interval."""
        bucket = _bucket(fake_clock, reservoir=7)
        assert bucket.refill_amount == 7

    @pytest.mark.parametrize("kwargs", [{"reservoir": 0}, {"refill_amount": 0}, {"refill_interval": 0}])
    def test_invalid_configuration(self, fake_clock, kwargs):
        """Zero reservoir, refill or interval is rejected."""
        with pytest.raises(ValueError):
            _bucket(fake_clock, **kwargs)


class TestTokenBucketAcquire:
    """Tests for acquire()."""

    @pytest.mark.asyncio
    async def test_burst_up_to_reservoir(self, fake_clock):
        """Up to R requests pass without waiting."""
        bucket = _bucket(fake_clock, reservoir=3)

        waits = [await bucket.acquire() for _ in range(3)]

        assert waits == [0.0, 0.0, 0.0]
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_waits_for_next_interval(self, fake_clock):
        """Request R+1 waits until the interval ends."""
        bucket = _bucket(fake_clock, reservoir=3, refill_interval=60.0)
        for _ in range(3):
            await bucket.acquire()

        fake_clock.advance(15.0)
        waited = await bucket.acquire()

        assert waited == pytest.approx(45.0)
        assert fake_clock.now == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_admits_refill_amount_per_interval(self, fake_clock):
        """Each interval admits A more requests, never above R."""
        bucket = _bucket(fake_clock, reservoir=4, refill_amount=2, refill_interval=10.0)
        assert await bucket.acquire(4) == 0.0

        fake_clock.advance(10.0)
        assert await bucket.acquire(2) == 0.0
        assert await bucket.acquire() == pytest.approx(10.0)

        fake_clock.advance(100.0)
        assert await bucket.acquire(4) == 0.0

    @pytest.mark.asyncio
    async def test_never_more_than_reservoir_before_refill(self, fake_clock):
        """Within one interval at most R acquisitions pass without waiting."""
        bucket = _bucket(fake_clock, reservoir=5, refill_interval=60.0)

        waits = [await bucket.acquire() for _ in range(6)]

        assert waits[:5] == [0.0] * 5
        assert waits[5] == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_oversized_request_rejected(self, fake_clock):
        """Asking for more than the reservoir can never succeed."""
        bucket = _bucket(fake_clock, reservoir=2)

        with pytest.raises(ValueError):
            await bucket.acquire(3)
