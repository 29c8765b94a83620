"""Unit tests for the token bucket rate limiter.

Tests RateLimiter with:
- Initial capacity and non-blocking acquisition
- Whole-token refill that keeps fractional progress
- Wait computation when empty
- Blocking and async acquisition (with cancellation)
- Thread safety under concurrent callers
"""

import asyncio
import threading
from unittest.mock import AsyncMock, patch

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from bc4.api.cancel import CancelToken
from bc4.api.ratelimit import RateLimiter
from bc4.config import Bc4Config
from bc4.errors import CancellationError

# =============================================================================
# Capacity and Refill
# =============================================================================


class TestCapacity:
    """Bucket starts full and drains one token per acquisition."""

    def test_defaults_match_basecamp_quota(self):
        limiter = RateLimiter()
        assert limiter.max_tokens == 50
        assert limiter.window_seconds == 10.0
        assert limiter.refill_interval == pytest.approx(0.2)

    def test_starts_full(self, limiter):
        assert limiter.tokens == 4

    def test_try_acquire_drains_bucket(self, limiter):
        assert [limiter.try_acquire() for _ in range(5)] == [True, True, True, True, False]
        assert limiter.tokens == 0

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_tokens": 0}, {"window_seconds": 0}, {"window_seconds": -1.0}],
    )
    def test_invalid_parameters_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RateLimiter(**kwargs)

    def test_from_config(self):
        config = Bc4Config(rate_limit_max_tokens=20, rate_limit_window_seconds=5.0)
        limiter = RateLimiter.from_config(config)
        assert limiter.max_tokens == 20
        assert limiter.refill_interval == pytest.approx(0.25)


class TestRefill:
    """Refill adds whole tokens and advances the refill clock by their worth."""

    def test_partial_interval_adds_nothing(self, limiter, clock):
        for _ in range(4):
            limiter.try_acquire()
        clock.advance(0.125)
        assert limiter.tokens == 0

    def test_fractional_progress_is_kept(self, limiter, clock):
        for _ in range(4):
            limiter.try_acquire()

        clock.now = 0.375  # 1.5 intervals
        assert limiter.tokens == 1

        # Only half an interval more is needed for the next token
        clock.now = 0.5
        assert limiter.tokens == 2

    def test_refill_capped_at_max(self, limiter, clock):
        limiter.try_acquire()
        clock.advance(100.0)
        assert limiter.tokens == 4

    def test_reset_refills_and_restarts_clock(self, limiter, clock):
        for _ in range(4):
            limiter.try_acquire()
        clock.now = 0.125
        limiter.reset()
        assert limiter.tokens == 4

        for _ in range(4):
            limiter.try_acquire()
        # Refill clock restarted at 0.125, so no token yet at 0.25
        clock.now = 0.25
        assert limiter.tokens == 0

    def test_get_status(self, limiter, clock):
        limiter.try_acquire()
        status = limiter.get_status()
        assert status["tokens"] == 3
        assert status["max_tokens"] == 4
        assert status["window_seconds"] == 1.0
        assert status["refill_interval_seconds"] == 0.25


class TestWaitComputation:
    """Empty bucket reports the time until the next whole token."""

    def test_wait_is_remaining_interval(self, limiter, clock):
        for _ in range(4):
            limiter.try_acquire()
        clock.now = 0.125
        assert limiter._take() == pytest.approx(0.125)

    def test_wait_is_full_interval_right_after_drain(self, limiter, clock):
        for _ in range(4):
            limiter.try_acquire()
        assert limiter._take() == pytest.approx(0.25)


# =============================================================================
# Blocking and Async Acquisition
# =============================================================================


class TestAcquire:
    """acquire() sleeps with the lock released until a token is available."""

    def test_acquire_without_waiting(self, limiter):
        with patch("bc4.api.ratelimit.time.sleep") as sleep:
            limiter.acquire()
        sleep.assert_not_called()
        assert limiter.tokens == 3

    def test_acquire_sleeps_until_refill(self, limiter, clock):
        for _ in range(4):
            limiter.try_acquire()

        with patch("bc4.api.ratelimit.time.sleep", side_effect=clock.advance) as sleep:
            limiter.acquire()

        sleep.assert_called_once_with(pytest.approx(0.25))
        assert limiter.tokens == 0

    @pytest.mark.asyncio
    async def test_acquire_async_sleeps_until_refill(self, limiter, clock):
        for _ in range(4):
            limiter.try_acquire()

        sleep = AsyncMock(side_effect=clock.advance)
        with patch("bc4.api.ratelimit.asyncio.sleep", new=sleep):
            await limiter.acquire_async()

        sleep.assert_awaited_once_with(pytest.approx(0.25))

    @pytest.mark.asyncio
    async def test_acquire_async_cancelled_while_waiting(self):
        limiter = RateLimiter(max_tokens=1, window_seconds=60.0)
        assert limiter.try_acquire()

        token = CancelToken()
        asyncio.get_running_loop().call_later(0.02, token.cancel, "user interrupt")

        with pytest.raises(CancellationError, match="user interrupt"):
            await asyncio.wait_for(limiter.acquire_async(token), timeout=2.0)

    @pytest.mark.asyncio
    async def test_acquire_async_already_cancelled_takes_no_token(self, limiter):
        token = CancelToken()
        token.cancel()

        with pytest.raises(CancellationError):
            await limiter.acquire_async(token)
        assert limiter.tokens == 4


# =============================================================================
# Concurrency and Invariants
# =============================================================================


class TestConcurrency:
    def test_concurrent_callers_never_overdraw(self, clock):
        limiter = RateLimiter(max_tokens=50, window_seconds=10.0, clock=clock)
        successes = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                if limiter.try_acquire():
                    with lock:
                        successes.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Frozen clock: exactly the initial capacity is handed out
        assert len(successes) == 50
        assert limiter.tokens == 0

    def test_blocking_callers_all_served_under_contention(self):
        # 5 tokens refilling every 10ms on the real clock; 15 callers must wait
        limiter = RateLimiter(max_tokens=5, window_seconds=0.05)
        done = []
        lock = threading.Lock()

        def worker(n):
            limiter.acquire()
            with lock:
                done.append(n)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert not any(t.is_alive() for t in threads)
        assert sorted(done) == list(range(20))
        assert 0 <= limiter.tokens <= 5

    @pytest.mark.asyncio
    async def test_async_callers_all_served_under_contention(self):
        limiter = RateLimiter(max_tokens=5, window_seconds=0.05)

        await asyncio.wait_for(
            asyncio.gather(*(limiter.acquire_async() for _ in range(20))),
            timeout=10,
        )

        assert 0 <= limiter.tokens <= 5
        assert limiter.get_status()["tokens"] <= 5


@given(
    steps=st.lists(
        st.tuples(st.floats(min_value=0.0, max_value=3.0), st.booleans()),
        max_size=60,
    )
)
@settings(max_examples=200, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_tokens_stay_within_bounds(steps):
    """Property: 0 <= tokens <= max_tokens for any interleaving of time and takes."""
    now = [0.0]
    limiter = RateLimiter(max_tokens=5, window_seconds=1.0, clock=lambda: now[0])

    for advance, take in steps:
        now[0] += advance
        if take:
            limiter.try_acquire()
        assert 0 <= limiter.tokens <= 5
