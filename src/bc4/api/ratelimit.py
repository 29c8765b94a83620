"""Token bucket rate limiter for the Basecamp API.

Basecamp allows 50 requests per 10 seconds per access token. The bucket starts
full, so short bursts go straight through, and refills one token every
``window / max_tokens`` seconds (200ms with the defaults).

One instance is created at startup (see :meth:`RateLimiter.from_config`) and
handed to every client, so all concurrent fetches in the process share it.

Pattern based on:
- Token Bucket Algorithm: https://en.wikipedia.org/wiki/Token_bucket
- Basecamp rate limits: https://github.com/basecamp/bc3-api#rate-limiting-429-too-many-requests
"""

import asyncio
import logging
import math
import threading
import time
from typing import TYPE_CHECKING, Any, Callable

from .. import metrics

if TYPE_CHECKING:
    from ..config import Bc4Config
    from .cancel import CancelToken

logger = logging.getLogger("bc4.api.ratelimit")

__all__ = ["DEFAULT_MAX_TOKENS", "DEFAULT_WINDOW_SECONDS", "RateLimiter"]

DEFAULT_MAX_TOKENS = 50
DEFAULT_WINDOW_SECONDS = 10.0


class RateLimiter:
    """Process-wide token bucket shared by every outbound request.

    Refill and decrement happen in one critical section; waiting happens with
    the lock released so other callers are never blocked behind a sleeper.

    Example:
        >>> limiter = RateLimiter()
        >>> await limiter.acquire_async()
        >>> response = await http.get(url)
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize a full bucket.

        Args:
            max_tokens: Bucket capacity (requests per window)
            window_seconds: Time for an empty bucket to refill completely
            clock: Monotonic time source (injectable for tests)
        """
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")

        self.max_tokens = max_tokens
        self.window_seconds = window_seconds
        self.refill_interval = window_seconds / max_tokens
        self._clock = clock

        self._tokens = max_tokens
        self._last_refill = clock()
        self._lock = threading.Lock()

        logger.debug(
            "rate_limiter_initialized",
            extra={
                "max_tokens": max_tokens,
                "window_seconds": window_seconds,
                "refill_interval_seconds": self.refill_interval,
            },
        )

    @classmethod
    def from_config(cls, config: "Bc4Config") -> "RateLimiter":
        return cls(
            max_tokens=config.rate_limit_max_tokens,
            window_seconds=config.rate_limit_window_seconds,
        )

    def _refill(self, now: float) -> None:
        """Add whole tokens for the elapsed time. Caller holds the lock.

        The refill clock advances by exactly the time the added tokens
        account for, so fractional progress toward the next token is kept.
        """
        elapsed = now - self._last_refill
        tokens_to_add = math.floor(elapsed / self.refill_interval)
        if tokens_to_add > 0:
            self._tokens = min(self._tokens + tokens_to_add, self.max_tokens)
            self._last_refill += tokens_to_add * self.refill_interval

    def _take(self) -> float | None:
        """Try to take one token.

        Returns:
            None if a token was taken, otherwise seconds until the next refill
        """
        with self._lock:
            now = self._clock()
            self._refill(now)
            if self._tokens > 0:
                self._tokens -= 1
                return None

            wait = self.refill_interval - (now - self._last_refill)
            if wait <= 0:
                wait = self.refill_interval
            return wait

    def acquire(self) -> None:
        """Block the calling thread until a token is available."""
        waited = 0.0
        while True:
            wait = self._take()
            if wait is None:
                break
            logger.debug("rate_limit_wait", extra={"wait_seconds": round(wait, 4)})
            time.sleep(wait)
            waited += wait

        if waited:
            metrics.rate_limit_wait_seconds.observe(waited)

    async def acquire_async(self, token: "CancelToken | None" = None) -> None:
        """Wait (without blocking the event loop) until a token is available.

        Raises:
            CancellationError: If ``token`` is cancelled while waiting
        """
        waited = 0.0
        while True:
            if token is not None:
                token.raise_if_cancelled()

            wait = self._take()
            if wait is None:
                break

            logger.debug("rate_limit_wait", extra={"wait_seconds": round(wait, 4)})
            if token is not None:
                await token.sleep(wait)
            else:
                await asyncio.sleep(wait)
            waited += wait

        if waited:
            metrics.rate_limit_wait_seconds.observe(waited)

    def try_acquire(self) -> bool:
        """Take a token if one is available right now."""
        return self._take() is None

    def reset(self) -> None:
        """Refill the bucket completely and restart the refill clock."""
        with self._lock:
            self._tokens = self.max_tokens
            self._last_refill = self._clock()

    @property
    def tokens(self) -> int:
        """Tokens available now (after applying any pending refill)."""
        with self._lock:
            self._refill(self._clock())
            return self._tokens

    def get_status(self) -> dict[str, Any]:
        """Snapshot for diagnostics (``bc4 doctor``-style output)."""
        with self._lock:
            now = self._clock()
            self._refill(now)
            return {
                "tokens": self._tokens,
                "max_tokens": self.max_tokens,
                "window_seconds": self.window_seconds,
                "refill_interval_seconds": self.refill_interval,
                "seconds_since_refill": now - self._last_refill,
            }
