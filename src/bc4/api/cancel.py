"""Cancellation scopes for in-flight API work.

A :class:`CancelToken` is shared by every request started on behalf of one
user operation. Cancelling it (explicitly, through a parent, or when its
deadline passes) interrupts rate-limiter waits, courtesy delays between pages,
and HTTP calls that are already on the wire.

Tokens are bound to the event loop they are used on; call :meth:`cancel` from
that loop (use ``loop.call_soon_threadsafe`` from other threads).
"""

import asyncio
import logging
import weakref
from typing import Awaitable, TypeVar

from ..errors import CancellationError

logger = logging.getLogger("bc4.api.cancel")

__all__ = ["CancelToken", "DEADLINE_EXCEEDED"]

T = TypeVar("T")

DEADLINE_EXCEEDED = "deadline exceeded"
DEFAULT_REASON = "operation cancelled"


class CancelToken:
    """Cooperative cancellation scope with optional parent and deadline.

    Example:
        >>> token = CancelToken.with_timeout(30.0)
        >>> projects = await get_projects(client, token=token)
    """

    def __init__(self, parent: "CancelToken | None" = None) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._children: "weakref.WeakSet[CancelToken]" = weakref.WeakSet()
        self._timer: asyncio.TimerHandle | None = None
        self._parent = parent

        if parent is not None:
            if parent.cancelled:
                self.cancel(parent.reason)
            else:
                parent._children.add(self)

    @classmethod
    def with_timeout(cls, seconds: float, parent: "CancelToken | None" = None) -> "CancelToken":
        """Create a token that cancels itself after ``seconds``.

        Must be called from a running event loop.
        """
        token = cls(parent)
        if not token.cancelled:
            loop = asyncio.get_running_loop()
            token._timer = loop.call_later(seconds, token.cancel, DEADLINE_EXCEEDED)
        return token

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Cancel this token and every child. Idempotent; the first reason wins."""
        if self._event.is_set():
            return
        self._reason = reason or DEFAULT_REASON
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        logger.debug("cancel_token_cancelled", extra={"reason": self._reason})

        for child in list(self._children):
            child.cancel(self._reason)
        self._children.clear()

    def close(self) -> None:
        """Disarm the deadline and detach from the parent without cancelling."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._parent is not None:
            self._parent._children.discard(self)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(self._reason or DEFAULT_REASON)

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, raising CancellationError as soon as cancelled."""
        self.raise_if_cancelled()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token is cancelled first.

        On cancellation the underlying task is cancelled and awaited before
        CancellationError is raised, so no work outlives the scope.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            waiter.cancel()
            task.cancel()
            await asyncio.wait({task})
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise  # We were cancelled ourselves while draining
            # Expected after cancel
        raise CancellationError(self._reason or DEFAULT_REASON)

    async def __aenter__(self) -> "CancelToken":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = f"cancelled ({self._reason})" if self.cancelled else "active"
        return f"<CancelToken {state}>"
