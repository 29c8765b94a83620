"""Unit tests for CancelToken cancellation scopes."""

import asyncio

import pytest

from bc4.api.cancel import DEADLINE_EXCEEDED, CancelToken
from bc4.errors import CancellationError

# =============================================================================
# Cancel State and Hierarchy
# =============================================================================


class TestCancelState:
    @pytest.mark.asyncio
    async def test_starts_active(self):
        token = CancelToken()
        assert not token.cancelled
        assert token.reason is None
        token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_first_reason_wins(self):
        token = CancelToken()
        token.cancel("first")
        token.cancel("second")
        assert token.cancelled
        assert token.reason == "first"

    @pytest.mark.asyncio
    async def test_default_reason(self):
        token = CancelToken()
        token.cancel()
        with pytest.raises(CancellationError, match="operation cancelled"):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_repr(self):
        token = CancelToken()
        assert repr(token) == "<CancelToken active>"
        token.cancel("stop")
        assert repr(token) == "<CancelToken cancelled (stop)>"


class TestHierarchy:
    @pytest.mark.asyncio
    async def test_parent_cancel_cascades(self):
        parent = CancelToken()
        child = CancelToken(parent)
        grandchild = CancelToken(child)

        parent.cancel("shutdown")

        assert child.reason == "shutdown"
        assert grandchild.reason == "shutdown"

    @pytest.mark.asyncio
    async def test_child_cancel_leaves_parent_active(self):
        parent = CancelToken()
        child = CancelToken(parent)
        child.cancel()
        assert not parent.cancelled

    @pytest.mark.asyncio
    async def test_child_of_cancelled_parent_starts_cancelled(self):
        parent = CancelToken()
        parent.cancel("already gone")
        child = CancelToken(parent)
        assert child.cancelled
        assert child.reason == "already gone"

    @pytest.mark.asyncio
    async def test_closed_child_is_detached(self):
        parent = CancelToken()
        child = CancelToken(parent)
        child.close()
        parent.cancel()
        assert not child.cancelled

    @pytest.mark.asyncio
    async def test_async_context_manager_closes(self):
        parent = CancelToken()
        async with CancelToken(parent) as child:
            assert not child.cancelled
        parent.cancel()
        assert not child.cancelled


# =============================================================================
# Deadlines
# =============================================================================


class TestDeadline:
    @pytest.mark.asyncio
    async def test_with_timeout_cancels(self):
        token = CancelToken.with_timeout(0.01)
        await asyncio.sleep(0.05)
        assert token.cancelled
        assert token.reason == DEADLINE_EXCEEDED

    @pytest.mark.asyncio
    async def test_close_disarms_deadline(self):
        token = CancelToken.with_timeout(0.01)
        token.close()
        await asyncio.sleep(0.05)
        assert not token.cancelled

    @pytest.mark.asyncio
    async def test_deadline_cascades_to_children(self):
        token = CancelToken.with_timeout(0.01)
        child = CancelToken(token)
        await asyncio.sleep(0.05)
        assert child.reason == DEADLINE_EXCEEDED


# =============================================================================
# Cancellable Sleep and Run
# =============================================================================


class TestSleep:
    @pytest.mark.asyncio
    async def test_sleep_completes(self):
        token = CancelToken()
        await token.sleep(0.01)
        assert not token.cancelled

    @pytest.mark.asyncio
    async def test_sleep_interrupted(self):
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel, "interrupted")
        loop = asyncio.get_running_loop()
        start = loop.time()

        with pytest.raises(CancellationError, match="interrupted"):
            await token.sleep(10.0)
        assert loop.time() - start < 5.0

    @pytest.mark.asyncio
    async def test_sleep_on_cancelled_token_raises_immediately(self):
        token = CancelToken()
        token.cancel()
        with pytest.raises(CancellationError):
            await token.sleep(0)


class TestRun:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def work():
            await asyncio.sleep(0)
            return 42

        assert await CancelToken().run(work()) == 42

    @pytest.mark.asyncio
    async def test_propagates_exception(self):
        async def work():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await CancelToken().run(work())

    @pytest.mark.asyncio
    async def test_cancel_interrupts_in_flight_work(self):
        token = CancelToken()
        started = asyncio.Event()
        unwound = []

        async def work():
            started.set()
            try:
                await asyncio.sleep(10.0)
            finally:
                unwound.append(True)

        async def cancel_when_started():
            await started.wait()
            token.cancel("stop now")

        canceller = asyncio.create_task(cancel_when_started())
        with pytest.raises(CancellationError, match="stop now"):
            await token.run(work())
        await canceller

        # Inner work was cancelled and awaited before run() raised
        assert unwound == [True]

    @pytest.mark.asyncio
    async def test_already_cancelled_never_starts_work(self):
        token = CancelToken()
        token.cancel()
        calls = []

        async def work():
            calls.append(1)

        with pytest.raises(CancellationError):
            await token.run(work())
        assert calls == []

    @pytest.mark.asyncio
    async def test_outer_task_cancellation_propagates(self):
        token = CancelToken()
        unwound = []

        async def work():
            try:
                await asyncio.sleep(10.0)
            finally:
                unwound.append(True)

        task = asyncio.create_task(token.run(work()))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.01)
        assert unwound == [True]
