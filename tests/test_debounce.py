"""Tests for the cancelable debounce timer."""

import asyncio

from storefront.shipping import CancelableTimer


class TestCancelableTimer:
    async def test_restart_runs_only_latest_effect(self):
        timer = CancelableTimer()
        ran: list[str] = []

        async def effect(name):
            ran.append(name)

        timer.start(0.02, lambda: effect("first"))
        timer.start(0.02, lambda: effect("second"))
        await timer.join()

        assert ran == ["second"]
        assert not timer.pending

    async def test_cancel_drops_pending(self):
        timer = CancelableTimer()
        ran: list[int] = []

        async def effect():
            ran.append(1)

        timer.start(0.01, effect)
        assert timer.pending
        assert timer.cancel()
        await asyncio.sleep(0.03)

        assert ran == []
        assert not timer.cancel()

    async def test_cancel_leaves_running_effect(self):
        timer = CancelableTimer()
        release = asyncio.Event()
        finished: list[int] = []

        async def effect():
            await release.wait()
            finished.append(1)

        timer.start(0, effect)
        await asyncio.sleep(0.01)
        assert timer.running

        assert not timer.cancel()
        release.set()
        await timer.join()

        assert finished == [1]
        assert not timer.running
