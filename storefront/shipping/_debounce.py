"""
Cancelable timer — debounce on the running event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta

type Effect = Callable[[], Awaitable[object]]


class CancelableTimer:
    """
    At most one pending effect.

    start() cancels whatever is pending before arming, so only the most
    recent effect ever runs. cancel() only affects an effect that has not
    fired yet; an effect already running is left to finish.

    Example:
        timer = CancelableTimer()
        timer.start(timedelta(milliseconds=400), fetch)   # armed
        timer.start(timedelta(milliseconds=400), fetch)   # re-armed
        await timer.join()                                # fetch ran once
    """

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[object]] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self, delay: timedelta | float, effect: Effect) -> None:
        self.cancel()
        seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(seconds, 0.0), self._fire, effect)

    def cancel(self) -> bool:
        """Drop the pending effect. Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self, effect: Effect) -> None:
        self._handle = None
        task = asyncio.ensure_future(effect())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def join(self) -> None:
        """Wait until nothing is pending and every fired effect has finished."""
        loop = asyncio.get_running_loop()
        while self._handle is not None or self._tasks:
            if self._handle is not None:
                await asyncio.sleep(max(self._handle.when() - loop.time(), 0.0))
                await asyncio.sleep(0)
                continue
            await asyncio.wait(set(self._tasks))


__all__ = (
    "Effect",
    "CancelableTimer",
)
