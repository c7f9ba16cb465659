"""Process-wide shutdown signal shared by every long-running task.

The signal is created once at startup and passed by reference into the poll
orchestrator and the watch supervisor. It flips from live to cancelled
exactly once. Every blocking point in those tasks (tick wait, retry wait,
next-event read) is raced against it with ``sleep`` or ``race`` so a
shutdown request preempts them promptly.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class ShutdownSignal:
    """Broadcast cancellation token backed by an ``asyncio.Event``."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def trigger(self) -> None:
        """Flip the signal. Safe to call any number of times."""
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for *seconds* unless the signal fires first.

        Returns True when the full delay elapsed, False when cancelled.
        """
        if self._event.is_set():
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return True
        return False

    async def race(self, work: Awaitable[T]) -> tuple[bool, T | None]:
        """Await *work* unless the signal fires first.

        Returns ``(True, result)`` when *work* finished, or ``(False, None)``
        when the signal won; in that case *work* is cancelled.
        """
        work_task = asyncio.ensure_future(work)
        if self._event.is_set():
            work_task.cancel()
            await asyncio.gather(work_task, return_exceptions=True)
            return False, None

        stop_task = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work_task.cancel()
            raise
        finally:
            stop_task.cancel()

        if work_task.done():
            return True, work_task.result()

        work_task.cancel()
        await asyncio.gather(work_task, return_exceptions=True)
        return False, None
