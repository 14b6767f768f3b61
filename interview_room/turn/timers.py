from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger("interview_room.timers")

TimerCallback = Callable[[], Awaitable[None]]


class TimerRegistry:
    """
    Named, cancellable one-shot timers plus tracked background tasks.
    Scheduling a name that is already pending replaces it (debounce).
    After close() nothing new is scheduled and nothing pending fires.
    """

    def __init__(self):
        self._timers: dict[str, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()
        self.closed = False

    def schedule(self, name: str, delay_sec: float, callback: TimerCallback) -> bool:
        if self.closed:
            logger.info("Timer %s not scheduled (registry closed)", name)
            return False

        self.cancel(name)
        task = asyncio.create_task(self._fire(name, max(0.0, float(delay_sec)), callback))
        self._timers[name] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _fire(self, name: str, delay_sec: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay_sec)
        current = self._timers.get(name)
        if current is asyncio.current_task():
            self._timers.pop(name, None)
        if self.closed:
            return
        await callback()

    def is_pending(self, name: str) -> bool:
        task = self._timers.get(name)
        return task is not None and not task.done()

    def cancel(self, name: str) -> bool:
        task = self._timers.pop(name, None)
        if task is None or task.done():
            return False
        if task is asyncio.current_task():
            return False
        task.cancel()
        return True

    def create_task(self, coro) -> asyncio.Task | None:
        if self.closed:
            coro.close()
            return None
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def cancel_all(self) -> None:
        self.closed = True
        current = asyncio.current_task()
        pending = [t for t in set(self._timers.values()) | self._tasks if t is not current and not t.done()]
        self._timers.clear()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
