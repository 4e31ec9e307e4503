"""Ring timeouts: one cancellable deferred action per ringing call."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

LOGGER = logging.getLogger(__name__)

TimeoutCallback = Callable[[str], Awaitable[None]]


class TimeoutScheduler:
    """Schedules at most one fire per call id on the running event loop.

    Disarming is idempotent and safe after the timer already fired; the
    callback itself must re-check state because a fire can race an accept.
    """

    def __init__(self) -> None:
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def arm(self, call_id: str, delay: float, callback: TimeoutCallback) -> None:
        self.disarm(call_id)
        loop = asyncio.get_running_loop()
        self._handles[call_id] = loop.call_later(delay, self._fire, call_id, callback)

    def disarm(self, call_id: str) -> bool:
        handle = self._handles.pop(call_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def is_armed(self, call_id: str) -> bool:
        return call_id in self._handles

    def _fire(self, call_id: str, callback: TimeoutCallback) -> None:
        self._handles.pop(call_id, None)
        task = asyncio.get_running_loop().create_task(self._run(call_id, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run(call_id: str, callback: TimeoutCallback) -> None:
        try:
            await callback(call_id)
        except Exception:
            LOGGER.exception("Timeout handler for call %s failed", call_id)

    async def shutdown(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
