"""Per-key asyncio locks that are dropped once nobody holds or waits on them."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """Acquire the locks for all `keys` in sorted order, so two holders never deadlock."""

        held: list[str] = []
        try:
            for key in sorted(set(keys)):
                lock = self._locks.get(key)
                if lock is None:
                    lock = self._locks[key] = asyncio.Lock()
                self._refs[key] = self._refs.get(key, 0) + 1
                try:
                    await lock.acquire()
                except BaseException:
                    self._unref(key)
                    raise
                held.append(key)
            yield
        finally:
            for key in reversed(held):
                self._locks[key].release()
                self._unref(key)

    def _unref(self, key: str) -> None:
        self._refs[key] -= 1
        if not self._refs[key]:
            del self._refs[key]
            del self._locks[key]
