# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-key critical sections.

Every mutation of one (event, ticket type) runs under that key's lock so a
capacity check and the hold that follows it are atomic with respect to
other mutations of the same key. Different keys never contend.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Hashable


class KeyedLock:
    """
    A family of asyncio.Locks, one per key, created on demand.

    Locks are reference counted and dropped once no coroutine holds or
    waits on them, so the table stays proportional to the keys in use.

    Example:
        locks = KeyedLock()
        async with locks.hold(("event-1", "vip")):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the critical section for ``key``."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._refs[key] = self._refs.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]

    def locked(self, key: Hashable) -> bool:
        """True while some coroutine holds the lock for ``key``."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


__all__ = ["KeyedLock"]
