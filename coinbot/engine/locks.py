"""
coinbot.engine.locks — Per-User Serialization
==============================================

The record store has no transactions spanning a whole interaction, so two
overlapping purchases (a double-clicked button, a slow modal resubmitted)
could both pass the balance check.  Every mutating interaction for a
member runs under that member's lock, which orders them strictly.

Locks live in the bot process only; they don't coordinate with the API
process or a second bot instance.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class UserLocks:
    """Lazily created ``asyncio.Lock`` per user id."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._waiters: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._waiters[user_id] = self._waiters.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[user_id] -= 1
            # Drop idle locks so the dict doesn't grow with every member ever seen
            if self._waiters[user_id] == 0:
                del self._waiters[user_id]
                del self._locks[user_id]

    def is_locked(self, user_id: int) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
