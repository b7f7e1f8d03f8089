"""
Per-room mutual exclusion.

Both players' handlers load, mutate and save the same game blob. Without
serialization two racing transitions (both players readying up at once,
a draw racing a forfeit) can each read the old state and one write wins.
RoomLocks.hold(room_id) wraps every load-mutate-save cycle:

- an asyncio.Lock per room serializes handlers inside this process. It
  is dropped as soon as nobody holds or awaits it;
- with a Redis client, a Redis lock on room:{room_id}:lock serializes
  handlers across server processes. It expires after `timeout` seconds,
  so a holder that dies mid-cycle never blocks the room for good.

Rooms are independent: holding one room's lock never delays another room.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from redis.exceptions import LockError

from errors import StateFailure, ROOM_BUSY

logger = logging.getLogger(__name__)


class RoomLocks:
    """Per-room lock registry."""

    LOCK_KEY = "room:{room_id}:lock"

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ):
        """
        Args:
            redis_client: Redis client for cross-process locking, or None
                for in-process locking only.
            timeout: Seconds before a held Redis lock expires on its own.
            blocking_timeout: Seconds to wait for a busy Redis lock.
        """
        self.redis = redis_client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        # room_id -> (lock, number of holders and waiters)
        self._locks: dict[int, tuple[asyncio.Lock, int]] = {}

    def _acquire_ref(self, room_id: int) -> asyncio.Lock:
        lock, users = self._locks.get(room_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[room_id] = (lock, users + 1)
        return lock

    def _release_ref(self, room_id: int) -> None:
        lock, users = self._locks[room_id]
        if users <= 1:
            del self._locks[room_id]
        else:
            self._locks[room_id] = (lock, users - 1)

    def active_rooms(self) -> int:
        """Rooms with a lock currently held or awaited in this process."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, room_id: int) -> AsyncIterator[None]:
        """Hold the room's lock for the duration of the block."""
        local = self._acquire_ref(room_id)
        try:
            async with local:
                async with self._redis_lock(room_id):
                    yield
        finally:
            self._release_ref(room_id)

    @asynccontextmanager
    async def _redis_lock(self, room_id: int) -> AsyncIterator[None]:
        if self.redis is None:
            yield
            return

        lock = self.redis.lock(
            self.LOCK_KEY.format(room_id=room_id),
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        if not await lock.acquire():
            raise StateFailure(ROOM_BUSY, "Room is busy, try again.")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning(f"Room lock for room {room_id} expired before release")

