"""
Redis-backed game state store.

Every server process handling either player's connection reads and writes
the same Redis keys, so both players always see one consistent game.
Read-modify-write cycles are not atomic on their own; callers serialize
them per room with RoomLocks (see stores/locks.py).

Key patterns:
- room:{room_id}:gameState             -> JSON (full game state)
- room:{room_id}:user:{user_id}:ready  -> "true" while the player is ready
"""

import json
import logging
from datetime import timedelta
from typing import Iterable, Optional

import redis.asyncio as redis

from game import Game

logger = logging.getLogger(__name__)


class GameStateStore:
    """Redis-backed store for one game blob per room."""

    # Key patterns
    GAME_KEY = "room:{room_id}:gameState"
    READY_KEY = "room:{room_id}:user:{user_id}:ready"

    def __init__(
        self,
        redis_client: redis.Redis,
        game_ttl: timedelta = timedelta(hours=24),
        ready_ttl: timedelta = timedelta(hours=1),
    ):
        """
        Initialize the store with a Redis client.

        Args:
            redis_client: Async Redis client (decode_responses=True).
            game_ttl: Expiry for abandoned game blobs.
            ready_ttl: Expiry for readiness flags.
        """
        self.redis = redis_client
        self.game_ttl = game_ttl
        self.ready_ttl = ready_ttl

    # -------------------------------------------------------------------------
    # Game State Operations
    # -------------------------------------------------------------------------

    async def load(self, room_id: int) -> Optional[Game]:
        """
        Load a room's game.

        Args:
            room_id: Room to look up.

        Returns:
            The Game, or None if no game is in progress.
        """
        data = await self.redis.get(self.GAME_KEY.format(room_id=room_id))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode()
        return Game.from_dict(json.loads(data))

    async def save(self, room_id: int, game: Game) -> None:
        """
        Save a room's game.

        Args:
            room_id: Room the game belongs to.
            game: Game to serialize.
        """
        await self.redis.set(
            self.GAME_KEY.format(room_id=room_id),
            json.dumps(game.to_dict()),
            ex=int(self.game_ttl.total_seconds()),
        )

    async def delete(self, room_id: int) -> None:
        """Delete a room's game."""
        await self.redis.delete(self.GAME_KEY.format(room_id=room_id))
        logger.debug(f"Deleted game state for room {room_id}")

    async def exists(self, room_id: int) -> bool:
        return await self.redis.exists(self.GAME_KEY.format(room_id=room_id)) > 0

    # -------------------------------------------------------------------------
    # Readiness
    # -------------------------------------------------------------------------

    async def set_ready(self, room_id: int, user_id: int) -> None:
        await self.redis.set(
            self.READY_KEY.format(room_id=room_id, user_id=user_id),
            "true",
            ex=int(self.ready_ttl.total_seconds()),
        )

    async def is_ready(self, room_id: int, user_id: int) -> bool:
        value = await self.redis.get(self.READY_KEY.format(room_id=room_id, user_id=user_id))
        if isinstance(value, bytes):
            value = value.decode()
        return value == "true"

    async def clear_ready(self, room_id: int, user_ids: Iterable[int]) -> None:
        """Remove the readiness flags of the given players."""
        keys = [self.READY_KEY.format(room_id=room_id, user_id=uid) for uid in user_ids]
        if keys:
            await self.redis.delete(*keys)
