"""
Room membership and nickname lookup.

Rooms are created through the lobby; this store only tracks who sits in
which room so the game can find both players. A user sits in at most one
room at a time and a room seats ROOM_CAPACITY players.

Key patterns:
- room:{room_id}:members   -> Set (user IDs in the room)
- user:{user_id}:room      -> String (the user's current room)
- user:{user_id}:nickname  -> String (display name)
"""

import logging
from typing import Optional

import redis.asyncio as redis

from errors import (
    NotFound,
    StateFailure,
    ALREADY_IN_ROOM,
    NOT_IN_ROOM,
    ROOM_FULL,
)

logger = logging.getLogger(__name__)


class RoomStore:
    """Redis-backed room membership."""

    MEMBERS_KEY = "room:{room_id}:members"
    USER_ROOM_KEY = "user:{user_id}:room"
    NICKNAME_KEY = "user:{user_id}:nickname"

    def __init__(self, redis_client: redis.Redis, capacity: int = 2):
        self.redis = redis_client
        self.capacity = capacity

    async def is_user_in_room(self, user_id: int, room_id: int) -> bool:
        return bool(await self.redis.sismember(
            self.MEMBERS_KEY.format(room_id=room_id), str(user_id),
        ))

    async def get_players_in_room(self, room_id: int) -> list[int]:
        """
        Get the user IDs seated in a room.

        Returns:
            Sorted list of user IDs.
        """
        members = await self.redis.smembers(self.MEMBERS_KEY.format(room_id=room_id))
        return sorted(int(m.decode() if isinstance(m, bytes) else m) for m in members)

    async def get_room_id_by_client(self, user_id: int) -> Optional[int]:
        """
        Get the room a user is in.

        Returns:
            Room ID, or None if not in a room.
        """
        room = await self.redis.get(self.USER_ROOM_KEY.format(user_id=user_id))
        if room is None:
            return None
        return int(room.decode() if isinstance(room, bytes) else room)

    async def join_room(self, room_id: int, user_id: int) -> None:
        """
        Seat a user in a room.

        Raises:
            StateFailure: If the user is in another room or the room is full.
        """
        current = await self.get_room_id_by_client(user_id)
        if current is not None and current != room_id:
            raise StateFailure(
                ALREADY_IN_ROOM,
                f"User {user_id} is already in a different room ({current}). Leave that room first.",
            )
        if current == room_id:
            return

        players = await self.get_players_in_room(room_id)
        if len(players) >= self.capacity:
            raise StateFailure(ROOM_FULL, "Room is full")

        pipe = self.redis.pipeline()
        pipe.sadd(self.MEMBERS_KEY.format(room_id=room_id), str(user_id))
        pipe.set(self.USER_ROOM_KEY.format(user_id=user_id), str(room_id))
        await pipe.execute()
        logger.debug(f"User {user_id} joined room {room_id}")

    async def leave_room(self, room_id: int, user_id: int) -> None:
        """
        Remove a user from a room.

        Raises:
            NotFound: If the user is not in that room.
        """
        if not await self.is_user_in_room(user_id, room_id):
            raise NotFound(NOT_IN_ROOM, "User not in the room")

        pipe = self.redis.pipeline()
        pipe.srem(self.MEMBERS_KEY.format(room_id=room_id), str(user_id))
        pipe.delete(self.USER_ROOM_KEY.format(user_id=user_id))
        await pipe.execute()
        logger.debug(f"User {user_id} left room {room_id}")

    async def get_nickname(self, user_id: int) -> str:
        """Display name for a user, falling back to "User {id}"."""
        name = await self.redis.get(self.NICKNAME_KEY.format(user_id=user_id))
        if not name:
            return f"User {user_id}"
        return name.decode() if isinstance(name, bytes) else name

    async def set_nickname(self, user_id: int, nickname: str) -> None:
        await self.redis.set(self.NICKNAME_KEY.format(user_id=user_id), nickname)
