"""
Session directory: who is connected, and which rooms they listen to.

Maps an authenticated user ID to the WebSocket currently serving them, and
keeps per-room broadcast groups. This is routing data only. It lives in
process memory, is rebuilt from scratch on restart (players re-register
when they reconnect) and is never consulted for game rules.
"""

import logging
from typing import Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class SessionDirectory:
    """
    Connected players and room broadcast groups.

    All methods are plain dict operations with no awaits between reads and
    writes, so concurrent handlers on the event loop can use it without a
    room lock.
    """

    def __init__(self) -> None:
        self.connections: dict[int, WebSocket] = {}
        self.groups: dict[int, set[int]] = {}

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def register(self, user_id: int, websocket: WebSocket) -> Optional[WebSocket]:
        """
        Register a user's connection.

        Returns:
            The connection this one replaced, if the user was already
            connected elsewhere.
        """
        previous = self.connections.get(user_id)
        self.connections[user_id] = websocket
        return previous if previous is not websocket else None

    def unregister(self, user_id: int, websocket: Optional[WebSocket] = None) -> bool:
        """
        Remove a user's connection.

        Args:
            user_id: User to remove.
            websocket: If given, only remove the entry while it still points
                at this connection (a newer connection is left alone).

        Returns:
            True if an entry was removed.
        """
        current = self.connections.get(user_id)
        if current is None:
            return False
        if websocket is not None and current is not websocket:
            return False
        del self.connections[user_id]
        return True

    def lookup(self, user_id: int) -> Optional[WebSocket]:
        return self.connections.get(user_id)

    def is_connected(self, user_id: int) -> bool:
        return user_id in self.connections

    # -------------------------------------------------------------------------
    # Broadcast groups
    # -------------------------------------------------------------------------

    def join_group(self, room_id: int, user_id: int) -> None:
        self.groups.setdefault(room_id, set()).add(user_id)

    def leave_group(self, room_id: int, user_id: int) -> None:
        members = self.groups.get(room_id)
        if members is None:
            return
        members.discard(user_id)
        if not members:
            del self.groups[room_id]

    def leave_all_groups(self, user_id: int) -> list[int]:
        """Drop a user from every group. Returns the affected room IDs."""
        rooms = [room_id for room_id, members in self.groups.items() if user_id in members]
        for room_id in rooms:
            self.leave_group(room_id, user_id)
        return rooms

    def clear_group(self, room_id: int) -> None:
        self.groups.pop(room_id, None)

    def group_members(self, room_id: int) -> set[int]:
        return set(self.groups.get(room_id, ()))

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def send_to(self, user_id: int, message: dict) -> None:
        """
        Send a message to one user, if connected.

        Args:
            user_id: Recipient.
            message: JSON-serializable message dict.
        """
        websocket = self.connections.get(user_id)
        if websocket is None:
            logger.debug(f"Dropping {message.get('type')} for offline user {user_id}")
            return
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning(f"Send to user {user_id} failed: {e}")

    async def broadcast(self, room_id: int, message: dict, exclude: Optional[int] = None) -> None:
        """
        Send a message to everyone in a room's group.

        Args:
            room_id: Room whose group receives the message.
            message: JSON-serializable message dict.
            exclude: Optional user ID to skip.
        """
        for user_id in self.group_members(room_id):
            if user_id != exclude:
                await self.send_to(user_id, message)
