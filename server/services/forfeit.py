"""
Disconnect policy for games in progress.

A player who drops out of a running game gets a grace period to reconnect.
If they are still gone when it runs out, they forfeit and the opponent
wins. Reconnecting cancels the pending forfeit.
"""

import asyncio
import logging

from errors import GameError
from services.game_service import GameService
from sessions import SessionDirectory

logger = logging.getLogger(__name__)


class ForfeitScheduler:
    """Tracks one pending forfeit task per disconnected player."""

    def __init__(self, games: GameService, sessions: SessionDirectory, grace_seconds: float = 30.0):
        self.games = games
        self.sessions = sessions
        self.grace_seconds = grace_seconds
        self._tasks: dict[int, asyncio.Task] = {}

    def schedule(self, room_id: int, user_id: int) -> asyncio.Task:
        """Start the grace period for a disconnected player."""
        self.cancel(user_id)
        task = asyncio.create_task(self._run(room_id, user_id))
        self._tasks[user_id] = task
        return task

    def cancel(self, user_id: int) -> bool:
        """Cancel a pending forfeit (the player came back)."""
        task = self._tasks.pop(user_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def pending(self, user_id: int) -> bool:
        return user_id in self._tasks

    def pending_count(self) -> int:
        return len(self._tasks)

    async def _run(self, room_id: int, user_id: int) -> None:
        try:
            await asyncio.sleep(self.grace_seconds)
            if self.sessions.is_connected(user_id):
                return
            logger.info(f"User {user_id} did not reconnect, forfeiting game in room {room_id}")
            await self.games.forfeit(room_id, user_id)
        except GameError as e:
            logger.warning(f"Forfeit for user {user_id} in room {room_id} failed: {e}")
        except Exception:
            logger.exception(f"Forfeit for user {user_id} in room {room_id} crashed")
        finally:
            if self._tasks.get(user_id) is asyncio.current_task():
                del self._tasks[user_id]

    async def shutdown(self) -> None:
        """Cancel every pending forfeit (server shutdown)."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
