"""
Game service: runs every game transition as one atomic room operation.

Each public method is a single cycle under the room's lock:

    lock room -> load game -> apply transition -> save (or purge) -> deliver

A GameError raised by the transition aborts the cycle before anything is
saved, so a rejected action never leaves a half-applied state behind.
Notices are delivered after the save and before the lock is released, so
nothing is announced before the store reflects it and each room's
messages go out in the same order its transitions were applied.
"""

import logging
import random
from typing import Callable, Optional

from cards import Card, Color, Rank
from errors import StateFailure, NO_GAME, NOT_IN_ROOM, WRONG_PHASE
from game import Game, Notice, PLAYERS_PER_GAME
from sessions import SessionDirectory
from stores.locks import RoomLocks
from stores.room_store import RoomStore
from stores.state_cache import GameStateStore

logger = logging.getLogger(__name__)


class GameService:
    """Coordinates the game state machine, the state store and delivery."""

    def __init__(
        self,
        store: GameStateStore,
        rooms: RoomStore,
        locks: RoomLocks,
        sessions: SessionDirectory,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.rooms = rooms
        self.locks = locks
        self.sessions = sessions
        self.rng = rng

    async def deliver(self, room_id: int, notices: list[Notice]) -> None:
        """Send notices to their recipients (one user, or the room group)."""
        for notice in notices:
            message = notice.to_message()
            if notice.to is None:
                await self.sessions.broadcast(room_id, message, exclude=notice.exclude)
            else:
                await self.sessions.send_to(notice.to, message)

    # -------------------------------------------------------------------------
    # Readiness
    # -------------------------------------------------------------------------

    async def set_ready(self, room_id: int, user_id: int) -> Optional[Game]:
        """
        Mark a player ready, and start the game once both seats are ready.

        Both players' calls race to perform the start check; the room lock
        and the "game already exists" check make sure exactly one of them
        creates the game.

        Returns:
            The new Game if this call started it, else None.
        """
        if not await self.rooms.is_user_in_room(user_id, room_id):
            raise StateFailure(NOT_IN_ROOM, "You are not in this room.")
        async with self.locks.hold(room_id):
            if not await self.rooms.is_user_in_room(user_id, room_id):
                raise StateFailure(NOT_IN_ROOM, "You are not in this room.")
            if await self.store.exists(room_id):
                raise StateFailure(WRONG_PHASE, "Game already in progress.")

            await self.store.set_ready(room_id, user_id)
            nickname = await self.rooms.get_nickname(user_id)
            notices = [Notice("ready", {
                "userId": user_id,
                "nickname": nickname,
                "ready": True,
            })]

            game = await self._start_if_all_ready(room_id)
            if game is not None:
                await self.store.save(room_id, game)
                notices.extend(game.start_notices())
                logger.info(f"Game started in room {room_id}, first turn: {game.turn_owner}")

            await self.deliver(room_id, notices)
            return game

    async def _start_if_all_ready(self, room_id: int) -> Optional[Game]:
        players = await self.rooms.get_players_in_room(room_id)
        if len(players) != PLAYERS_PER_GAME:
            return None
        for pid in players:
            if not await self.store.is_ready(room_id, pid):
                return None
        nicknames = {pid: await self.rooms.get_nickname(pid) for pid in players}
        return Game.create(room_id, nicknames, self.rng)

    async def clear_ready(self, room_id: int, user_id: int) -> None:
        async with self.locks.hold(room_id):
            await self.store.clear_ready(room_id, [user_id])

    # -------------------------------------------------------------------------
    # Game transitions
    # -------------------------------------------------------------------------

    async def choose_initial_cards(self, room_id: int, user_id: int, black_count: int, white_count: int) -> Game:
        return await self._apply(
            room_id, lambda game: game.choose_initial_cards(user_id, black_count, white_count),
        )

    async def arrange_hand(self, room_id: int, user_id: int, new_order: list[Card]) -> Game:
        return await self._apply(room_id, lambda game: game.arrange_hand(user_id, new_order))

    async def draw_card(self, room_id: int, user_id: int, color: Color) -> Game:
        return await self._apply(room_id, lambda game: game.draw_card(user_id, color))

    async def place_new_card(self, room_id: int, user_id: int, new_order: list[Card]) -> Game:
        return await self._apply(room_id, lambda game: game.place_new_card(user_id, new_order))

    async def guess_card(self, room_id: int, user_id: int, index: int, rank: Rank) -> Game:
        return await self._apply(room_id, lambda game: game.guess_card(user_id, index, rank))

    async def end_turn(self, room_id: int, user_id: int) -> Game:
        return await self._apply(room_id, lambda game: game.end_turn(user_id))

    async def forfeit(self, room_id: int, user_id: int) -> Optional[Game]:
        """
        Forfeit the player's game in this room, if one is in progress.

        Returns:
            The finished Game, or None if there was no game.
        """
        try:
            return await self._apply(room_id, lambda game: game.forfeit(user_id))
        except StateFailure as e:
            if e.code != NO_GAME:
                raise
            return None

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    async def join_room(self, room_id: int, user_id: int) -> None:
        """Seat a player, under the room lock so two joins can't share the last seat."""
        async with self.locks.hold(room_id):
            await self.rooms.join_room(room_id, user_id)

    async def leave_room(self, room_id: int, user_id: int) -> Optional[Game]:
        """
        Take a player out of a room.

        Leaving during a game forfeits it. The player's ready flag is
        dropped either way.

        Returns:
            The game the player forfeited, if any.

        Raises:
            NotFound: If the player is not in the room.
        """
        async with self.locks.hold(room_id):
            await self.rooms.leave_room(room_id, user_id)
            await self.store.clear_ready(room_id, [user_id])

            game = await self.store.load(room_id)
            if game is None or user_id not in game.players:
                return None
            await self._commit(room_id, game, game.forfeit(user_id))
            logger.info(f"User {user_id} left room {room_id} mid-game and forfeited")
            return game

    async def resync(self, room_id: int, user_id: int) -> None:
        """Re-send a reconnecting player their view of a running game."""
        async with self.locks.hold(room_id):
            game = await self.store.load(room_id)
            if game is None or user_id not in game.players:
                return
            await self.deliver(room_id, game.snapshot_notices(user_id))

    async def has_game(self, room_id: int) -> bool:
        return await self.store.exists(room_id)

    async def _apply(self, room_id: int, transition: Callable[[Game], list[Notice]]) -> Game:
        async with self.locks.hold(room_id):
            game = await self.store.load(room_id)
            if game is None:
                raise StateFailure(NO_GAME, "No game state found.")
            await self._commit(room_id, game, transition(game))
            return game

    async def _commit(self, room_id: int, game: Game, notices: list[Notice]) -> None:
        """Persist a transition's result and announce it. Caller holds the lock."""
        if game.is_finished():
            await self._purge(room_id, game)
        else:
            await self.store.save(room_id, game)

        await self.deliver(room_id, notices)

        if game.is_finished():
            self.sessions.clear_group(room_id)

    async def _purge(self, room_id: int, game: Game) -> None:
        await self.store.delete(room_id)
        await self.store.clear_ready(room_id, game.players)
        logger.info(f"Game in room {room_id} finished, winner: {game.winner}")
