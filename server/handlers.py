"""WebSocket message handlers for the Da Vinci Code game.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict; dispatch() turns any
GameError they raise into an error message for the sender.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from errors import (
    GameError,
    NotFound,
    StateFailure,
    ValidationFailure,
    INTERNAL_ERROR,
    NOT_IN_ROOM,
    UNKNOWN_EVENT,
)
from logging_config import room_id_var
from models.payloads import (
    ChatPayload,
    DrawCardPayload,
    GuessCardPayload,
    InitialCardsPayload,
    NewOrderPayload,
    RoomPayload,
    parse_payload,
)

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    user_id: int
    nickname: str
    room_id: Optional[int] = None


def system_message(text: str) -> dict:
    """A chat line sent by the server rather than a player."""
    return {"type": "message", "sender": "system", "message": text}


async def _require_member(rooms, room_id: int, user_id: int) -> None:
    if not await rooms.is_user_in_room(user_id, room_id):
        raise StateFailure(NOT_IN_ROOM, "You are not in this room.")


# ---------------------------------------------------------------------------
# Room handlers
# ---------------------------------------------------------------------------

async def handle_join_room(data: dict, ctx: ConnectionContext, *, games, rooms, sessions, forfeits, **kw) -> None:
    payload = parse_payload(RoomPayload, data)
    room_id = payload.room_id

    if not await rooms.is_user_in_room(ctx.user_id, room_id):
        await games.join_room(room_id, ctx.user_id)
        rejoined = False
    else:
        rejoined = True

    sessions.join_group(room_id, ctx.user_id)
    ctx.room_id = room_id
    forfeits.cancel(ctx.user_id)

    verb = "rejoined" if rejoined else "joined"
    await sessions.broadcast(room_id, system_message(f"{ctx.nickname} {verb} the room."))
    await games.resync(room_id, ctx.user_id)


async def handle_leave_room(data: dict, ctx: ConnectionContext, *, games, sessions, forfeits, **kw) -> None:
    payload = parse_payload(RoomPayload, data)
    room_id = payload.room_id

    forfeits.cancel(ctx.user_id)
    await games.leave_room(room_id, ctx.user_id)
    sessions.leave_group(room_id, ctx.user_id)
    if ctx.room_id == room_id:
        ctx.room_id = None

    await sessions.broadcast(room_id, system_message(f"{ctx.nickname} left the room."))
    await ctx.websocket.send_json(system_message("You left the room."))


async def handle_chat(data: dict, ctx: ConnectionContext, *, rooms, sessions, **kw) -> None:
    payload = parse_payload(ChatPayload, data)
    await _require_member(rooms, payload.room_id, ctx.user_id)

    await sessions.broadcast(payload.room_id, {
        "type": "message",
        "sender": ctx.user_id,
        "nickname": ctx.nickname,
        "message": payload.message,
    })


# ---------------------------------------------------------------------------
# Game handlers
# ---------------------------------------------------------------------------

async def handle_set_ready(data: dict, ctx: ConnectionContext, *, games, **kw) -> None:
    payload = parse_payload(RoomPayload, data)
    await games.set_ready(payload.room_id, ctx.user_id)


async def handle_initial_cards(data: dict, ctx: ConnectionContext, *, games, **kw) -> None:
    payload = parse_payload(InitialCardsPayload, data)
    await games.choose_initial_cards(
        payload.room_id, ctx.user_id, payload.black_count, payload.white_count,
    )


async def handle_arrange_deck(data: dict, ctx: ConnectionContext, *, games, **kw) -> None:
    payload = parse_payload(NewOrderPayload, data)
    await games.arrange_hand(payload.room_id, ctx.user_id, payload.cards())


async def handle_draw_card(data: dict, ctx: ConnectionContext, *, games, **kw) -> None:
    payload = parse_payload(DrawCardPayload, data)
    await games.draw_card(payload.room_id, ctx.user_id, payload.color)


async def handle_arrange_new_card(data: dict, ctx: ConnectionContext, *, games, **kw) -> None:
    payload = parse_payload(NewOrderPayload, data)
    await games.place_new_card(payload.room_id, ctx.user_id, payload.cards())


async def handle_guess_card(data: dict, ctx: ConnectionContext, *, games, **kw) -> None:
    payload = parse_payload(GuessCardPayload, data)
    await games.guess_card(payload.room_id, ctx.user_id, payload.card_index, payload.rank())


async def handle_end_turn(data: dict, ctx: ConnectionContext, *, games, **kw) -> None:
    payload = parse_payload(RoomPayload, data)
    await games.end_turn(payload.room_id, ctx.user_id)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "joinRoom": handle_join_room,
    "leaveRoom": handle_leave_room,
    "message": handle_chat,
    "setReady": handle_set_ready,
    "initialCards": handle_initial_cards,
    "arrangeDeck": handle_arrange_deck,
    "drawCard": handle_draw_card,
    "arrangeNewCard": handle_arrange_new_card,
    "guessCard": handle_guess_card,
    "endTurn": handle_end_turn,
}


async def dispatch(data: dict, ctx: ConnectionContext, **deps) -> None:
    """
    Route one inbound message to its handler.

    GameErrors go back to the sender as an error message. Anything else is
    logged and reported as INTERNAL_ERROR; the connection stays open.
    """
    event = data.get("type") if isinstance(data, dict) else None
    room_id = data.get("roomId") if isinstance(data, dict) else None
    token = room_id_var.set(room_id if isinstance(room_id, int) else ctx.room_id)
    try:
        handler = HANDLERS.get(event)
        if handler is None:
            raise ValidationFailure(UNKNOWN_EVENT, f"Unknown event: {event!r}")
        await handler(data, ctx, **deps)
    except GameError as e:
        logger.info(f"{event} rejected for user {ctx.user_id}: {e.code} {e.message}", extra={"event": event})
        await ctx.websocket.send_json(e.to_message())
    except Exception:
        logger.exception(f"Unhandled error in {event} for user {ctx.user_id}", extra={"event": event})
        await ctx.websocket.send_json(
            GameError(INTERNAL_ERROR, "Internal server error").to_message(),
        )
    finally:
        room_id_var.reset(token)


async def handle_disconnect(ctx: ConnectionContext, *, games, rooms, sessions, forfeits, **kw) -> None:
    """
    Clean up after a dropped connection.

    Outside a game the player simply leaves their room. During a game they
    get DISCONNECT_GRACE_SECONDS to reconnect before forfeiting.
    """
    if not sessions.unregister(ctx.user_id, ctx.websocket):
        # A newer connection for this user took over; it owns the session now.
        return
    sessions.leave_all_groups(ctx.user_id)

    room_id = ctx.room_id
    if room_id is None:
        room_id = await rooms.get_room_id_by_client(ctx.user_id)
    if room_id is None:
        return

    if await games.has_game(room_id):
        forfeits.schedule(room_id, ctx.user_id)
        await sessions.broadcast(room_id, system_message(
            f"{ctx.nickname} disconnected. Waiting for them to reconnect.",
        ))
        return

    try:
        await games.leave_room(room_id, ctx.user_id)
    except NotFound:
        return
    await sessions.broadcast(room_id, system_message(f"{ctx.nickname} left the room."))
