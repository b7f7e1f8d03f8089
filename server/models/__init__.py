"""Models package for the Da Vinci Code server."""

from .payloads import (
    ChatPayload,
    DrawCardPayload,
    GuessCardPayload,
    InitialCardsPayload,
    NewOrderPayload,
    RoomPayload,
    parse_payload,
)

__all__ = [
    "ChatPayload",
    "DrawCardPayload",
    "GuessCardPayload",
    "InitialCardsPayload",
    "NewOrderPayload",
    "RoomPayload",
    "parse_payload",
]
