"""
Game error taxonomy.

Every rejected action raises a GameError subclass before any state is
written. The dispatcher turns it into a private "error" event for the
connection that caused it.
"""


class GameError(Exception):
    """Base exception for game-related errors."""

    kind = "game"

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")

    def to_message(self) -> dict:
        return {
            "type": "error",
            "code": self.code,
            "kind": self.kind,
            "message": self.message,
        }


class AuthFailure(GameError):
    """Missing or invalid credential at connect time."""

    kind = "auth"


class ValidationFailure(GameError):
    """Malformed payload or an illegal card selection / ordering."""

    kind = "validation"


class StateFailure(GameError):
    """Action not allowed in the current game state."""

    kind = "state"


class ResourceExhaustion(GameError):
    """A deck ran out of cards."""

    kind = "exhausted"


class NotFound(GameError):
    """Unknown room or user."""

    kind = "not_found"


# Error codes
INVALID_TOKEN = "INVALID_TOKEN"
INVALID_PAYLOAD = "INVALID_PAYLOAD"
UNKNOWN_EVENT = "UNKNOWN_EVENT"
INVALID_CARD_COUNT = "INVALID_CARD_COUNT"
INVALID_ORDER = "INVALID_ORDER"
UNKNOWN_CARD = "UNKNOWN_CARD"
INVALID_INDEX = "INVALID_INDEX"
CARD_ALREADY_FLIPPED = "CARD_ALREADY_FLIPPED"
NO_GAME = "NO_GAME"
WRONG_PHASE = "WRONG_PHASE"
NOT_YOUR_TURN = "NOT_YOUR_TURN"
NOT_IN_GAME = "NOT_IN_GAME"
NOT_IN_ROOM = "NOT_IN_ROOM"
ALREADY_ARRANGED = "ALREADY_ARRANGED"
ALREADY_DREW = "ALREADY_DREW"
MUST_DRAW_FIRST = "MUST_DRAW_FIRST"
PLACEMENT_PENDING = "PLACEMENT_PENDING"
NO_PENDING_CARD = "NO_PENDING_CARD"
ROOM_FULL = "ROOM_FULL"
ALREADY_IN_ROOM = "ALREADY_IN_ROOM"
ROOM_BUSY = "ROOM_BUSY"
DECK_EMPTY = "DECK_EMPTY"
ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
INTERNAL_ERROR = "INTERNAL_ERROR"
