"""Stores package for Da Vinci Code persistence."""

from .locks import RoomLocks
from .room_store import RoomStore
from .state_cache import GameStateStore

__all__ = [
    "RoomLocks",
    "RoomStore",
    "GameStateStore",
]
