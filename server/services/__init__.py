"""Services package for Da Vinci Code game flow."""

from .game_service import GameService
from .forfeit import ForfeitScheduler

__all__ = [
    "GameService",
    "ForfeitScheduler",
]
