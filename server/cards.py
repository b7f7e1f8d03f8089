"""
Card and deck model for Da Vinci Code.

Each color has its own 13-card deck: numbered tiles 0-11 plus one joker.
Numbered cards are ordered by rank, with black sorting before white when
ranks tie. Jokers carry no rank at all; players place them wherever they
like, so they never take part in rank comparisons.

    Black: [0] [1] ... [11] [joker]
    White: [0] [1] ... [11] [joker]
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Color(str, Enum):
    """Card colors. Each color has its own draw pile."""

    BLACK = "black"
    WHITE = "white"


class Rank(Enum):
    """
    Card ranks.

    Numbered ranks use their face value. JOKER is a tag with no numeric
    value, so any attempt to compare it numerically fails loudly instead of
    quietly sorting it first.
    """

    ZERO = 0
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    ELEVEN = 11
    JOKER = "joker"

    @property
    def is_joker(self) -> bool:
        return self is Rank.JOKER

    @property
    def number(self) -> int:
        """Numeric rank. Raises ValueError for the joker."""
        if self is Rank.JOKER:
            raise ValueError("Joker has no numeric rank")
        return self.value

    @classmethod
    def parse(cls, value) -> "Rank":
        """Parse a wire value (0-11 or "joker") into a Rank."""
        if isinstance(value, bool):
            raise ValueError(f"Invalid rank: {value!r}")
        if isinstance(value, str) and value.lower() == cls.JOKER.value:
            return cls.JOKER
        if isinstance(value, int) and 0 <= value <= 11:
            return cls(value)
        raise ValueError(f"Invalid rank: {value!r}")


NUMBERED_RANKS: list[Rank] = [rank for rank in Rank if not rank.is_joker]


@dataclass
class Card:
    """
    A single tile.

    Attributes:
        color: Black or white (decides which deck it came from).
        rank: Numbered rank or the joker tag.
        flipped: True once an opponent guessed it correctly (rank is public).
    """

    color: Color
    rank: Rank
    flipped: bool = False

    @property
    def is_joker(self) -> bool:
        return self.rank.is_joker

    @property
    def key(self) -> tuple[str, object]:
        """Identity of the card. Unique across both decks."""
        return (self.color.value, self.rank.value)

    def same_card(self, other: "Card") -> bool:
        return self.key == other.key

    def to_dict(self) -> dict:
        """Full card data, for the owner's view and for persistence."""
        return {
            "color": self.color.value,
            "rank": self.rank.value,
            "flipped": self.flipped,
        }

    def to_opponent_dict(self) -> dict:
        """
        Card as the opponent may see it.

        Color and flip state are public; the rank only once flipped.
        """
        if self.flipped:
            return {"color": self.color.value, "rank": self.rank.value, "flipped": True}
        return {"color": self.color.value, "flipped": False}

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        return cls(
            color=Color(d["color"]),
            rank=Rank.parse(d["rank"]),
            flipped=bool(d.get("flipped", False)),
        )

    def __str__(self) -> str:
        label = "J" if self.is_joker else str(self.rank.value)
        return f"{self.color.value[0].upper()}{label}"


def compare(a: Card, b: Card) -> int:
    """
    Compare two numbered cards.

    Lower rank first; on equal rank black comes before white.

    Returns:
        -1, 0 or 1.

    Raises:
        ValueError: If either card is a joker.
    """
    if a.is_joker or b.is_joker:
        raise ValueError("Jokers have no rank order")
    if a.rank.number != b.rank.number:
        return -1 if a.rank.number < b.rank.number else 1
    if a.color == b.color:
        return 0
    return -1 if a.color == Color.BLACK else 1


def sort_hand(cards: list[Card]) -> list[Card]:
    """
    Sort a freshly dealt hand.

    Numbered cards are ordered; jokers go to the end in their original
    order and wait for the player to position them.
    """
    numbered = [c for c in cards if not c.is_joker]
    jokers = [c for c in cards if c.is_joker]
    numbered.sort(key=lambda c: (c.rank.number, c.color != Color.BLACK))
    return numbered + jokers


def build_deck(color: Color) -> list[Card]:
    """Build the 13 cards of one color: ranks 0-11 then the joker."""
    cards = [Card(color, rank) for rank in NUMBERED_RANKS]
    cards.append(Card(color, Rank.JOKER))
    return cards


def shuffle(cards: list[Card], rng: Optional[random.Random] = None) -> None:
    """Shuffle in place (Fisher-Yates, every permutation equally likely)."""
    (rng or random).shuffle(cards)


def draw(cards: list[Card]) -> Optional[Card]:
    """Remove and return the last card, or None if the pile is empty."""
    if cards:
        return cards.pop()
    return None


class Deck:
    """
    One color's draw pile.

    The end of the list is the top of the pile.
    """

    def __init__(self, color: Color, cards: Optional[list[Card]] = None) -> None:
        self.color = color
        self.cards: list[Card] = build_deck(color) if cards is None else cards

    @classmethod
    def shuffled(cls, color: Color, rng: Optional[random.Random] = None) -> "Deck":
        deck = cls(color)
        deck.shuffle(rng)
        return deck

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        shuffle(self.cards, rng)

    def draw(self) -> Optional[Card]:
        """
        Draw the top card.

        Returns:
            The drawn Card, or None if the deck is empty.
        """
        return draw(self.cards)

    def cards_remaining(self) -> int:
        return len(self.cards)

    def is_empty(self) -> bool:
        return not self.cards

    def to_list(self) -> list[dict]:
        return [c.to_dict() for c in self.cards]

    @classmethod
    def from_list(cls, color: Color, data: list[dict]) -> "Deck":
        return cls(color, [Card.from_dict(d) for d in data])
