"""
Test suite for the card and deck model.

Covers:
- Rank parsing (0-11 and "joker")
- Card ordering (rank first, black before white on ties)
- Hand sorting with jokers
- Deck construction, drawing and shuffle fairness

Run with: pytest test_cards.py -v
"""

import random
from collections import Counter

import pytest

from cards import (
    Card, Color, Deck, Rank, NUMBERED_RANKS,
    build_deck, compare, draw, shuffle, sort_hand,
)


def B(n):
    return Card(Color.BLACK, Rank.JOKER if n == "J" else Rank(n))


def W(n):
    return Card(Color.WHITE, Rank.JOKER if n == "J" else Rank(n))


# =============================================================================
# Rank Tests
# =============================================================================

class TestRank:

    def test_parse_numbers(self):
        assert Rank.parse(0) is Rank.ZERO
        assert Rank.parse(11) is Rank.ELEVEN

    def test_parse_joker(self):
        assert Rank.parse("joker") is Rank.JOKER
        assert Rank.parse("JOKER") is Rank.JOKER

    @pytest.mark.parametrize("value", [-1, 12, "7", None, True, 3.0])
    def test_parse_rejects(self, value):
        with pytest.raises(ValueError):
            Rank.parse(value)

    def test_joker_has_no_number(self):
        with pytest.raises(ValueError):
            Rank.JOKER.number

    def test_twelve_numbered_ranks(self):
        assert [r.number for r in NUMBERED_RANKS] == list(range(12))


# =============================================================================
# Ordering Tests
# =============================================================================

class TestCompare:

    def test_lower_rank_first(self):
        assert compare(W(2), B(5)) == -1
        assert compare(B(9), W(3)) == 1

    def test_black_before_white_on_equal_rank(self):
        """B7 < W7, never equal."""
        assert compare(B(7), W(7)) == -1
        assert compare(W(7), B(7)) == 1

    def test_same_card_equal(self):
        assert compare(B(4), B(4)) == 0

    def test_joker_not_comparable(self):
        with pytest.raises(ValueError):
            compare(B("J"), B(3))
        with pytest.raises(ValueError):
            compare(W(3), W("J"))


class TestSortHand:

    def test_sorts_numbered_cards(self):
        hand = sort_hand([W(5), B(5), B(1), W(0)])
        assert [str(c) for c in hand] == ["W0", "B1", "B5", "W5"]

    def test_jokers_go_last(self):
        hand = sort_hand([B("J"), W(9), B(2)])
        assert [str(c) for c in hand] == ["B2", "W9", "BJ"]

    def test_does_not_mutate_input(self):
        cards = [W(3), B(1)]
        sort_hand(cards)
        assert [str(c) for c in cards] == ["W3", "B1"]


# =============================================================================
# Card Serialization
# =============================================================================

class TestCardViews:

    def test_owner_view_has_rank(self):
        assert B(7).to_dict() == {"color": "black", "rank": 7, "flipped": False}

    def test_opponent_view_hides_unflipped_rank(self):
        view = W(7).to_opponent_dict()
        assert view == {"color": "white", "flipped": False}
        assert "rank" not in view

    def test_opponent_view_shows_flipped_rank(self):
        card = W("J")
        card.flipped = True
        assert card.to_opponent_dict() == {"color": "white", "rank": "joker", "flipped": True}

    def test_from_dict(self):
        card = Card.from_dict({"color": "black", "rank": "joker", "flipped": True})
        assert card.is_joker
        assert card.color == Color.BLACK
        assert card.flipped


# =============================================================================
# Deck Tests
# =============================================================================

class TestDeck:

    def test_build_deck_has_thirteen_cards(self):
        for color in Color:
            cards = build_deck(color)
            assert len(cards) == 13
            assert all(c.color == color for c in cards)
            assert sum(1 for c in cards if c.is_joker) == 1
            assert len({c.key for c in cards}) == 13

    def test_draw_from_end(self):
        cards = [B(1), B(2)]
        assert str(draw(cards)) == "B2"
        assert str(draw(cards)) == "B1"
        assert draw(cards) is None

    def test_deck_draw_until_empty(self):
        deck = Deck.shuffled(Color.WHITE, random.Random(1))
        drawn = [deck.draw() for _ in range(13)]
        assert deck.is_empty()
        assert deck.draw() is None
        assert {c.key for c in drawn} == {c.key for c in build_deck(Color.WHITE)}

    def test_cards_remaining(self):
        deck = Deck(Color.BLACK)
        deck.draw()
        assert deck.cards_remaining() == 12

    def test_list_round_trip_keeps_order(self):
        deck = Deck.shuffled(Color.BLACK, random.Random(7))
        restored = Deck.from_list(Color.BLACK, deck.to_list())
        assert [c.key for c in restored.cards] == [c.key for c in deck.cards]

    def test_seeded_shuffle_is_deterministic(self):
        a = Deck.shuffled(Color.BLACK, random.Random(42))
        b = Deck.shuffled(Color.BLACK, random.Random(42))
        assert [c.key for c in a.cards] == [c.key for c in b.cards]


class TestShuffleFairness:
    """Every card should land in every position about equally often."""

    def test_position_distribution(self):
        rng = random.Random(2024)
        trials = 13000
        counts = Counter()
        for _ in range(trials):
            cards = build_deck(Color.BLACK)
            shuffle(cards, rng)
            counts[cards[0].rank] += 1

        expected = trials / 13
        assert len(counts) == 13
        for rank, count in counts.items():
            # ~8 standard deviations of slack
            assert abs(count - expected) < expected * 0.25, rank
