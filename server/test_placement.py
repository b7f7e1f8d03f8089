"""
Test suite for the placement resolver.

A drawn numbered card must go after every lower numbered card and before
every higher one; jokers in between widen the choice. A joker can go
anywhere.

Run with: pytest test_placement.py -v
"""

import pytest

from cards import Card, Color, Rank
from placement import (
    find_new_card,
    joker_runs,
    insert_card,
    is_valid_order,
    legal_positions,
    same_cards,
    virtual_rank,
)


def B(n):
    return Card(Color.BLACK, Rank.JOKER if n == "J" else Rank(n))


def W(n):
    return Card(Color.WHITE, Rank.JOKER if n == "J" else Rank(n))


class TestVirtualRank:

    def test_white_breaks_ties_upward(self):
        assert virtual_rank(B(7)) == 7.0
        assert virtual_rank(W(7)) == 7.5

    def test_joker_has_no_virtual_rank(self):
        with pytest.raises(ValueError):
            virtual_rank(W("J"))


class TestJokerRuns:

    def test_no_jokers(self):
        assert joker_runs([B(1), W(2)]) == []

    def test_runs(self):
        hand = [B("J"), B(2), W("J"), B("J"), B(7), W("J")]
        assert joker_runs(hand) == [(0, 0), (2, 3), (5, 5)]

    def test_all_jokers(self):
        assert joker_runs([B("J"), W("J")]) == [(0, 1)]


class TestLegalPositions:

    def test_no_jokers_single_index(self):
        hand = [B(1), W(4), B(9)]
        assert legal_positions(hand, W(6)) == [2]

    def test_smallest_goes_first(self):
        assert legal_positions([B(3), W(5)], B(0)) == [0]

    def test_largest_goes_last(self):
        assert legal_positions([B(3), W(5)], W(11)) == [2]

    def test_tie_break_black_then_white(self):
        assert legal_positions([B(7)], W(7)) == [1]
        assert legal_positions([W(7)], B(7)) == [0]

    def test_empty_hand(self):
        assert legal_positions([], B(5)) == [0]

    def test_joker_between_neighbours_widens_range(self):
        # B3 [J] B7 : a 5 may go on either side of the joker
        hand = [B(3), W("J"), B(7)]
        assert legal_positions(hand, W(5)) == [1, 2]

    def test_joker_run_at_start(self):
        hand = [B("J"), W("J"), B(6)]
        assert legal_positions(hand, B(2)) == [0, 1, 2]

    def test_joker_run_at_end(self):
        hand = [B(2), B("J")]
        assert legal_positions(hand, W(9)) == [1, 2]

    def test_joker_outside_range_does_not_matter(self):
        hand = [B("J"), B(2), W(8)]
        assert legal_positions(hand, B(5)) == [2]

    def test_only_the_bracketing_run_counts(self):
        hand = [B(1), B("J"), W(4), W("J"), B(9)]
        assert legal_positions(hand, B(6)) == [3, 4]

    def test_hand_of_jokers(self):
        assert legal_positions([B("J"), W("J")], B(5)) == [0, 1, 2]

    def test_drawn_joker_goes_anywhere(self):
        hand = [B(1), W(4), B(9)]
        assert legal_positions(hand, B("J")) == [0, 1, 2, 3]

    def test_unordered_hand_rejected(self):
        with pytest.raises(ValueError):
            legal_positions([B(9), B(2)], W(5))


class TestIsValidOrder:

    def test_ascending(self):
        assert is_valid_order([B(1), W(1), B(4), W(10)])

    def test_white_before_black_on_tie_invalid(self):
        assert not is_valid_order([W(3), B(3)])

    def test_descending_invalid(self):
        assert not is_valid_order([B(5), B(2)])

    def test_jokers_anywhere(self):
        assert is_valid_order([W("J"), B(2), B("J"), W(6)])
        assert is_valid_order([B("J"), W("J")])

    def test_joker_does_not_hide_disorder(self):
        assert not is_valid_order([B(8), W("J"), B(2)])


class TestHelpers:

    def test_same_cards_ignores_order(self):
        assert same_cards([B(1), W("J")], [W("J"), B(1)])

    def test_same_cards_detects_swap_of_color(self):
        assert not same_cards([B(1), W(2)], [W(1), W(2)])

    def test_find_new_card(self):
        old = [B(1), W(5)]
        new = [B(1), B(3), W(5)]
        assert find_new_card(old, new) == 1

    def test_find_new_card_none(self):
        assert find_new_card([B(1)], [B(1)]) is None

    def test_insert_card_copies(self):
        hand = [B(1), W(5)]
        result = insert_card(hand, B(3), 1)
        assert [str(c) for c in result] == ["B1", "B3", "W5"]
        assert len(hand) == 2
