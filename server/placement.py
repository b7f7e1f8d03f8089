"""
Placement rules for cards entering a hand.

Numbered cards in a hand must ascend, with black before white on a tie.
Jokers sit wherever their owner put them, so a run of jokers between two
numbered neighbours can hide any rank in between. A card whose rank falls
in that gap may legally go on either side of, or inside, the joker run.

To fold the color tie-break into a single number, white cards are given a
"virtual rank" half a step above their printed rank:

    B3 -> 3.0    W3 -> 3.5    B4 -> 4.0

Example, hand [B1, J, J, W6] and a drawn B4:

    index:  0    1   2   3
           B1   J   J   W6
    B4 is above B1 (index 0) and below W6 (index 3), so positions
    1, 2 and 3 are all legal.
"""

from typing import Optional

from cards import Card, Color


def virtual_rank(card: Card) -> float:
    """Rank with the white tie-break folded in. Raises ValueError for jokers."""
    value = float(card.rank.number)
    if card.color == Color.WHITE:
        value += 0.5
    return value


def all_positions(hand: list[Card]) -> list[int]:
    """Every insertion index, for a card with no rank (a joker)."""
    return list(range(len(hand) + 1))


def joker_runs(hand: list[Card]) -> list[tuple[int, int]]:
    """
    Find runs of consecutive jokers.

    Returns:
        (start, end) index pairs, both inclusive, in hand order.
    """
    runs = []
    start = None
    for i, card in enumerate(hand):
        if card.is_joker:
            if start is None:
                start = i
        elif start is not None:
            runs.append((start, i - 1))
            start = None
    if start is not None:
        runs.append((start, len(hand) - 1))
    return runs


def legal_positions(hand: list[Card], card: Card) -> list[int]:
    """
    Compute every index where `card` can be inserted into `hand`.

    Without jokers in the way exactly one index keeps the hand ordered. A
    joker run whose numbered neighbours bracket the card's virtual rank (a
    run at either end of the hand is open on that side) makes every index
    from just before the run to just after it legal.

    Args:
        hand: Current ordered hand, possibly holding positioned jokers.
        card: Card to insert.

    Returns:
        Sorted list of legal insertion indices.

    Raises:
        ValueError: If the hand's numbered cards are out of order.
    """
    if card.is_joker:
        return all_positions(hand)

    target = virtual_rank(card)
    positions = {_ordered_index(hand, target)}
    for start, end in joker_runs(hand):
        left = virtual_rank(hand[start - 1]) if start > 0 else None
        right = virtual_rank(hand[end + 1]) if end + 1 < len(hand) else None
        if (left is None or left <= target) and (right is None or target <= right):
            positions.update(range(start, end + 2))
    return sorted(positions)


def _ordered_index(hand: list[Card], target: float) -> int:
    """Index just after the last numbered card below `target`."""
    lower = 0
    upper = len(hand)
    for i, held in enumerate(hand):
        if held.is_joker:
            continue
        if virtual_rank(held) < target:
            lower = i + 1
        elif upper == len(hand):
            upper = i
    if upper < lower:
        raise ValueError("Hand is not in rank order")
    return lower


def is_valid_order(hand: list[Card]) -> bool:
    """
    Check a hand's ordering.

    Numbered cards, read left to right with jokers skipped, must strictly
    ascend by virtual rank (so equal ranks go black then white). Jokers may
    sit anywhere.
    """
    previous: Optional[float] = None
    for card in hand:
        if card.is_joker:
            continue
        current = virtual_rank(card)
        if previous is not None and current <= previous:
            return False
        previous = current
    return True


def same_cards(a: list[Card], b: list[Card]) -> bool:
    """True when both sequences hold exactly the same cards (any order)."""
    return sorted(map(_sort_key, a)) == sorted(map(_sort_key, b))


def find_new_card(old: list[Card], new: list[Card]) -> Optional[int]:
    """
    Locate the card in `new` that `old` does not have.

    Returns:
        Its index in `new`, or None if every card was already present.
    """
    old_keys = {c.key for c in old}
    for i, card in enumerate(new):
        if card.key not in old_keys:
            return i
    return None


def insert_card(hand: list[Card], card: Card, position: int) -> list[Card]:
    """Return a new hand with `card` inserted at `position`."""
    new_hand = list(hand)
    new_hand.insert(position, card)
    return new_hand


def _sort_key(card: Card) -> tuple[str, str]:
    color, rank = card.key
    return (color, str(rank))
