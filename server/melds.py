"""
Meld validation for Five Crowns.

A meld is a group of at least three cards that forms either:
    - a book: cards of the same rank (suits may differ), or
    - a run: cards of one suit in consecutive rank order.

Wild cards (Jokers and the round's wild rank) stand in for any card, so a
book only needs its natural cards to agree on rank, and a run only needs
enough wilds to fill the gaps between its natural cards.

Everything here is pure: no game state is read or written.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from cards import Card, is_wild, rank_index
from constants import MIN_MELD_SIZE


@dataclass
class MeldResult:
    """
    Outcome of validating a meld submission.

    Attributes:
        ok: Whether every group was accepted.
        message: Reason for rejection (None when ok).
        used_ids: Ids of all cards consumed, in submission order.
        groups: Card objects for each accepted group.
    """

    ok: bool
    message: Optional[str] = None
    used_ids: list[str] = field(default_factory=list)
    groups: list[list[Card]] = field(default_factory=list)


def is_valid_book(cards: list[Card], wild: str) -> bool:
    """Check that all natural (non-wild) cards share one rank."""
    natural = [c for c in cards if not is_wild(c, wild)]
    if not natural:
        return True
    rank = natural[0].rank
    return all(c.rank == rank for c in natural)


def is_valid_run(cards: list[Card], wild: str) -> bool:
    """
    Check that cards form a same-suit sequence once wilds fill the gaps.

    Natural cards are sorted by rank; each step between neighbours needs
    (difference - 1) wilds. Two naturals of the same rank can never sit in
    one run.
    """
    natural = [c for c in cards if not is_wild(c, wild)]
    if not natural:
        return True

    suit = natural[0].suit
    if any(c.suit != suit for c in natural):
        return False

    indexes = sorted(rank_index(c.rank) for c in natural)
    needed = 0
    for prev, cur in zip(indexes, indexes[1:]):
        gap = cur - prev - 1
        if gap < 0:
            return False
        needed += gap

    wild_count = len(cards) - len(natural)
    return needed <= wild_count


def validate_melds(hand: list[Card], melds: Any, wild: str) -> MeldResult:
    """
    Validate a proposed partition of hand cards into melds.

    The whole submission is rejected on the first bad group.

    Args:
        hand: The submitting player's current hand.
        melds: List of groups, each a list of card ids.
        wild: The round's wild rank.

    Returns:
        MeldResult with the consumed ids and card groups, or the rejection reason.
    """
    if not isinstance(melds, list):
        return MeldResult(ok=False, message="Meld data missing")

    hand_by_id = {card.id: card for card in hand}
    used: list[str] = []
    seen: set[str] = set()
    groups: list[list[Card]] = []

    for meld in melds:
        if not isinstance(meld, list) or len(meld) < MIN_MELD_SIZE:
            return MeldResult(ok=False, message=f"Each meld must have at least {MIN_MELD_SIZE} cards")

        group = []
        for card_id in meld:
            if not isinstance(card_id, str):
                return MeldResult(ok=False, message="Card not in hand")
            if card_id in seen:
                return MeldResult(ok=False, message="Card used twice in melds")
            card = hand_by_id.get(card_id)
            if card is None:
                return MeldResult(ok=False, message="Card not in hand")
            seen.add(card_id)
            used.append(card_id)
            group.append(card)

        if not is_valid_book(group, wild) and not is_valid_run(group, wild):
            return MeldResult(ok=False, message="Invalid book or run")
        groups.append(group)

    return MeldResult(ok=True, used_ids=used, groups=groups)
