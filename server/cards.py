"""
Card and deck model for Five Crowns.

Five Crowns uses two 58-card decks shuffled together. Each deck has five
suits (stars, diamonds, hearts, spades, clubs) of eleven ranks (3 through
King) plus three Jokers, for 116 cards in total.

The wild rank changes every round: it is the rank matching the number of
cards dealt (3s in round 1, 4s in round 2, ... Kings in round 11). Jokers
are always wild.
"""

import random
import uuid
from dataclasses import dataclass, field
from typing import Optional

from constants import (
    CARD_VALUES,
    JOKER_RANK,
    JOKER_SUIT,
    JOKER_VALUE,
    JOKERS_PER_DECK,
    NUM_DECKS,
    RANK_ORDER,
    SUITS,
    WILD_CARD_VALUE,
)


@dataclass(frozen=True)
class Card:
    """
    A single playing card.

    Two decks are in play, so (rank, suit) pairs repeat; cards are told
    apart by their id.

    Attributes:
        rank: '3'..'10', 'J', 'Q', 'K' or 'Joker'.
        suit: One of SUITS, or 'joker'.
        id: Unique identifier (uuid4 string).
    """

    rank: str
    suit: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {"id": self.id, "rank": self.rank, "suit": self.suit}


def build_deck() -> list[Card]:
    """
    Build the unshuffled 116-card Five Crowns deck.

    Returns:
        Cards for each deck copy in suit/rank order, jokers last.
    """
    cards = []
    for _ in range(NUM_DECKS):
        for suit in SUITS:
            for rank in RANK_ORDER:
                cards.append(Card(rank, suit))
        for _ in range(JOKERS_PER_DECK):
            cards.append(Card(JOKER_RANK, JOKER_SUIT))
    return cards


def shuffle_cards(cards: list[Card], rng: random.Random) -> list[Card]:
    """
    Return a shuffled copy of cards.

    Args:
        cards: Cards to shuffle; the list itself is left untouched.
        rng: Random source, seeded by the caller for reproducible games.
    """
    result = list(cards)
    rng.shuffle(result)
    return result


class Deck:
    """
    A freshly built, shuffled Five Crowns deck.

    The deck keeps its own Random instance so that a seed reproduces the
    same shuffle without touching the global random state.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        """
        Initialize a new shuffled deck.

        Args:
            seed: Optional random seed for deterministic shuffle.
                  If None, a random seed is generated and stored.
        """
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self.rng = random.Random(self.seed)
        self.cards: list[Card] = build_deck()
        self.shuffle()

    def shuffle(self, seed: Optional[int] = None) -> None:
        """
        Randomize the order of cards in the deck.

        Args:
            seed: Optional seed to use. Replaces the deck's RNG state.
        """
        if seed is not None:
            self.seed = seed
            self.rng = random.Random(seed)
        self.cards = shuffle_cards(self.cards, self.rng)


def wild_rank(cards_per_player: int) -> str:
    """
    Get the wild rank for a hand size.

    3..10 map to their numeral, 11 to 'J', 12 to 'Q' and 13 to 'K'.
    """
    if cards_per_player <= 10:
        return str(cards_per_player)
    if cards_per_player == 11:
        return 'J'
    if cards_per_player == 12:
        return 'Q'
    return 'K'


def is_wild(card: Card, wild: str) -> bool:
    """Jokers and cards of the round's wild rank substitute for anything."""
    return card.rank == JOKER_RANK or card.rank == wild


def card_value(card: Card, wild: str) -> int:
    """
    Get the penalty value of a card left in hand at round end.

    Args:
        card: Card to evaluate.
        wild: The round's wild rank.

    Returns:
        50 for a Joker, 20 for the wild rank, otherwise the rank's value.
    """
    if card.rank == JOKER_RANK:
        return JOKER_VALUE
    if card.rank == wild:
        return WILD_CARD_VALUE
    return CARD_VALUES[card.rank]


def rank_index(rank: str) -> int:
    """Position of a rank in run order (3 low, King high)."""
    return RANK_ORDER.index(rank)
