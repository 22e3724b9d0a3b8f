"""
Game constants for Five Crowns.

This module is the single source of truth for deck composition, round
count and card point values.

Five Crowns Scoring (leftover cards at round end):
    - 3-10: Face value
    - Jack: 11, Queen: 12, King: 13
    - Wild rank of the round: 20 points
    - Joker: 50 points
"""


# =============================================================================
# Deck Composition
# =============================================================================

# Low to high; the index doubles as the rank's position in a run
RANK_ORDER: list[str] = ['3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K']

SUITS: list[str] = ['stars', 'diamonds', 'hearts', 'spades', 'clubs']

JOKER_RANK = 'Joker'
JOKER_SUIT = 'joker'

NUM_DECKS = 2
JOKERS_PER_DECK = 3
DECK_SIZE = NUM_DECKS * (len(SUITS) * len(RANK_ORDER) + JOKERS_PER_DECK)  # 116


# =============================================================================
# Card Values
# =============================================================================

CARD_VALUES: dict[str, int] = {
    '3': 3,
    '4': 4,
    '5': 5,
    '6': 6,
    '7': 7,
    '8': 8,
    '9': 9,
    '10': 10,
    'J': 11,
    'Q': 12,
    'K': 13,
}
WILD_CARD_VALUE = 20
JOKER_VALUE = 50


# =============================================================================
# Game Constants
# =============================================================================

# A full table in round 11 (7 x 13 cards plus the starter) must fit in one deck
MAX_PLAYERS = 7
MIN_PLAYERS = 2
TOTAL_ROUNDS = 11
MIN_MELD_SIZE = 3


def cards_for_round(round_num: int) -> int:
    """Hand size dealt in a round: 3 cards in round 1 up to 13 in round 11."""
    return round_num + 2
