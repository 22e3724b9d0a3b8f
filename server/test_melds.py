"""
Tests for meld validation (books, runs and wild substitution).

Run with: pytest test_melds.py -v
"""

import pytest

from cards import Card
from melds import is_valid_book, is_valid_run, validate_melds


def ids(cards):
    return [c.id for c in cards]


# Round 1: 3s are wild
WILD = "3"


class TestBooks:

    def test_three_of_a_kind(self):
        cards = [Card("7", "stars"), Card("7", "hearts"), Card("7", "clubs")]
        assert is_valid_book(cards, WILD)

    def test_same_suit_twice_allowed(self):
        # Two decks: identical rank/suit pairs can share a book
        cards = [Card("9", "stars"), Card("9", "stars"), Card("9", "clubs")]
        assert is_valid_book(cards, WILD)

    def test_mixed_ranks_rejected(self):
        cards = [Card("7", "stars"), Card("8", "hearts"), Card("7", "clubs")]
        assert not is_valid_book(cards, WILD)

    def test_wilds_fill_book(self):
        cards = [Card("K", "stars"), Card("Joker", "joker"), Card("3", "diamonds")]
        assert is_valid_book(cards, WILD)

    def test_all_wild(self):
        cards = [Card("Joker", "joker"), Card("Joker", "joker"), Card("3", "spades")]
        assert is_valid_book(cards, WILD)


class TestRuns:

    def test_consecutive_same_suit(self):
        cards = [Card("5", "hearts"), Card("6", "hearts"), Card("7", "hearts")]
        assert is_valid_run(cards, WILD)

    def test_order_does_not_matter(self):
        cards = [Card("J", "clubs"), Card("9", "clubs"), Card("10", "clubs")]
        assert is_valid_run(cards, WILD)

    def test_face_cards_continue_after_ten(self):
        cards = [Card("10", "stars"), Card("J", "stars"), Card("Q", "stars"), Card("K", "stars")]
        assert is_valid_run(cards, WILD)

    def test_gap_filled_by_one_wild(self):
        cards = [Card("5", "hearts"), Card("Joker", "joker"), Card("7", "hearts")]
        assert is_valid_run(cards, WILD)

    def test_gap_without_wild_rejected(self):
        cards = [Card("5", "hearts"), Card("7", "hearts"), Card("8", "hearts")]
        assert not is_valid_run(cards, WILD)

    def test_gap_too_wide_for_wilds(self):
        cards = [Card("4", "hearts"), Card("Joker", "joker"), Card("8", "hearts")]
        assert not is_valid_run(cards, WILD)

    def test_wild_rank_substitutes(self):
        # Round 3 wilds are 5s, so the 5 of clubs stands in for the 5 of hearts
        cards = [Card("4", "hearts"), Card("5", "clubs"), Card("6", "hearts")]
        assert is_valid_run(cards, "5")

    def test_mixed_suits_rejected(self):
        cards = [Card("5", "hearts"), Card("6", "spades"), Card("7", "hearts")]
        assert not is_valid_run(cards, WILD)

    def test_duplicate_rank_rejected(self):
        cards = [Card("5", "hearts"), Card("5", "hearts"), Card("6", "hearts")]
        assert not is_valid_run(cards, WILD)

    def test_wilds_extend_ends(self):
        cards = [Card("Q", "stars"), Card("K", "stars"), Card("Joker", "joker"), Card("3", "clubs")]
        assert is_valid_run(cards, WILD)


class TestValidateMelds:

    def setup_method(self):
        self.book = [Card("Q", "stars"), Card("Q", "clubs"), Card("Q", "hearts")]
        self.run = [Card("5", "hearts"), Card("6", "hearts"), Card("7", "hearts")]
        self.extra = Card("K", "diamonds")
        self.hand = self.book + self.run + [self.extra]

    def test_accepts_book_and_run(self):
        result = validate_melds(self.hand, [ids(self.book), ids(self.run)], WILD)
        assert result.ok
        assert result.message is None
        assert result.used_ids == ids(self.book) + ids(self.run)
        assert result.groups == [self.book, self.run]

    def test_empty_submission_is_valid(self):
        result = validate_melds(self.hand, [], WILD)
        assert result.ok
        assert result.used_ids == []

    @pytest.mark.parametrize("melds", [None, "abc", {"a": 1}, 5])
    def test_non_list_rejected(self, melds):
        result = validate_melds(self.hand, melds, WILD)
        assert not result.ok
        assert result.message == "Meld data missing"

    def test_too_few_cards(self):
        result = validate_melds(self.hand, [ids(self.book)[:2]], WILD)
        assert result.message == "Each meld must have at least 3 cards"

    def test_group_not_a_list(self):
        result = validate_melds(self.hand, ["abc"], WILD)
        assert not result.ok

    def test_card_reused_across_groups(self):
        second = [self.book[0].id] + ids(self.run)[:2]
        result = validate_melds(self.hand, [ids(self.book), second], WILD)
        assert result.message == "Card used twice in melds"

    def test_card_repeated_within_group(self):
        group = [self.book[0].id, self.book[0].id, self.book[1].id]
        result = validate_melds(self.hand, [group], WILD)
        assert result.message == "Card used twice in melds"

    def test_card_not_in_hand(self):
        stranger = Card("Q", "diamonds")
        group = ids(self.book[:2]) + [stranger.id]
        result = validate_melds(self.hand, [group], WILD)
        assert result.message == "Card not in hand"

    def test_non_string_id_rejected(self):
        result = validate_melds(self.hand, [[1, 2, 3]], WILD)
        assert result.message == "Card not in hand"

    def test_invalid_group(self):
        group = [self.book[0].id, self.run[0].id, self.extra.id]
        result = validate_melds(self.hand, [group], WILD)
        assert result.message == "Invalid book or run"

    def test_first_bad_group_rejects_everything(self):
        bad = [self.book[0].id, self.run[0].id, self.extra.id]
        result = validate_melds(self.hand, [ids(self.run), bad], WILD)
        assert not result.ok
        assert result.groups == []
