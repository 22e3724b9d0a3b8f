"""
Game logic for Five Crowns.

This module implements the room state machine: player state, dealing,
turn flow, the "going out" sequence, scoring and multi-round progression.

Five Crowns Rules Summary:
    - 11 rounds; round N deals N + 2 cards to each player
    - The rank matching the hand size is wild that round (Jokers always wild)
    - On your turn: draw from the draw pile or discard pile, then discard one
    - Lay melds (books and runs) to protect cards from scoring
    - Going out: meld everything but one card, which is discarded; every
      other player then gets exactly one final turn
    - Cards left unmelded at round end score against you (lowest total wins)

Room status flow: LOBBY -> PLAYING -> LOBBY (next round, re-ready)
After round 11: LOBBY -> PLAYING -> FINISHED
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from cards import Card, Deck, card_value, shuffle_cards, wild_rank
from constants import MAX_PLAYERS, MIN_PLAYERS, TOTAL_ROUNDS, cards_for_round
from errors import InvalidMeld
from logging_config import get_logger
from melds import validate_melds

logger = get_logger(__name__)


class RoomStatus(str, Enum):
    """
    Lifecycle status of a room.

    LOBBY: Waiting for every player to ready up for the next round.
    PLAYING: A round is being played.
    FINISHED: All rounds played, final scores stand.
    """

    LOBBY = "lobby"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class Player:
    """
    A player in a Five Crowns game.

    Attributes:
        id: Connection-bound identifier.
        name: Display name.
        ready: Whether the player has readied up in the lobby.
        score: Cumulative points across all rounds.
        hand: Cards held, including cards laid in melds this round.
        has_drawn: True between drawing and discarding within a turn.
        gone_out: True once this player has gone out this round.
        last_turn_complete: True once the player has finished their final
            turn after someone went out.
        laid_melds: Validated meld groups declared this round.
        laid_meld_ids: Ids of every card in laid_melds.
    """

    id: str
    name: str
    ready: bool = False
    score: int = 0
    hand: list[Card] = field(default_factory=list)
    has_drawn: bool = False
    gone_out: bool = False
    last_turn_complete: bool = False
    laid_melds: list[list[Card]] = field(default_factory=list)
    laid_meld_ids: set[str] = field(default_factory=set)

    def reset_for_round(self) -> None:
        """Clear hand, readiness and per-round flags (score is kept)."""
        self.hand = []
        self.ready = False
        self.has_drawn = False
        self.gone_out = False
        self.last_turn_complete = False
        self.laid_melds = []
        self.laid_meld_ids = set()

    def find_card(self, card_id: Any) -> Optional[Card]:
        for card in self.hand:
            if card.id == card_id:
                return card
        return None

    def unlaid_cards(self) -> list[Card]:
        """Cards in hand that are not part of a laid meld."""
        return [c for c in self.hand if c.id not in self.laid_meld_ids]

    def retract_meld_containing(self, card_id: str) -> None:
        """Drop the laid meld that uses card_id (it no longer holds together)."""
        if card_id not in self.laid_meld_ids:
            return
        self.laid_melds = [
            group for group in self.laid_melds
            if all(c.id != card_id for c in group)
        ]
        self.laid_meld_ids = {c.id for group in self.laid_melds for c in group}

    def to_public_dict(self) -> dict:
        """Player info every member of the room may see."""
        return {
            "id": self.id,
            "name": self.name,
            "ready": self.ready,
            "hand_count": len(self.hand),
            "score": self.score,
            "gone_out": self.gone_out,
            "has_drawn": self.has_drawn,
            "last_turn_complete": self.last_turn_complete,
            "laid_melds": [[c.to_dict() for c in group] for group in self.laid_melds],
        }


@dataclass
class Game:
    """
    Main game state and logic controller for a Five Crowns room.

    Every public mutator is a guard-clause contract: an action that is not
    allowed right now (wrong turn, drawing twice, discarding before drawing)
    returns a falsy value and leaves the state untouched, so the caller
    knows not to broadcast.

    Attributes:
        room_code: Code of the room this game belongs to.
        players: Players in join order (max 7).
        status: Current room status.
        current_round: Round number, 1..11 (12 once the game is finished).
        draw_pile: Face-down stock; the last element is the top.
        discard_pile: Face-up pile; the last element is the top.
        current_turn_player_id: Whose turn it is (None outside a round).
        go_out_player_id: First player to go out this round, if any.
        turn_order: Player ids fixed at round start.
        dealer_idx: Seat of the dealer; play starts to the dealer's left.
        last_round_scores: Points each player took in the last finished round.
        seed: Optional seed making deals and reshuffles reproducible.
    """

    room_code: str = ""
    players: list[Player] = field(default_factory=list)
    status: RoomStatus = RoomStatus.LOBBY
    current_round: int = 1
    draw_pile: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    current_turn_player_id: Optional[str] = None
    go_out_player_id: Optional[str] = None
    turn_order: list[str] = field(default_factory=list)
    dealer_idx: int = 0
    last_round_scores: dict[str, int] = field(default_factory=dict)
    seed: Optional[int] = None
    rng: random.Random = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.rng is None:
            self.rng = random.Random(self.seed)
        self.log = logger.with_context(room_code=self.room_code)

    @property
    def cards_per_player(self) -> int:
        return cards_for_round(self.current_round)

    @property
    def wild_rank(self) -> str:
        return wild_rank(self.cards_per_player)

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player: Player) -> bool:
        """
        Add a player to the game.

        Players joining mid-round sit out until the next deal.

        Returns:
            True if added, False if the game is full.
        """
        if len(self.players) >= MAX_PLAYERS:
            return False
        self.players.append(player)
        return True

    def remove_player(self, player_id: str) -> Optional[Player]:
        """
        Remove a player (disconnect or leave) by ID.

        The turn pointer never keeps referencing a removed player: if they
        held the turn it moves on. A player leaving during the final-turn
        countdown counts as having finished, so the round can still end.
        If fewer than MIN_PLAYERS remain mid-round, the round is abandoned
        and the room returns to the lobby with scores intact.

        Returns:
            The removed Player, or None if not found.
        """
        player = self.get_player(player_id)
        if not player:
            return None

        seat = self.players.index(player)
        self.players.remove(player)
        if seat < self.dealer_idx:
            self.dealer_idx -= 1
        if not self.players or self.dealer_idx >= len(self.players):
            self.dealer_idx = 0

        if self.status != RoomStatus.PLAYING:
            return player

        if len(self.players) < MIN_PLAYERS:
            self.log.info(f"Round {self.current_round} abandoned, not enough players left")
            self._abandon_round()
            return player

        held_turn = self.current_turn_player_id == player_id
        next_id = self._find_next_player_id(player_id) if held_turn else None
        self.turn_order = [pid for pid in self.turn_order if pid != player_id]

        if self._round_complete():
            self._end_round()
        elif held_turn:
            self._set_turn(next_id)
        return player

    def get_player(self, player_id: str) -> Optional[Player]:
        """
        Find a player by their ID.

        Returns:
            The Player if found, None otherwise.
        """
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        if self.current_turn_player_id is None:
            return None
        return self.get_player(self.current_turn_player_id)

    def toggle_ready(self, player_id: str) -> bool:
        """
        Flip a player's ready flag while in the lobby.

        Starts the round as soon as at least MIN_PLAYERS are present and
        all of them are ready.

        Returns:
            True if the flag changed, False if not allowed.
        """
        if self.status != RoomStatus.LOBBY:
            return False
        player = self.get_player(player_id)
        if not player:
            return False

        player.ready = not player.ready
        if len(self.players) >= MIN_PLAYERS and all(p.ready for p in self.players):
            self.start_round()
        return True

    # -------------------------------------------------------------------------
    # Round Lifecycle
    # -------------------------------------------------------------------------

    def start_round(self) -> bool:
        """
        Deal a new round.

        Builds and shuffles a fresh 116-card deck, deals round + 2 cards
        one at a time round-robin, turns one card face-up as the starter
        discard, and gives the first turn to the seat after the dealer.

        Returns:
            True if the round started, False if the game is over or
            there are too few players.
        """
        if self.status == RoomStatus.FINISHED or len(self.players) < MIN_PLAYERS:
            return False

        deck = Deck(seed=self.rng.randint(0, 2**31 - 1))
        self.draw_pile = deck.cards
        self.discard_pile = []
        self.status = RoomStatus.PLAYING
        self.go_out_player_id = None
        self.last_round_scores = {}

        for player in self.players:
            player.reset_for_round()

        for _ in range(self.cards_per_player):
            for player in self.players:
                player.hand.append(self.draw_pile.pop())

        self.discard_pile.append(self.draw_pile.pop())

        self.turn_order = [p.id for p in self.players]
        self.dealer_idx %= len(self.players)
        first = self.players[(self.dealer_idx + 1) % len(self.players)]
        self.current_turn_player_id = first.id

        self.log.info(
            f"Round {self.current_round} started: {len(self.players)} players, "
            f"{self.cards_per_player} cards each, {self.wild_rank}s wild, deck seed {deck.seed}"
        )
        return True

    def _end_round(self) -> None:
        """
        Score the round and move to the next one.

        Players who did not go out add the value of every card not in a
        laid meld; the player who went out adds nothing. After round 11
        the room is FINISHED, otherwise it returns to the LOBBY.
        """
        wild = self.wild_rank
        self.last_round_scores = {}
        for player in self.players:
            if player.gone_out:
                points = 0
            else:
                points = sum(card_value(c, wild) for c in player.unlaid_cards())
            player.score += points
            self.last_round_scores[player.id] = points
            player.reset_for_round()

        self.draw_pile = []
        self.discard_pile = []
        self.current_turn_player_id = None
        self.go_out_player_id = None
        self.turn_order = []
        if self.players:
            self.dealer_idx = (self.dealer_idx + 1) % len(self.players)

        self.log.info(f"Round {self.current_round} ended: {self.last_round_scores}")

        self.current_round += 1
        if self.current_round > TOTAL_ROUNDS:
            self.status = RoomStatus.FINISHED
            self.log.info("Game finished")
        else:
            self.status = RoomStatus.LOBBY

    def _abandon_round(self) -> None:
        """Return to the lobby without scoring; the round will be redealt."""
        for player in self.players:
            player.reset_for_round()
        self.draw_pile = []
        self.discard_pile = []
        self.current_turn_player_id = None
        self.go_out_player_id = None
        self.turn_order = []
        self.status = RoomStatus.LOBBY

    def reset(self) -> None:
        """
        Reset the room to a fresh game: lobby, round 1, zero scores.

        Allowed from any status, including FINISHED, so a finished room
        can play again.
        """
        for player in self.players:
            player.reset_for_round()
            player.score = 0
        self.status = RoomStatus.LOBBY
        self.current_round = 1
        self.draw_pile = []
        self.discard_pile = []
        self.current_turn_player_id = None
        self.go_out_player_id = None
        self.turn_order = []
        self.dealer_idx = 0
        self.last_round_scores = {}
        self.log.info("Room reset")

    # -------------------------------------------------------------------------
    # Turn Actions
    # -------------------------------------------------------------------------

    def _turn_holder(self, player_id: str) -> Optional[Player]:
        """The acting player if it is a round in progress and their turn."""
        if self.status != RoomStatus.PLAYING:
            return None
        player = self.current_player()
        if not player or player.id != player_id:
            return None
        return player

    def draw_card(self, player_id: str, source: str) -> Optional[Card]:
        """
        Draw a card from the draw pile or discard pile.

        This is the first action of a player's turn. An exhausted draw
        pile is rebuilt from the discard pile first.

        Args:
            player_id: ID of the player drawing.
            source: "draw" or "discard" (anything else means "draw").

        Returns:
            The drawn Card, or None if the action is not allowed or the
            chosen pile is empty.
        """
        player = self._turn_holder(player_id)
        if not player or player.has_drawn:
            return None

        self._reshuffle_if_needed()

        pile = self.discard_pile if source == "discard" else self.draw_pile
        if not pile:
            return None

        card = pile.pop()
        player.hand.append(card)
        player.has_drawn = True
        return card

    def _reshuffle_if_needed(self) -> None:
        """
        Rebuild an empty draw pile from the discard pile.

        The top discard stays face-up; everything under it is shuffled
        into the new draw pile.
        """
        if self.draw_pile or len(self.discard_pile) <= 1:
            return

        top_card = self.discard_pile.pop()
        self.draw_pile = shuffle_cards(self.discard_pile, self.rng)
        self.discard_pile = [top_card]
        self.log.debug(f"Reshuffled {len(self.draw_pile)} discards into the draw pile")

    def discard_card(self, player_id: str, card_id: Any) -> bool:
        """
        Discard a card from hand, ending the player's turn.

        Args:
            player_id: ID of the player discarding.
            card_id: ID of a card in their hand.

        Returns:
            True if discarded, False if not allowed or the card is not held.
        """
        player = self._turn_holder(player_id)
        if not player or not player.has_drawn:
            return False

        card = player.find_card(card_id)
        if not card:
            return False

        player.hand.remove(card)
        player.retract_meld_containing(card.id)
        self.discard_pile.append(card)
        player.has_drawn = False

        if self.go_out_player_id and player.id != self.go_out_player_id:
            player.last_turn_complete = True

        self._finish_turn()
        return True

    def submit_melds(self, player_id: str, melds: Any, mark_go_out: bool = False) -> bool:
        """
        Declare melds, optionally going out.

        Melds may be declared at any time during the round and replace any
        previously declared ones. Going out is only possible on your own
        turn, after drawing, when exactly one card is left outside the
        melds; that card is discarded automatically.

        The first player to go out starts the countdown: every other
        player gets exactly one more turn. A player who goes out during
        the countdown simply finishes their final turn.

        Args:
            player_id: ID of the submitting player.
            melds: List of groups, each a list of card ids.
            mark_go_out: Whether the player is going out.

        Returns:
            True if accepted, False if the player cannot act right now.

        Raises:
            InvalidMeld: The melds or the go-out attempt were rejected.
        """
        if self.status != RoomStatus.PLAYING:
            return False
        player = self.get_player(player_id)
        if not player or player.gone_out:
            return False

        if mark_go_out:
            if self.current_turn_player_id != player.id:
                raise InvalidMeld("You can only go out on your turn.")
            if not player.has_drawn:
                raise InvalidMeld("Draw first, then go out with one card left to discard.")

        result = validate_melds(player.hand, melds, self.wild_rank)
        if not result.ok:
            raise InvalidMeld(result.message)

        used_ids = set(result.used_ids)
        leftover = [c for c in player.hand if c.id not in used_ids]
        if mark_go_out and len(leftover) != 1:
            raise InvalidMeld("Go out with exactly one card left to discard.")

        player.laid_melds = result.groups
        player.laid_meld_ids = used_ids

        if not mark_go_out:
            return True

        last_card = leftover[0]
        player.hand.remove(last_card)
        self.discard_pile.append(last_card)
        player.has_drawn = False

        if self.go_out_player_id is None:
            self.go_out_player_id = player.id
            player.gone_out = True
            for other in self.players:
                other.last_turn_complete = other is player
            self.log.with_context(player_id=player.id).info(
                f"{player.name} went out in round {self.current_round}"
            )
        else:
            player.last_turn_complete = True

        self._finish_turn()
        return True

    # -------------------------------------------------------------------------
    # Turn & Round Flow (Internal)
    # -------------------------------------------------------------------------

    def _round_complete(self) -> bool:
        """True once someone went out and everyone else dealt in took a final turn."""
        if self.go_out_player_id is None:
            return False
        return all(
            p.last_turn_complete or p.id == self.go_out_player_id
            for p in self.players
            if p.id in self.turn_order
        )

    def _finish_turn(self) -> None:
        if self._round_complete():
            self._end_round()
        else:
            self._advance_turn()

    def _find_next_player_id(self, after_id: Optional[str]) -> Optional[str]:
        """
        Find who plays after after_id in the fixed turn order.

        Skips players who left, the player who went out, and (during the
        final-turn countdown) players who already took their final turn.
        """
        order = self.turn_order
        if not order:
            return None
        start = order.index(after_id) if after_id in order else -1
        present = {p.id: p for p in self.players}

        for step in range(1, len(order) + 1):
            candidate = present.get(order[(start + step) % len(order)])
            if candidate is None or candidate.gone_out:
                continue
            if self.go_out_player_id and candidate.last_turn_complete:
                continue
            return candidate.id
        return None

    def _set_turn(self, player_id: Optional[str]) -> None:
        if player_id is None:
            self._end_round()
            return
        self.current_turn_player_id = player_id
        self.get_player(player_id).has_drawn = False

    def _advance_turn(self) -> None:
        """Advance to the next eligible player's turn."""
        self._set_turn(self._find_next_player_id(self.current_turn_player_id))

    # -------------------------------------------------------------------------
    # State Queries
    # -------------------------------------------------------------------------

    def discard_top(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def get_state(self, for_player_id: Optional[str]) -> dict:
        """
        Get the room state as seen by one player.

        Only the viewer's own hand is included; everyone else is reduced
        to a hand count plus their (public) laid melds. Pile contents are
        hidden apart from the discard top.

        Args:
            for_player_id: The player who will receive this state.

        Returns:
            Dict suitable for JSON serialization.
        """
        viewer = self.get_player(for_player_id) if for_player_id else None
        discard_top = self.discard_top()
        dealer = self.players[self.dealer_idx] if self.players else None

        return {
            "room_code": self.room_code,
            "round": self.current_round,
            "total_rounds": TOTAL_ROUNDS,
            "cards_per_player": self.cards_per_player,
            "wild_rank": self.wild_rank,
            "status": self.status.value,
            "draw_count": len(self.draw_pile),
            "discard_top": discard_top.to_dict() if discard_top else None,
            "current_turn_player_id": self.current_turn_player_id,
            "go_out_player_id": self.go_out_player_id,
            "dealer_id": dealer.id if dealer else None,
            "last_round_scores": dict(self.last_round_scores),
            "players": [p.to_public_dict() for p in self.players],
            "you": viewer.id if viewer else None,
            "hand": [c.to_dict() for c in viewer.hand] if viewer else [],
        }
