"""
Room management for multiplayer Five Crowns games.

This module handles room creation, player admission, and WebSocket
communication for multiplayer game sessions.

A Room contains:
    - A unique code chosen by its creator
    - A collection of RoomPlayers bound to live connections
    - A Game instance with the actual game state
    - A lock serializing every mutation of that game
"""

import asyncio
import secrets
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import WebSocket

from config import config
from constants import MAX_PLAYERS
from errors import DuplicateRoom, InvalidRequest, RoomFull, RoomNotFound, Unauthorized
from game import Game, Player
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RoomPlayer:
    """
    A player in a game room (connection-level representation).

    This is separate from game.Player - RoomPlayer tracks the WebSocket
    bound to a player, while game.Player tracks in-game state like the
    hand and score.

    Attributes:
        id: Unique player identifier (the connection id).
        name: Display name.
        websocket: WebSocket connection (None once detached).
    """

    id: str
    name: str
    websocket: Optional[WebSocket] = None


@dataclass
class Room:
    """
    A game room that hosts one Five Crowns game.

    Attributes:
        code: Room code for joining (e.g., "ABCD").
        players: Dict mapping player IDs to RoomPlayer objects, in join order.
        game: The Game instance containing actual game state.
        game_lock: asyncio.Lock serializing every read-mutate-broadcast
            cycle on this room, so the room behaves as a single actor.
    """

    code: str
    players: dict[str, RoomPlayer] = field(default_factory=dict)
    game: Game = None
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        if self.game is None:
            self.game = Game(room_code=self.code)

    def add_player(
        self,
        player_id: str,
        name: str,
        websocket: Optional[WebSocket],
    ) -> Optional[RoomPlayer]:
        """
        Add a player to the room as an unready player.

        Args:
            player_id: Unique identifier for the player (connection_id).
            name: Display name.
            websocket: The player's WebSocket connection.

        Returns:
            The created RoomPlayer, or None if the room is full.
        """
        if not self.game.add_player(Player(id=player_id, name=name)):
            return None
        room_player = RoomPlayer(id=player_id, name=name, websocket=websocket)
        self.players[player_id] = room_player
        return room_player

    def remove_player(self, player_id: str) -> Optional[RoomPlayer]:
        """
        Remove a player from the room and from the game.

        Returns:
            The removed RoomPlayer, or None if not found.
        """
        if player_id not in self.players:
            return None

        room_player = self.players.pop(player_id)
        self.game.remove_player(player_id)
        return room_player

    def is_empty(self) -> bool:
        """Check if the room has no players."""
        return len(self.players) == 0

    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    async def broadcast_state(self) -> None:
        """Send every connected member their own view of the room state."""
        for player_id in list(self.players):
            await self.send_state(player_id)

    async def send_state(self, player_id: str) -> None:
        """Send one member their view of the room state."""
        await self.send_to(player_id, {
            "type": "room-state",
            "state": self.game.get_state(player_id),
        })

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to a specific player.

        A failed send only affects that player; the rest of the room
        keeps receiving updates and the disconnect path cleans up.

        Args:
            player_id: ID of the recipient player.
            message: JSON-serializable message dict.
        """
        player = self.players.get(player_id)
        if player and player.websocket:
            try:
                await player.websocket.send_json(message)
            except Exception as e:
                logger.with_context(room_code=self.code, player_id=player_id).debug(
                    f"Send failed: {e}"
                )


def _password_ok(password: Any) -> bool:
    if not isinstance(password, str):
        return False
    return secrets.compare_digest(password.encode("utf-8"), config.ROOM_PASSWORD.encode("utf-8"))


def normalize_code(code: Any) -> str:
    """Room codes are case-insensitive and ignore surrounding whitespace."""
    if not isinstance(code, str):
        return ""
    return code.strip().upper()


class RoomManager:
    """
    Manages all active game rooms.

    The single owner of the room table: rooms are only created, looked up
    and deleted through these methods. A single RoomManager instance is
    used by the server.
    """

    def __init__(self) -> None:
        """Initialize an empty room manager."""
        self.rooms: dict[str, Room] = {}

    def create_room(
        self,
        code: Any,
        password: Any,
        player_id: str,
        name: Any,
        websocket: Optional[WebSocket] = None,
    ) -> Room:
        """
        Create a room with the requester as its sole, unready player.

        Args:
            code: Room code chosen by the creator.
            password: Shared access password.
            player_id: The creator's connection id.
            name: The creator's display name.
            websocket: The creator's connection.

        Returns:
            The newly created Room.

        Raises:
            Unauthorized: Wrong password.
            InvalidRequest: Missing code or name, or code too long.
            DuplicateRoom: Code already in use.
        """
        if not _password_ok(password):
            raise Unauthorized("Incorrect password.")

        code = normalize_code(code)
        name = name.strip() if isinstance(name, str) else ""
        if not code or not name:
            raise InvalidRequest("Room code and name are required.")
        if len(code) > config.ROOM_CODE_MAX_LENGTH:
            raise InvalidRequest(f"Room code must be at most {config.ROOM_CODE_MAX_LENGTH} characters.")
        if code in self.rooms:
            raise DuplicateRoom("That room code is already in use. Try another.")

        room = Room(code=code)
        room.add_player(player_id, name, websocket)
        self.rooms[code] = room
        logger.with_context(room_code=code, player_id=player_id).info(f"Room created by {name}")
        return room

    def join_room(
        self,
        code: Any,
        password: Any,
        player_id: str,
        name: Any,
        websocket: Optional[WebSocket] = None,
    ) -> Room:
        """
        Add a new unready player to an existing room.

        Raises:
            Unauthorized: Wrong password.
            InvalidRequest: Missing code or name.
            RoomNotFound: No room with that code.
            RoomFull: Room already has MAX_PLAYERS players.
        """
        if not _password_ok(password):
            raise Unauthorized("Incorrect password.")

        name = name.strip() if isinstance(name, str) else ""
        if not normalize_code(code) or not name:
            raise InvalidRequest("Room code and name are required.")

        room = self.get_room(code)
        if not room:
            raise RoomNotFound("Room not found. Ask the host to create it first.")
        if room.is_full() or not room.add_player(player_id, name, websocket):
            raise RoomFull(f"Room is full ({MAX_PLAYERS} players max).")

        logger.with_context(room_code=room.code, player_id=player_id).info(f"{name} joined")
        return room

    def get_room(self, code: Any) -> Optional[Room]:
        """
        Get a room by its code (case-insensitive).

        Returns:
            The Room if found, None otherwise.
        """
        return self.rooms.get(normalize_code(code))

    def remove_room(self, code: str, room: Optional[Room] = None) -> None:
        """
        Delete a room.

        Args:
            code: The room code to remove.
            room: If given, only delete while the code still maps to this
                Room; a newer room reusing the code is left alone.
        """
        current = self.rooms.get(code)
        if current is None or (room is not None and current is not room):
            return
        del self.rooms[code]
        logger.with_context(room_code=code).info("Room deleted")
