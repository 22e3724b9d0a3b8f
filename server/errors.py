"""
Error taxonomy for the Five Crowns server.

Registry failures (bad password, unknown or duplicate room, full room) and
meld rejections are raised as GameError subclasses and reported back to the
requesting connection only. Out-of-turn actions are not errors: the game
methods return a falsy result and nothing is broadcast.
"""


class GameError(Exception):
    """Base exception for game-related errors."""

    code = "GAME_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"[{self.code}] {message}")


class Unauthorized(GameError):
    code = "UNAUTHORIZED"


class RoomNotFound(GameError):
    code = "ROOM_NOT_FOUND"


class DuplicateRoom(GameError):
    code = "DUPLICATE_ROOM"


class RoomFull(GameError):
    code = "ROOM_FULL"


class InvalidRequest(GameError):
    code = "INVALID_REQUEST"


class InvalidMeld(GameError):
    code = "INVALID_MELD"
