"""WebSocket message handlers for the Five Crowns card game.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict in main.py.

Every handler that touches a room holds that room's game_lock for the
whole validate -> mutate -> broadcast cycle. Actions that are not allowed
right now (wrong turn, drawing twice) change nothing and broadcast nothing.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from errors import GameError, InvalidMeld, RoomNotFound
from room import Room

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: str
    current_room: Optional[Room] = None


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(data: dict, ctx: ConnectionContext, *, room_manager, handle_player_leave, broadcast_room_state, **kw) -> None:
    if ctx.current_room:
        await handle_player_leave(ctx.current_room, ctx.player_id)
        ctx.current_room = None

    try:
        room = room_manager.create_room(
            data.get("room_code"),
            data.get("password"),
            ctx.player_id,
            data.get("name"),
            ctx.websocket,
        )
    except GameError as e:
        await ctx.websocket.send_json({"type": "create-error", "message": e.message})
        return

    ctx.current_room = room
    await ctx.websocket.send_json({
        "type": "join-success",
        "room_code": room.code,
        "player_id": ctx.player_id,
    })

    async with room.game_lock:
        await broadcast_room_state(room)


async def handle_join(data: dict, ctx: ConnectionContext, *, room_manager, handle_player_leave, broadcast_room_state, **kw) -> None:
    if ctx.current_room:
        await handle_player_leave(ctx.current_room, ctx.player_id)
        ctx.current_room = None

    def join():
        return room_manager.join_room(
            data.get("room_code"),
            data.get("password"),
            ctx.player_id,
            data.get("name"),
            ctx.websocket,
        )

    try:
        room = room_manager.get_room(data.get("room_code"))
        if not room:
            join()  # raises the right error (bad password before unknown room)
            return
        async with room.game_lock:
            # The room may have been torn down (and its code reused) while we waited
            if room_manager.get_room(room.code) is not room:
                raise RoomNotFound("Room not found. Ask the host to create it first.")
            join()
            ctx.current_room = room
            await ctx.websocket.send_json({
                "type": "join-success",
                "room_code": room.code,
                "player_id": ctx.player_id,
            })
            await broadcast_room_state(room)
    except GameError as e:
        await ctx.websocket.send_json({"type": "join-error", "message": e.message})


async def handle_toggle_ready(data: dict, ctx: ConnectionContext, *, broadcast_room_state, **kw) -> None:
    if not ctx.current_room:
        return

    async with ctx.current_room.game_lock:
        if ctx.current_room.game.toggle_ready(ctx.player_id):
            await broadcast_room_state(ctx.current_room)


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def handle_draw_card(data: dict, ctx: ConnectionContext, *, broadcast_room_state, **kw) -> None:
    if not ctx.current_room:
        return

    source = data.get("source", "draw")
    async with ctx.current_room.game_lock:
        card = ctx.current_room.game.draw_card(ctx.player_id, source)
        if card:
            logger.debug(f"{ctx.player_id} drew from {source}")
            await broadcast_room_state(ctx.current_room)


async def handle_discard_card(data: dict, ctx: ConnectionContext, *, broadcast_room_state, **kw) -> None:
    if not ctx.current_room:
        return

    async with ctx.current_room.game_lock:
        if ctx.current_room.game.discard_card(ctx.player_id, data.get("card_id")):
            await broadcast_room_state(ctx.current_room)


async def handle_submit_melds(data: dict, ctx: ConnectionContext, *, broadcast_room_state, **kw) -> None:
    if not ctx.current_room:
        return

    melds = data.get("melds")
    mark_go_out = bool(data.get("mark_go_out", False))
    async with ctx.current_room.game_lock:
        try:
            accepted = ctx.current_room.game.submit_melds(ctx.player_id, melds, mark_go_out)
        except InvalidMeld as e:
            await ctx.websocket.send_json({"type": "meld-error", "message": e.message})
            return

        if accepted:
            await broadcast_room_state(ctx.current_room)


async def handle_reset_round(data: dict, ctx: ConnectionContext, *, broadcast_room_state, **kw) -> None:
    if not ctx.current_room:
        return

    async with ctx.current_room.game_lock:
        ctx.current_room.game.reset()
        await broadcast_room_state(ctx.current_room)


async def handle_request_state(data: dict, ctx: ConnectionContext, **kw) -> None:
    if not ctx.current_room:
        return

    async with ctx.current_room.game_lock:
        await ctx.current_room.send_state(ctx.player_id)


# ---------------------------------------------------------------------------
# Leave handler
# ---------------------------------------------------------------------------

async def handle_leave_room(data: dict, ctx: ConnectionContext, *, handle_player_leave, **kw) -> None:
    if ctx.current_room:
        await handle_player_leave(ctx.current_room, ctx.player_id)
        ctx.current_room = None


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create-room": handle_create_room,
    "join": handle_join,
    "toggle-ready": handle_toggle_ready,
    "draw-card": handle_draw_card,
    "discard-card": handle_discard_card,
    "submit-melds": handle_submit_melds,
    "reset-round": handle_reset_round,
    "request-state": handle_request_state,
    "leave-room": handle_leave_room,
}
