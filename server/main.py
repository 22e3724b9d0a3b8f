"""FastAPI WebSocket server for the Five Crowns card game."""

import json
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from handlers import HANDLERS, ConnectionContext
from logging_config import connection_id_var, setup_logging
from room import Room, RoomManager
from routers.health import router as health_router
from routers.health import set_health_dependencies

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)

room_manager = RoomManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    set_health_dependencies(room_manager=room_manager)
    logger.info(f"Five Crowns server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _close_all_websockets()
    room_manager.rooms.clear()
    logger.info("Shutdown complete")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for player in room.players.values():
            if player.websocket:
                try:
                    await player.websocket.close(code=1001, reason="Server shutting down")
                except Exception as e:
                    logger.debug(f"Close failed for {player.id}: {e}")
    logger.info("All WebSocket connections closed")


app = FastAPI(
    title="Five Crowns Card Game",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health_router)


async def broadcast_room_state(room: Room):
    """Send every member of a room their own view of the game state."""
    await room.broadcast_state()


async def handle_player_leave(room: Room, player_id: str):
    """Handle a player leaving a room (explicitly or by disconnecting)."""
    async with room.game_lock:
        room_player = room.remove_player(player_id)
        if room.is_empty():
            room_manager.remove_room(room.code, room)
        elif room_player:
            logger.info(f"{room_player.name} left room {room.code}")
            await broadcast_room_state(room)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    connection_id_var.set(connection_id)
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player_id=connection_id,
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(
        room_manager=room_manager,
        broadcast_room_state=broadcast_room_state,
        handle_player_leave=handle_player_leave,
    )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                logger.debug("Dropped malformed message")
                continue
            if not isinstance(data, dict):
                continue

            handler = HANDLERS.get(data.get("type"))
            if not handler:
                continue
            try:
                await handler(data, ctx, **handler_deps)
            except WebSocketDisconnect:
                raise
            except Exception:
                # One bad intent must not take down the connection or the room
                logger.exception(f"Handler {data.get('type')} failed")
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
        if ctx.current_room:
            await handle_player_leave(ctx.current_room, ctx.player_id)
            ctx.current_room = None


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Five Crowns server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
