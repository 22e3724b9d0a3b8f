"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app handle requests?)
- /metrics - Room and player counts for monitoring
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from game import RoomStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_room_manager = None


def set_health_dependencies(room_manager=None):
    """Set dependencies for health checks."""
    global _room_manager
    _room_manager = room_manager


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app handle requests?

    Returns 503 until the room manager has been wired up.
    """
    ready = _room_manager is not None
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "starting",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@router.get("/metrics")
async def metrics():
    """Expose room metrics for dashboards and alerting."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _room_manager is not None:
        rooms = _room_manager.rooms
        metrics_data.update({
            "active_rooms": len(rooms),
            "total_players": sum(len(r.players) for r in rooms.values()),
            "games_in_progress": sum(
                1 for r in rooms.values() if r.game.status == RoomStatus.PLAYING
            ),
        })

    return metrics_data
