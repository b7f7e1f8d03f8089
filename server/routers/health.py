"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (is Redis reachable?)
- /metrics - Connection and room counts for monitoring
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_redis_client = None
_sessions = None
_forfeits = None


def set_health_dependencies(
    redis_client=None,
    sessions=None,
    forfeits=None,
):
    """Set dependencies for health checks."""
    global _redis_client, _sessions, _forfeits
    _redis_client = redis_client
    _sessions = sessions
    _forfeits = forfeits


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    Used by container orchestration for restart decisions.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app handle requests?

    Game state lives in Redis, so the app is only ready while Redis
    answers. Returns 503 otherwise.
    """
    checks = {}
    overall_healthy = True

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = {"status": "error", "message": str(e)}
            overall_healthy = False
    else:
        checks["redis"] = {"status": "not_configured"}
        overall_healthy = False

    status_code = 200 if overall_healthy else 503
    return Response(
        content=json.dumps({
            "status": "ok" if overall_healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=status_code,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """
    Expose application metrics for monitoring.

    Counts are for this process only; each server instance reports its own
    connections.
    """
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _sessions is not None:
        metrics_data.update({
            "connected_players": len(_sessions.connections),
            "active_rooms": len(_sessions.groups),
            "players_in_rooms": sum(len(m) for m in _sessions.groups.values()),
        })

    if _forfeits is not None:
        metrics_data["pending_forfeits"] = _forfeits.pending_count()

    return metrics_data
