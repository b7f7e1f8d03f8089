"""FastAPI WebSocket server for the Da Vinci Code card game."""

import json
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
import redis.asyncio as redis

from auth import verify_token
from config import config
from errors import AuthFailure, ValidationFailure, INVALID_PAYLOAD
from handlers import ConnectionContext, dispatch, handle_disconnect
from logging_config import setup_logging, user_id_var
from services.forfeit import ForfeitScheduler
from services.game_service import GameService
from sessions import SessionDirectory
from stores.locks import RoomLocks
from stores.room_store import RoomStore
from stores.state_cache import GameStateStore

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Services (initialized in lifespan)
# =============================================================================

_redis_client = None
_game_service = None
_room_store = None
_forfeit_scheduler = None
sessions = SessionDirectory()


async def _init_services():
    """Connect to Redis and build the game services on top of it."""
    global _redis_client, _game_service, _room_store, _forfeit_scheduler

    _redis_client = redis.from_url(config.REDIS_URL, decode_responses=True)
    await _redis_client.ping()
    logger.info("Redis client connected")

    store = GameStateStore(
        _redis_client,
        game_ttl=timedelta(seconds=config.GAME_STATE_TTL_SECONDS),
        ready_ttl=timedelta(seconds=config.READY_TTL_SECONDS),
    )
    _room_store = RoomStore(_redis_client, capacity=config.ROOM_CAPACITY)
    locks = RoomLocks(
        _redis_client if config.ROOM_LOCK_BACKEND == "redis" else None,
        timeout=config.ROOM_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=config.ROOM_LOCK_WAIT_SECONDS,
    )
    _game_service = GameService(store, _room_store, locks, sessions)
    _forfeit_scheduler = ForfeitScheduler(
        _game_service, sessions, grace_seconds=config.DISCONNECT_GRACE_SECONDS,
    )
    logger.info(f"Room locking backend: {config.ROOM_LOCK_BACKEND}")


async def _shutdown_services():
    """Gracefully shut down all services."""
    await _close_all_websockets()

    if _forfeit_scheduler:
        await _forfeit_scheduler.shutdown()

    if _redis_client:
        await _redis_client.aclose()
        logger.info("Redis connection closed")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for websocket in list(sessions.connections.values()):
        try:
            await websocket.close(code=1001, reason="Server shutting down")
        except RuntimeError as e:
            logger.debug(f"WebSocket already closed: {e}")
    sessions.connections.clear()
    sessions.groups.clear()
    logger.info("All WebSocket connections closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    try:
        await _init_services()
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        raise

    # Set up health check dependencies
    from routers.health import set_health_dependencies
    set_health_dependencies(
        redis_client=_redis_client,
        sessions=sessions,
        forfeits=_forfeit_scheduler,
    )

    logger.info(f"Da Vinci Code server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _shutdown_services()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Da Vinci Code",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

from routers.health import router as health_router
app.include_router(health_router)


def _handler_deps() -> dict:
    """Shared dependencies passed to every handler."""
    return dict(
        games=_game_service,
        rooms=_room_store,
        sessions=sessions,
        forfeits=_forfeit_scheduler,
    )


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    # Token from query param, or an Authorization header
    raw_token = websocket.query_params.get("token") or websocket.headers.get("authorization")
    try:
        user = verify_token(raw_token)
    except AuthFailure as e:
        logger.debug(f"WebSocket auth failed: {e.message}")
        await websocket.send_json(e.to_message())
        await websocket.close(code=4001, reason="Authentication required")
        return

    user_id_var.set(user.user_id)
    deps = _handler_deps()
    rooms: RoomStore = deps["rooms"]

    if user.nickname:
        await rooms.set_nickname(user.user_id, user.nickname)
        nickname = user.nickname
    else:
        nickname = await rooms.get_nickname(user.user_id)

    previous = sessions.register(user.user_id, websocket)
    if previous is not None:
        logger.info(f"User {user.user_id} connected again, closing the older connection")
        try:
            await previous.close(code=4000, reason="Connected from another session")
        except RuntimeError as e:
            logger.debug(f"Older connection already closed: {e}")
    _forfeit_scheduler.cancel(user.user_id)

    ctx = ConnectionContext(
        websocket=websocket,
        user_id=user.user_id,
        nickname=nickname,
        room_id=await rooms.get_room_id_by_client(user.user_id),
    )
    logger.debug(f"WebSocket authenticated as user {user.user_id}")

    await websocket.send_json({
        "type": "connected",
        "userId": user.user_id,
        "nickname": nickname,
        "roomId": ctx.room_id,
    })

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
                if not isinstance(data, dict):
                    raise ValueError("message must be a JSON object")
            except ValueError as e:
                error = ValidationFailure(INVALID_PAYLOAD, f"Malformed message: {e}")
                await websocket.send_json(error.to_message())
                continue
            await dispatch(data, ctx, **deps)
    except WebSocketDisconnect:
        logger.debug(f"User {user.user_id} disconnected")
    finally:
        await handle_disconnect(ctx, **deps)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Da Vinci Code server on {config.HOST}:{config.PORT}")
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
