"""
Centralized configuration for the Da Vinci Code game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.REDIS_URL)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Shared game state
    REDIS_URL: str = "redis://localhost:6379/0"
    GAME_STATE_TTL_SECONDS: int = 24 * 60 * 60
    READY_TTL_SECONDS: int = 60 * 60

    # Auth
    JWT_SECRET: str = "change-me-to-a-long-random-secret"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24

    # Rooms
    ROOM_CAPACITY: int = 2
    ROOM_LOCK_BACKEND: str = "local"  # "local" or "redis"
    ROOM_LOCK_TIMEOUT_SECONDS: float = 10.0
    ROOM_LOCK_WAIT_SECONDS: float = 5.0
    DISCONNECT_GRACE_SECONDS: float = 30.0

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", "redis://localhost:6379/0"),
            GAME_STATE_TTL_SECONDS=get_env_int("GAME_STATE_TTL_SECONDS", 24 * 60 * 60),
            READY_TTL_SECONDS=get_env_int("READY_TTL_SECONDS", 60 * 60),
            JWT_SECRET=get_env("JWT_SECRET", "change-me-to-a-long-random-secret"),
            JWT_ALGORITHM=get_env("JWT_ALGORITHM", "HS256"),
            JWT_EXPIRE_MINUTES=get_env_int("JWT_EXPIRE_MINUTES", 60 * 24),
            ROOM_CAPACITY=get_env_int("ROOM_CAPACITY", 2),
            ROOM_LOCK_BACKEND=get_env("ROOM_LOCK_BACKEND", "local").lower(),
            ROOM_LOCK_TIMEOUT_SECONDS=get_env_float("ROOM_LOCK_TIMEOUT_SECONDS", 10.0),
            ROOM_LOCK_WAIT_SECONDS=get_env_float("ROOM_LOCK_WAIT_SECONDS", 5.0),
            DISCONNECT_GRACE_SECONDS=get_env_float("DISCONNECT_GRACE_SECONDS", 30.0),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
