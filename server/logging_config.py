"""
Logging setup for the Da Vinci Code server.

Every record carries the connection it came from: the WebSocket endpoint
sets user_id_var once a token checks out, and the dispatcher sets
room_id_var for the room a message targets. Both formatters pick those
up, along with `user_id`, `room_id` and `event` passed via `extra=`.

Production writes one JSON object per line; anything else gets a short
colored line for the terminal.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

user_id_var: ContextVar[Optional[int]] = ContextVar("user_id", default=None)
room_id_var: ContextVar[Optional[int]] = ContextVar("room_id", default=None)

CONTEXT_FIELDS = ("user_id", "room_id", "event")


def record_context(record: logging.LogRecord) -> dict:
    """Connection context for a record; `extra=` values win over the contextvars."""
    context = {"user_id": user_id_var.get(), "room_id": room_id_var.get()}
    for field in CONTEXT_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            context[field] = value
    return {k: v for k, v in context.items() if v is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
            entry["source"] = f"{record.pathname}:{record.lineno}"
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """`12:00:01.250 INFO     handlers [user=1 room=10] - message`"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        context = record_context(record)
        tags = " ".join(f"{k.replace('_id', '')}={v}" for k, v in context.items())
        tags = f" [{tags}]" if tags else ""

        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{tags} - {record.getMessage()}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Install the server's log handler on the root logger.

    Args:
        level: Log level name; unknown names fall back to INFO.
        environment: "production" selects JSON output.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "websockets", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")
