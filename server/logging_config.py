"""
Structured logging for the Five Crowns server.

Production gets one JSON object per line; development gets colored,
human-readable lines. Both carry the connection, room and player a record
belongs to, so a single room's history can be pulled out of shared logs.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Set by the WebSocket endpoint for the lifetime of each connection
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)

CONTEXT_FIELDS = ("room_code", "player_id")

QUIET_LOGGERS = ("uvicorn.access", "uvicorn.error", "websockets", "asyncio")


def _record_context(record: logging.LogRecord) -> dict:
    """Connection id plus whichever room/player fields the record carries."""
    context = {}
    connection_id = connection_id_var.get()
    if connection_id:
        context["connection_id"] = connection_id
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value:
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }

        if record.levelno >= logging.ERROR:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output with short context tags."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    # Context key -> (tag, max chars shown)
    TAGS = {
        "connection_id": ("conn", 8),
        "room_code": ("room", None),
        "player_id": ("player", 8),
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        level = f"{color}{record.levelname:8}{self.RESET if color else ''}"
        stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        tags = []
        for key, value in _record_context(record).items():
            tag, width = self.TAGS[key]
            tags.append(f"{tag}={str(value)[:width]}")
        context = f" [{', '.join(tags)}]" if tags else ""

        line = f"{stamp} {level} {record.name}{context} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Install the root handler.

    Args:
        level: Root log level name; unknown names fall back to INFO.
        environment: "production" selects JSON output.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Adapter that stamps room_code/player_id onto every record.

        log = get_logger(__name__).with_context(room_code="ABCD")
        log.with_context(player_id=pid).info("went out")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))
