import logging
import sys
from typing import Optional

from fastapi import WebSocket
from pydantic import ValidationError

from .constants import MAX_CLOSE_REASON_BYTES

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", name: str = "pubrelay") -> logging.Logger:
    """Attach a single stdout handler to the package logger.

    Child loggers (``pubrelay.main``, ``pubrelay.coordinator`` ...) inherit it,
    so only the root package logger is configured.
    """
    package_logger = logging.getLogger(name)
    package_logger.setLevel(level.upper())
    package_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    return package_logger


def describe_client(websocket: WebSocket) -> str:
    client = websocket.client
    if client is None:
        return "unknown"
    return f"{client.host}:{client.port}"


def user_agent(websocket: WebSocket) -> str:
    return websocket.headers.get("user-agent", "Unknown browser")


async def close_socket(websocket: WebSocket, code: int, reason: Optional[str] = None) -> None:
    # the peer may already be gone; nothing left to tell it then
    try:
        await websocket.close(code=code, reason=truncate_reason(reason) if reason else reason)
    except Exception as e:
        logger.info("Could not send close frame: %s", e)


def describe_validation_error(error: ValidationError) -> str:
    """Short one-line summary of a pydantic error, suitable for a close reason."""
    parts = []
    for err in error.errors():
        if err["type"] == "json_invalid":
            parts.append(str(err.get("ctx", {}).get("error", err["msg"])))
        elif err["loc"]:
            parts.append(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
        else:
            parts.append(err["msg"])
    return "; ".join(parts)


def truncate_reason(reason: str, limit: int = MAX_CLOSE_REASON_BYTES) -> str:
    encoded = reason.encode()
    if len(encoded) <= limit:
        return reason
    return encoded[:limit].decode(errors="ignore")
