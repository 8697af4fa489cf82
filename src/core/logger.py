import json
import logging
import sys
from enum import Enum
from typing import Any
from uuid import UUID

import httpx
from fastapi import status
from loguru import logger

from src.config.settings import settings


def _sanitize_value(val: Any) -> Any:
    """Recursively flattens context values into JSON-friendly primitives.

    UUIDs and enums are rendered as their string values so actor and record
    identifiers stay searchable in Seq; objects falling back to the default
    ``object.__repr__`` lose their memory address.
    """
    if isinstance(val, dict):
        return {k: _sanitize_value(v) for k, v in val.items()}
    if isinstance(val, list | tuple | set | frozenset):
        return [_sanitize_value(v) for v in val]
    if isinstance(val, UUID):
        return str(val)
    if isinstance(val, Enum):
        return val.value

    val_repr = repr(val)
    if "<" in val_repr and " at 0x" in val_repr:
        return f"[{val.__class__.__module__}.{val.__class__.__name__}]"

    return val


def log_patcher(record: dict[str, Any]) -> None:
    """Sanitizes the bound ``extra`` context before the record reaches any sink."""
    if "extra" in record:
        record["extra"] = _sanitize_value(record["extra"])


class InterceptHandler(logging.Handler):
    """Routes standard library logging records into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class SeqSink:
    """Synchronous sink posting serialized Loguru records to a Seq server."""

    def __init__(self, server_url: str, api_key: str | None = None):
        self.server_url = f"{server_url.rstrip('/')}/api/events/raw"
        self.api_key = api_key
        self.client = httpx.Client(timeout=4.0)

    def build_event(self, message: str) -> dict[str, Any]:
        """Maps a serialized Loguru record onto a Seq raw event."""
        record = json.loads(message)["record"]

        event = {
            "Timestamp": record["time"]["repr"],
            "Level": record["level"]["name"],
            "MessageTemplate": record["message"],
            "Properties": {
                **record["extra"],
                "Service": settings.APP_NAME,
                "Function": record["function"],
                "Module": record["module"],
                "Line": record["line"],
            },
        }
        if record.get("exception"):
            event["Exception"] = record["exception"]["text"]
        return event

    def write(self, message: str) -> None:
        try:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["X-Seq-ApiKey"] = self.api_key

            resp = self.client.post(self.server_url, json={"Events": [self.build_event(message)]}, headers=headers)

            if resp.status_code >= status.HTTP_400_BAD_REQUEST:
                sys.stderr.write(f"Seq API Error {resp.status_code}: {resp.text}\n")
        except Exception as e:
            # A sink must never raise back into the logging call site.
            sys.stderr.write(f"Failed to send log to Seq: {e}\n")


def configure_logging() -> None:
    """Configures Loguru sinks and captures stdlib loggers used by the stack."""
    logger.remove()
    logger.configure(patcher=log_patcher, extra={"request_id": "-"})

    logger.add(
        sys.stderr,
        level="DEBUG" if settings.DEBUG else "INFO",
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "<yellow>{extra[request_id]}</yellow> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>"
        " - <level>{message}</level>",
    )

    if settings.SEQ_URL:
        logger.add(
            SeqSink(settings.SEQ_URL, api_key=settings.SEQ_API_KEY),
            level="INFO",
            format="{message}",
            serialize=True,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for _log in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        _logger = logging.getLogger(_log)
        _logger.handlers = [InterceptHandler()]
        _logger.propagate = False

    # SQL echo is only wanted in debug mode; otherwise keep warnings and up
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
    for _lib in ("httpx", "httpcore"):
        logging.getLogger(_lib).setLevel(logging.WARNING)

    logger.info("Logging configured. Seq forwarding: {}", settings.SEQ_URL or "disabled")
