"""Logging setup for hueprom.

Every line is a single JSON object.  ``extra=`` fields are kept under
``extra``; sensor observations and other msgspec Structs passed there are
encoded as objects, anything msgspec cannot encode falls back to ``str()``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any

import msgspec

from .settings import RuntimeConfig

SYSLOG_SOCKET = Path("/dev/log")
SYSLOG_SOCKET_FALLBACK = Path("/var/run/log")

# Chatty third-party loggers kept at WARNING unless debug logging is on.
QUIET_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.internal")

_RESERVED_LOG_KEYS = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
}


def _encode_fallback(value: Any) -> str:
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Emit one JSON object per record, logger names relative to ``hueprom``."""

    PREFIX = "hueprom."

    def __init__(self) -> None:
        super().__init__()
        self._encoder = msgspec.json.Encoder(enc_hook=_encode_fallback)

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc),
            "level": record.levelname,
            "logger": record.name.removeprefix(self.PREFIX),
            "message": record.getMessage(),
        }

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_KEYS and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return self._encoder.encode(payload).decode("utf-8")


def _syslog_address() -> Path | None:
    for candidate in (SYSLOG_SOCKET, SYSLOG_SOCKET_FALLBACK):
        if candidate.exists():
            return candidate
    return None


def _build_handler(use_syslog: bool = False) -> Handler:
    if not use_syslog or os.environ.get("HUEPROM_LOG_STREAM"):
        return logging.StreamHandler()

    address = _syslog_address()
    if address is None:
        return logging.StreamHandler()
    handler = SysLogHandler(address=str(address), facility=SysLogHandler.LOG_DAEMON)
    handler.ident = "hueprom "
    return handler


def configure_logging(config: RuntimeConfig) -> None:
    """Install the JSON handler on the root logger."""
    level_name = "DEBUG" if config.debug_logging else "INFO"
    quiet_level = level_name if config.debug_logging else "WARNING"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": StructuredLogFormatter,
                }
            },
            "handlers": {
                "hueprom": {
                    "()": _build_handler,
                    "use_syslog": config.log_syslog,
                    "level": level_name,
                    "formatter": "structured",
                }
            },
            "loggers": {name: {"level": quiet_level} for name in QUIET_LOGGERS},
            "root": {
                "level": level_name,
                "handlers": ["hueprom"],
            },
        }
    )

    logging.getLogger("hueprom").info(
        "Logging configured at level %s",
        level_name,
        extra={"syslog": config.log_syslog},
    )
