"""Settings loader for the hueprom gateway.

Configuration is assembled from command-line flags into a raw mapping, then
validated by :class:`~hueprom.config.schema.RuntimeConfigSchema`.  Keys the
schema does not know about are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from marshmallow import EXCLUDE, ValidationError

from ..const import (
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_DEVICE_TYPE,
    DEFAULT_DISCOVERY_URL,
    DEFAULT_LISTEN_HOST,
    DEFAULT_LOG_SYSLOG,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RuntimeConfig:
    """Strongly typed configuration for the gateway."""

    user: str | None = None
    bridge_host: str | None = None
    discovery_url: str = DEFAULT_DISCOVERY_URL
    listen_host: str = DEFAULT_LISTEN_HOST
    port: int = DEFAULT_PORT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    log_syslog: bool = DEFAULT_LOG_SYSLOG
    device_type: str = DEFAULT_DEVICE_TYPE

    def require_user(self) -> str:
        if not self.user:
            raise ValueError("a Hue username is required (see the create-user command)")
        return self.user


def _clean_raw(raw: Mapping[str, Any]) -> dict[str, Any]:
    # Unset flags arrive as None; let the schema defaults apply instead.
    return {key: value for key, value in raw.items() if value is not None}


def load_runtime_config(raw: Mapping[str, Any]) -> RuntimeConfig:
    """Validate *raw* settings and build a :class:`RuntimeConfig`.

    Raises:
        ValueError: when a setting fails validation.
    """
    from .schema import RuntimeConfigSchema

    try:
        config = RuntimeConfigSchema(unknown=EXCLUDE).load(_clean_raw(raw))
    except ValidationError as exc:
        raise ValueError(f"invalid configuration: {exc.messages}") from exc

    if config.poll_interval < 0.05:
        logger.warning(
            "Poll interval %.3fs is very short; the bridge may throttle requests.",
            config.poll_interval,
        )
    return config


__all__ = ["RuntimeConfig", "load_runtime_config"]
