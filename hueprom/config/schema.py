"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

from typing import Any, Dict

from marshmallow import Schema, fields, post_load, pre_load, validate

from ..const import (
    DEFAULT_DEVICE_TYPE,
    DEFAULT_DISCOVERY_URL,
    DEFAULT_LISTEN_HOST,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
)
from .settings import RuntimeConfig


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for hueprom configuration."""

    # Bridge
    user = fields.Str(load_default=None, allow_none=True)
    bridge_host = fields.Str(load_default=None, allow_none=True)
    discovery_url = fields.Url(load_default=DEFAULT_DISCOVERY_URL, require_tld=False)
    request_timeout = fields.Float(load_default=DEFAULT_REQUEST_TIMEOUT, validate=validate.Range(min=0.1))
    device_type = fields.Str(load_default=DEFAULT_DEVICE_TYPE, validate=validate.Length(min=1, max=40))

    # Exporter
    listen_host = fields.Str(load_default=DEFAULT_LISTEN_HOST)
    port = fields.Int(load_default=DEFAULT_PORT, validate=validate.Range(min=0, max=65535))
    poll_interval = fields.Float(
        load_default=DEFAULT_POLL_INTERVAL,
        validate=validate.Range(min=0.0, min_inclusive=False),
    )

    # Logging
    debug_logging = fields.Bool(load_default=False)
    log_syslog = fields.Bool(load_default=False)

    @pre_load
    def strip_strings(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        cleaned = dict(data)
        for key in ("user", "bridge_host", "listen_host"):
            value = cleaned.get(key)
            if isinstance(value, str):
                value = value.strip()
                # An empty user or host means "not configured".
                cleaned[key] = value if value or key == "listen_host" else None
        return cleaned

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        return RuntimeConfig(**data)
