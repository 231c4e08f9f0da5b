"""Shared constants for the hueprom gateway."""

from __future__ import annotations

from typing import Final

# Bridge wire format
TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%S"
# Zero-padded width of TIMESTAMP_FORMAT, e.g. "2024-01-01T12:00:00".
TIMESTAMP_LENGTH: Final[int] = 19
TIMESTAMP_NONE: Final[str] = "none"
BUTTON_FLAG_LONG: Final[int] = 0x1
BUTTON_FLAG_RELEASED: Final[int] = 0x2
BUTTON_FLAGS_MASK: Final[int] = BUTTON_FLAG_LONG | BUTTON_FLAG_RELEASED
SENSOR_IDENTITY_FALLBACK_PREFIX: Final[str] = "sensor:"

# Exported metric names
METRIC_LIGHT_ON: Final[str] = "hue_light_on"
METRIC_LIGHT_REACHABLE: Final[str] = "hue_light_reachable"
METRIC_SENSOR_LASTUPDATED: Final[str] = "hue_sensor_lastupdated"
METRIC_SENSOR_BUTTONEVENT: Final[str] = "hue_sensor_buttonevent"
METRIC_SENSOR_ON: Final[str] = "hue_sensor_on"
METRIC_SENSOR_REACHABLE: Final[str] = "hue_sensor_reachable"
METRIC_SENSOR_BUTTON_RELEASED: Final[str] = "hue_sensor_button_released"

SENSOR_GAUGES: Final[tuple[str, ...]] = (
    METRIC_SENSOR_LASTUPDATED,
    METRIC_SENSOR_BUTTONEVENT,
    METRIC_SENSOR_ON,
    METRIC_SENSOR_REACHABLE,
)

LABEL_NAME: Final[str] = "name"
LABEL_UNIQUEID: Final[str] = "uniqueid"
LABEL_BUTTON: Final[str] = "button"

# Defaults
DEFAULT_PORT: Final[int] = 7362
DEFAULT_LISTEN_HOST: Final[str] = ""
DEFAULT_POLL_INTERVAL: Final[float] = 0.1
DEFAULT_REQUEST_TIMEOUT: Final[float] = 5.0
DEFAULT_DEBUG_LOGGING: Final[bool] = False
DEFAULT_LOG_SYSLOG: Final[bool] = False
DEFAULT_DISCOVERY_URL: Final[str] = "https://discovery.meethue.com/"
DEFAULT_DEVICE_TYPE: Final[str] = "hueprom#python"

# Supervisor
SUPERVISOR_DEFAULT_MIN_BACKOFF: Final[float] = 0.5
SUPERVISOR_DEFAULT_MAX_BACKOFF: Final[float] = 30.0
SUPERVISOR_DEFAULT_RESTART_INTERVAL: Final[float] = 10.0
SUPERVISOR_EXPORTER_MAX_RESTARTS: Final[int] = 5
