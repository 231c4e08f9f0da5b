"""Configuration helpers for the hueprom gateway."""

from . import logging, settings  # noqa: F401  # pyright: ignore[reportUnusedImport]
