"""Philips Hue to Prometheus gateway."""

__version__ = "1.0.0"
