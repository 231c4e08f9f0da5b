"""Background polling of the bridge."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from .bridge.errors import BridgeError
from .bridge.records import LightRecord, SensorRecord
from .engine import LightProjector, SensorDiffEngine
from .metrics import GatewayMetrics

logger = logging.getLogger("hueprom.poller")

# Failures of one category that are reported and retried on the next tick.
RECOVERABLE_ERRORS: tuple[type[BaseException], ...] = (
    BridgeError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ValueError,
)


class BridgeClient(Protocol):
    async def fetch_lights(self) -> list[LightRecord]: ...

    async def fetch_sensors(self) -> list[SensorRecord]: ...


class Poller:
    """Drive the light projector and the sensor diff engine at a fixed cadence.

    Only one poller may run per :class:`SensorDiffEngine`.
    """

    def __init__(
        self,
        bridge: BridgeClient,
        lights: LightProjector,
        sensors: SensorDiffEngine,
        interval: float,
        *,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than zero")
        self._bridge = bridge
        self._lights = lights
        self._sensors = sensors
        self._interval = interval
        self._metrics = metrics

    async def scan_lights(self) -> None:
        records = await self._bridge.fetch_lights()
        self._lights.project(records)

    async def scan_sensors(self) -> None:
        records = await self._bridge.fetch_sensors()
        # Synchronous: a cycle's diff is never interleaved with other tasks.
        self._sensors.apply(records)

    async def poll_once(self) -> bool:
        """Run one cycle; return True when both categories succeeded."""
        ok = True
        for category, scan in (("lights", self.scan_lights), ("sensors", self.scan_sensors)):
            try:
                await scan()
            except RECOVERABLE_ERRORS as exc:
                ok = False
                logger.error("Polling %s failed: %s", category, exc, extra={"category": category})
                if self._metrics is not None:
                    self._metrics.poll_errors.labels(category).inc()
        if self._metrics is not None:
            self._metrics.poll_cycles.inc()
        return ok

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Poll until *stop* is set or the task is cancelled."""
        stop = stop or asyncio.Event()
        logger.info("Polling bridge every %.3fs", self._interval)
        try:
            while True:
                await self.poll_once()
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    continue
                logger.info("Poller stopped.")
                return
        except asyncio.CancelledError:
            logger.info("Poller cancelled.")
            raise


__all__ = ["BridgeClient", "Poller", "RECOVERABLE_ERRORS"]
