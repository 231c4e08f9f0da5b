"""Async HTTP client for the Philips Hue bridge REST API (v1)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, cast

import aiohttp
import msgspec

from ..config.settings import RuntimeConfig
from .errors import BridgeApiError, BridgeError
from .records import LightRecord, SensorRecord, decode_resource, raise_for_api_error

logger = logging.getLogger("hueprom.bridge")

RESOURCES = ("lights", "sensors")


async def _read_json(response: aiohttp.ClientResponse) -> Any:
    if response.status != 200:
        raise BridgeError(f"{response.method} {response.url} returned HTTP {response.status}")
    body = await response.read()
    try:
        return msgspec.json.decode(body)
    except msgspec.DecodeError as exc:
        raise BridgeError(f"invalid JSON from {response.url}: {exc}") from exc


async def discover_bridge(
    session: aiohttp.ClientSession,
    url: str,
    *,
    timeout: float,
) -> str:
    """Return the LAN address of the first bridge known to the discovery service."""
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            payload = await _read_json(response)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise BridgeError(f"bridge discovery failed: {exc}") from exc

    if isinstance(payload, list):
        for entry in cast(list[Any], payload):
            if isinstance(entry, dict) and entry.get("internalipaddress"):
                logger.info(
                    "Discovered bridge",
                    extra={"bridge_id": entry.get("id"), "host": entry["internalipaddress"]},
                )
                return str(entry["internalipaddress"])
    raise BridgeError("no Hue bridge found on the network")


class HueBridge:
    """Bridge Client: fetches full lights and sensors state from one bridge."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        host: str,
        user: str | None = None,
        *,
        timeout: float = 5.0,
    ) -> None:
        self._session = session
        self.host = host
        self.user = user
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def base_url(self) -> str:
        host = self.host
        if not host.startswith(("http://", "https://")):
            host = f"http://{host}"
        return f"{host.rstrip('/')}/api"

    def _resource_url(self, resource: str) -> str:
        if not self.user:
            raise BridgeError("no Hue username configured")
        return f"{self.base_url}/{self.user}/{resource}"

    async def _request(self, method: str, url: str, *, json: Any = None) -> Any:
        try:
            async with self._session.request(method, url, json=json, timeout=self._timeout) as response:
                return await _read_json(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise BridgeError(f"{method} {url} failed: {exc!r}") from exc

    async def raw(self, resource: str) -> Any:
        """Return the undecoded JSON of *resource* (``lights`` or ``sensors``)."""
        if resource not in RESOURCES:
            raise ValueError(f"unknown resource {resource!r}")
        payload = await self._request("GET", self._resource_url(resource))
        raise_for_api_error(payload)
        return payload

    async def fetch_lights(self) -> list[LightRecord]:
        return decode_resource(await self.raw("lights"), LightRecord)

    async def fetch_sensors(self) -> list[SensorRecord]:
        return decode_resource(await self.raw("sensors"), SensorRecord)

    async def create_user(self, device_type: str) -> str:
        """Register a new API user; the bridge link button must be pressed first."""
        payload = await self._request("POST", self.base_url, json={"devicetype": device_type})
        raise_for_api_error(payload)
        if isinstance(payload, list):
            for item in cast(list[Any], payload):
                success = item.get("success") if isinstance(item, dict) else None
                if isinstance(success, dict) and success.get("username"):
                    return str(success["username"])
        raise BridgeApiError(-1, "/", f"unexpected create-user response: {payload!r}")


@asynccontextmanager
async def connect(config: RuntimeConfig) -> AsyncIterator[HueBridge]:
    """Open an HTTP session and yield a :class:`HueBridge` for the configured bridge."""
    async with aiohttp.ClientSession() as session:
        host = config.bridge_host
        if not host:
            host = await discover_bridge(session, config.discovery_url, timeout=config.request_timeout)
        logger.info("Bridge host: %s", host)
        yield HueBridge(session, host, config.user, timeout=config.request_timeout)


__all__ = ["HueBridge", "connect", "discover_bridge"]
