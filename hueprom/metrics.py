"""Prometheus exporter and gateway self-metrics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, cast

import msgspec
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest

logger = logging.getLogger("hueprom.metrics")

_INDEX_HTML = b"""<html><body>
Philips Hue to Prometheus exporter.
<a href="/metrics">Metrics</a>
</body></html>
"""

SensorSnapshot = Callable[[], Mapping[str, Any]]


class GatewayMetrics:
    """Counters describing the gateway itself."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.poll_cycles = Counter(
            "hueprom_poll_cycles",
            "Number of completed bridge poll cycles.",
            registry=registry,
        )
        self.poll_errors = Counter(
            "hueprom_poll_errors",
            "Number of failed polls, per device category.",
            ("category",),
            registry=registry,
        )
        self.supervisor_restarts = Counter(
            "hueprom_supervisor_restarts",
            "Number of restarts of a supervised task.",
            ("task",),
            registry=registry,
        )


class PrometheusExporter:
    """Serve the registry in the Prometheus text format, plus a home page."""

    def __init__(
        self,
        registry: CollectorRegistry,
        host: str,
        port: int,
        *,
        sensors: SensorSnapshot | None = None,
    ) -> None:
        self._registry = registry
        self._host = host
        self._port = port
        self._sensors = sensors
        self._server: asyncio.AbstractServer | None = None
        self._resolved_port: int | None = None

    @property
    def port(self) -> int:
        return self._resolved_port or self._port

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._handle_client,
            host=self._host or None,
            port=self._port,
        )
        sockets = self._server.sockets or []
        if sockets:
            sockname = sockets[0].getsockname()
            if isinstance(sockname, tuple):
                typed_sockname = cast(tuple[object, ...], sockname)
                if len(typed_sockname) >= 2:
                    port_candidate = typed_sockname[1]
                    if isinstance(port_candidate, int):
                        self._resolved_port = port_candidate
        logger.info(
            "Prometheus exporter listening",
            extra={"host": self._host or "*", "port": self.port},
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Prometheus exporter stopped")

    async def run(self) -> None:
        await self.start()
        assert self._server is not None
        try:
            await self._server.serve_forever()
        finally:
            await self.stop()

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        try:
            request_line = await reader.readline()
            if not request_line:
                return
            parts = request_line.decode("ascii", errors="ignore").split()
            if len(parts) < 2:
                await self._write_response(writer, 400, b"")
                return
            method, path = parts[0], parts[1].split("?", 1)[0]
            logger.debug("Request method=%s, url=%s", method, parts[1])
            while True:
                line = await reader.readline()
                if not line or line in {b"\r\n", b"\n"}:
                    break
            if method != "GET":
                await self._write_response(writer, 404, b"")
                return
            if path == "/metrics":
                await self._write_response(writer, 200, self._render_metrics(), content_type=CONTENT_TYPE_LATEST)
            elif path == "/":
                await self._write_response(writer, 200, _INDEX_HTML, content_type="text/html; charset=utf-8")
            elif path == "/debug/sensors" and self._sensors is not None:
                await self._write_response(
                    writer, 200, self._render_sensors(), content_type="application/json"
                )
            else:
                await self._write_response(writer, 404, b"")
        except asyncio.CancelledError:
            raise
        except (OSError, ValueError, IndexError) as e:
            logger.warning("Exporter client request error: %s", e)
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except (OSError, ValueError, RuntimeError):
                logger.debug("Error closing exporter client connection", exc_info=True)

    async def _write_response(
        self,
        writer: asyncio.StreamWriter,
        status: int,
        body: bytes,
        *,
        content_type: str = "text/plain; charset=utf-8",
    ) -> None:
        phrases = {
            200: "OK",
            400: "Bad Request",
            404: "Not Found",
        }
        status_line = f"HTTP/1.1 {status} {phrases.get(status, 'Error')}\r\n"
        headers = f"Content-Type: {content_type}\r\n" f"Content-Length: {len(body)}\r\n" "Connection: close\r\n\r\n"
        writer.write(status_line.encode("ascii") + headers.encode("ascii") + body)
        await writer.drain()

    def _render_metrics(self) -> bytes:
        return generate_latest(self._registry)

    def _render_sensors(self) -> bytes:
        assert self._sensors is not None
        return msgspec.json.encode(dict(self._sensors()))


__all__ = ["GatewayMetrics", "PrometheusExporter"]
