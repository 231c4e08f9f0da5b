"""Async orchestrator for the hueprom gateway.

Architecture:
    serve() -> HuePromDaemon -> TaskGroup
        ├── poller (Poller.run)
        └── prometheus-exporter (PrometheusExporter.run)

Both tasks are supervised: a crash is logged, counted and the task is
restarted with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import msgspec
import tenacity
from prometheus_client import CollectorRegistry

from .bridge.client import connect
from .config.settings import RuntimeConfig
from .const import (
    SUPERVISOR_DEFAULT_MAX_BACKOFF,
    SUPERVISOR_DEFAULT_MIN_BACKOFF,
    SUPERVISOR_DEFAULT_RESTART_INTERVAL,
    SUPERVISOR_EXPORTER_MAX_RESTARTS,
)
from .engine import LightProjector, SensorDiffEngine
from .metrics import GatewayMetrics, PrometheusExporter
from .poller import BridgeClient, Poller
from .sink import PrometheusMetricSink

logger = logging.getLogger("hueprom")


class SupervisedTaskSpec(msgspec.Struct):
    """Specification for a supervised async task."""

    name: str
    factory: Callable[[], Awaitable[None]]
    fatal_exceptions: tuple[type[BaseException], ...] = ()
    max_restarts: int | None = None
    restart_interval: float = SUPERVISOR_DEFAULT_RESTART_INTERVAL
    min_backoff: float = SUPERVISOR_DEFAULT_MIN_BACKOFF
    max_backoff: float = SUPERVISOR_DEFAULT_MAX_BACKOFF


class HuePromDaemon:
    """Wire the bridge, the diff engine and the exporter together.

    Attributes:
        config: Runtime configuration.
        registry: Registry holding every exported metric of this process.
        sensors: The sensor diff engine (single instance per process).
        poller: Background driver of the light projector and diff engine.
        exporter: HTTP endpoint serving ``registry``.
    """

    def __init__(
        self,
        config: RuntimeConfig,
        bridge: BridgeClient,
        *,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else CollectorRegistry()
        self.metrics = GatewayMetrics(self.registry)
        sink = PrometheusMetricSink(self.registry)
        self.sensors = SensorDiffEngine(sink)
        self.poller = Poller(
            bridge,
            LightProjector(sink),
            self.sensors,
            config.poll_interval,
            metrics=self.metrics,
        )
        self.exporter = PrometheusExporter(
            self.registry,
            config.listen_host,
            config.port,
            sensors=self.sensors.observed,
        )

    def _setup_supervision(self) -> list[SupervisedTaskSpec]:
        return [
            SupervisedTaskSpec(
                name="poller",
                factory=self.poller.run,
            ),
            SupervisedTaskSpec(
                name="prometheus-exporter",
                factory=self.exporter.run,
                fatal_exceptions=(PermissionError,),
                max_restarts=SUPERVISOR_EXPORTER_MAX_RESTARTS,
            ),
        ]

    async def _supervise_task(self, spec: SupervisedTaskSpec) -> None:
        """Run ``spec.factory`` restarting it on failures using tenacity."""
        log = logging.getLogger("hueprom.supervisor")
        callbacks = self._SupervisorCallbacks(spec.name, log, self.metrics)

        retryer = tenacity.AsyncRetrying(
            wait=tenacity.wait_exponential(multiplier=spec.min_backoff, max=spec.max_backoff),
            retry=tenacity.retry_if_not_exception_type(
                (asyncio.CancelledError, SystemExit, KeyboardInterrupt, GeneratorExit) + spec.fatal_exceptions
            ),
            stop=(
                tenacity.stop_after_attempt(spec.max_restarts + 1)
                if spec.max_restarts is not None
                else tenacity.stop_never
            ),
            before_sleep=callbacks.before_sleep,
            after=callbacks.after_retry,
            reraise=True,
        )

        last_start_time = 0.0

        try:
            while True:
                try:
                    async for attempt in retryer:
                        with attempt:
                            last_start_time = time.monotonic()
                            await spec.factory()
                            log.warning("%s task exited cleanly; supervisor exiting", spec.name)
                            return
                except spec.fatal_exceptions as exc:
                    log.critical("%s failed with fatal exception: %s", spec.name, exc)
                    raise
                except Exception:
                    # A task that ran long enough before failing starts over with a fresh backoff.
                    if last_start_time > 0 and (time.monotonic() - last_start_time) > spec.restart_interval:
                        log.info("%s was healthy long enough; resetting backoff", spec.name)
                        continue
                    log.error("%s exceeded max restarts (%s); giving up", spec.name, spec.max_restarts)
                    raise
        except asyncio.CancelledError:
            log.debug("%s supervisor cancelled", spec.name)
            raise

    class _SupervisorCallbacks:
        """Helper to avoid nested functions in supervisor."""

        __slots__ = ("name", "log", "metrics")

        def __init__(self, name: str, log: logging.Logger, metrics: GatewayMetrics | None):
            self.name = name
            self.log = log
            self.metrics = metrics

        def before_sleep(self, retry_state: tenacity.RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            self.log.error("%s failed (%s); restarting in %.1fs", self.name, exc, delay)

        def after_retry(self, retry_state: tenacity.RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            if self.metrics is not None and exc is not None:
                self.metrics.supervisor_restarts.labels(self.name).inc()

    async def run(self) -> None:
        """Main async entry point."""
        supervised_tasks = self._setup_supervision()
        try:
            async with asyncio.TaskGroup() as task_group:
                for spec in supervised_tasks:
                    task_group.create_task(self._supervise_task(spec))
        except* asyncio.CancelledError:
            logger.info("Main task cancelled; shutting down.")
        except* Exception as exc_group:
            for group_exc in exc_group.exceptions:
                logger.critical(
                    "Unhandled exception in main task group: %s",
                    group_exc,
                    exc_info=group_exc,
                )
            raise
        finally:
            logger.info("hueprom daemon stopped.")


async def serve(config: RuntimeConfig) -> None:
    """Connect to the bridge and run the daemon until cancelled."""
    config.require_user()
    async with connect(config) as bridge:
        daemon = HuePromDaemon(config, bridge)
        logger.info(
            "Listening on http://%s:%d",
            config.listen_host or "0.0.0.0",
            config.port,
        )
        await daemon.run()


__all__ = ["HuePromDaemon", "SupervisedTaskSpec", "serve"]
