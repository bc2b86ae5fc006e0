"""
Prometheus metrics collection and HTTP exposition.

Module-level metric objects are process-wide singletons shared by every
pool and service. Recording is gated by
[MetricsConfig.enabled][dvmkit.core.metrics.MetricsConfig] at each call
site, so a disabled configuration touches no metric at all.

Architecture:
    SERVICE_INFO:                       Static metadata set once at startup.
    SERVICE_GAUGE:                      Point-in-time values (current state).
    SERVICE_COUNTER:                    Cumulative totals.
    CYCLE_DURATION_SECONDS:             Histogram of service cycle latency.
    RELAY_OPERATIONS_TOTAL:             Per-relay query/publish outcomes.
    RELAY_OPERATION_DURATION_SECONDS:   Fan-out latency per operation.

The optional [MetricsServer][dvmkit.core.metrics.MetricsServer] exposes
``/metrics`` over aiohttp for scraping.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Metrics collection and exposition settings.

    ``enabled`` gates recording. The HTTP endpoint is only started by
    [MetricsServer.start()][dvmkit.core.metrics.MetricsServer.start] when
    ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Service Metrics (auto-tracked by BaseService.run_forever)
# ---------------------------------------------------------------------------

SERVICE_INFO = Info(
    "dvmkit_service",
    "Service information and metadata",
)

CYCLE_DURATION_SECONDS = Histogram(
    "dvmkit_cycle_duration_seconds",
    "Duration of service cycle in seconds",
    ["service"],
    buckets=(0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120),
)

# Labels used by the job protocol:
#   gauge:   {service="job_protocol", name="jobs_tracked"}
#   counter: {service="job_protocol", name="jobs_resolved"}
SERVICE_GAUGE = Gauge(
    "dvmkit_service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "dvmkit_service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)


# ---------------------------------------------------------------------------
# Relay Pool Metrics
# ---------------------------------------------------------------------------

RELAY_OPERATIONS_TOTAL = Counter(
    "dvmkit_relay_operations_total",
    "Per-relay operation outcomes",
    ["relay", "operation", "outcome"],
)

RELAY_OPERATION_DURATION_SECONDS = Histogram(
    "dvmkit_relay_operation_duration_seconds",
    "Duration of fan-out relay operations in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... service runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start listening for scrape requests; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._config.host, self._config.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner

    async def stop(self) -> None:
        """Stop the HTTP server. Idempotent."""
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )
