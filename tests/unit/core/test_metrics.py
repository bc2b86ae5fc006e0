"""
Unit tests for core.metrics module.

Tests:
- MetricsConfig defaults and validation
- MetricsServer start/stop lifecycle
- Metrics endpoint response format
- Module-level metric objects
"""

import pytest
from aiohttp import ClientSession
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info
from pydantic import ValidationError

from dvmkit.core.metrics import (
    CYCLE_DURATION_SECONDS,
    RELAY_OPERATION_DURATION_SECONDS,
    RELAY_OPERATIONS_TOTAL,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
)


# ============================================================================
# MetricsConfig Tests
# ============================================================================


class TestMetricsConfig:
    """Tests for MetricsConfig Pydantic model."""

    def test_defaults(self) -> None:
        """Metrics are disabled and bound to localhost by default."""
        config = MetricsConfig()

        assert config.enabled is False
        assert config.port == 8000
        assert config.host == "127.0.0.1"
        assert config.path == "/metrics"

    @pytest.mark.parametrize("port", [1023, 65536])
    def test_port_out_of_range(self, port: int) -> None:
        """Privileged and out-of-range ports are rejected."""
        with pytest.raises(ValidationError):
            MetricsConfig(port=port)


# ============================================================================
# MetricsServer Tests
# ============================================================================


class TestMetricsServerLifecycle:
    """Tests for MetricsServer start/stop."""

    @pytest.mark.asyncio
    async def test_start_disabled_is_noop(self) -> None:
        """Starting a server with metrics disabled binds nothing."""
        server = MetricsServer(MetricsConfig(enabled=False))
        await server.start()

        assert not server.is_running

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        """An enabled server runs until stopped; stop is idempotent."""
        server = MetricsServer(MetricsConfig(enabled=True, port=19886))
        await server.start()
        assert server.is_running

        await server.stop()
        await server.stop()
        assert not server.is_running

    @pytest.mark.asyncio
    async def test_stop_without_start_is_safe(self) -> None:
        """Stopping a server that never started does not raise."""
        await MetricsServer(MetricsConfig()).stop()


class TestMetricsServerEndpoint:
    """Tests for the scrape endpoint."""

    @pytest.mark.asyncio
    async def test_serves_prometheus_text(self) -> None:
        """GET on the configured path returns the exposition format."""
        config = MetricsConfig(enabled=True, port=19887, path="/custom/metrics")
        server = MetricsServer(config)
        await server.start()
        SERVICE_COUNTER.labels(service="test_endpoint", name="hits").inc()

        try:
            async with (
                ClientSession() as session,
                session.get(f"http://127.0.0.1:{config.port}{config.path}") as resp,
            ):
                body = await resp.text()
                assert resp.status == 200
                assert resp.headers["Content-Type"] == CONTENT_TYPE_LATEST
        finally:
            await server.stop()

        assert "dvmkit_service_counter" in body
        assert 'service="test_endpoint"' in body


# ============================================================================
# Metric Object Tests
# ============================================================================


class TestMetricObjects:
    """The module exposes the expected collector types."""

    @pytest.mark.parametrize(
        ("metric", "kind"),
        [
            (SERVICE_INFO, Info),
            (SERVICE_GAUGE, Gauge),
            (SERVICE_COUNTER, Counter),
            (CYCLE_DURATION_SECONDS, Histogram),
            (RELAY_OPERATIONS_TOTAL, Counter),
            (RELAY_OPERATION_DURATION_SECONDS, Histogram),
        ],
    )
    def test_types(self, metric, kind) -> None:
        assert isinstance(metric, kind)

    def test_relay_operation_labels(self) -> None:
        """Relay operations are labelled by relay, operation and outcome."""
        child = RELAY_OPERATIONS_TOTAL.labels(
            relay="wss://relay.example.com", operation="query", outcome="success"
        )
        before = child._value.get()
        child.inc()
        assert child._value.get() == before + 1
