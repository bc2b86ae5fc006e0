"""
Abstract base class for long-running dvmkit services.

``BaseService[ConfigT]`` provides the lifecycle shared by every service:
structured logging via [Logger][dvmkit.core.logger.Logger], graceful
shutdown via ``asyncio.Event``, interval-based cycling with
[run_forever()][dvmkit.core.base_service.BaseService.run_forever],
consecutive failure limits, and Prometheus metrics exposed through
[MetricsServer][dvmkit.core.metrics.MetricsServer] while the service is
entered.

Services reach relays only through the
[RelayPool][dvmkit.core.relay_pool.RelayPool] handed to the constructor.
The service never owns the pool: the caller opens it before the service
and closes it after.

See Also:
    [RelayPool][dvmkit.core.relay_pool.RelayPool]: Relay client injected
        into every service.
    [BaseServiceConfig][dvmkit.core.base_service.BaseServiceConfig]: Base
        configuration model for all services.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from dvmkit.models.constants import ServiceName

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
)
from .relay_pool import RelayPool
from .yaml import load_yaml


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class BaseServiceConfig(BaseModel):
    """Base configuration shared by all services that run in a loop.

    Subclass this to add service-specific fields.

    Attributes:
        interval: Seconds between
            [run()][dvmkit.core.base_service.BaseService.run] cycles.
        max_consecutive_failures: Stop the loop after this many failed
            cycles in a row (``0`` = never stop).
        metrics: Prometheus recording and endpoint settings.
    """

    interval: float = Field(
        default=2.0,
        ge=0.05,
        le=3600.0,
        description="Seconds between run cycles",
    )
    max_consecutive_failures: int = Field(
        default=5,
        ge=0,
        description="Stop after this many consecutive errors (0 = unlimited)",
    )
    metrics: MetricsConfig = Field(
        default_factory=MetricsConfig,
        description="Prometheus metrics configuration",
    )


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Abstract base class for all dvmkit services.

    Subclasses set ``SERVICE_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][dvmkit.core.base_service.BaseService.run].

    Attributes:
        SERVICE_NAME: Identifier used as logger name and metrics label.
        CONFIG_CLASS: Pydantic model used by the factory methods.
        _pool: [RelayPool][dvmkit.core.relay_pool.RelayPool] for all relay
            traffic.
        _config: Typed service configuration.
        _logger: [Logger][dvmkit.core.logger.Logger] named after the service.
        _shutdown_event: Clear while running, set once shutdown is requested.

    Note:
        Lifecycle: ``async with pool:`` then ``async with service:`` then
        [run_forever()][dvmkit.core.base_service.BaseService.run_forever].
        Service methods may also be called directly without entering the
        context.
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, pool: RelayPool, config: ConfigT | None = None) -> None:
        self._pool = pool
        self._config: ConfigT = (
            config if config is not None else cast("ConfigT", self.CONFIG_CLASS())
        )
        self._logger = Logger(self.SERVICE_NAME)
        self._shutdown_event = asyncio.Event()
        self._metrics_server = MetricsServer(self._config.metrics)

    @property
    def config(self) -> ConfigT:
        """The typed service configuration (read-only)."""
        return self._config

    @property
    def pool(self) -> RelayPool:
        return self._pool

    @abstractmethod
    async def run(self) -> None:
        """Execute one bounded cycle of the service's work."""
        ...

    def request_shutdown(self) -> None:
        """Request a graceful shutdown; the loop exits at its next wait."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Whether the service is still active (shutdown not yet requested)."""
        return not self._shutdown_event.is_set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Wait for a shutdown signal or for *timeout* seconds.

        Returns ``True`` if shutdown was requested during the wait. Use this
        instead of ``asyncio.sleep()`` so shutdown interrupts the sleep.
        """
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except TimeoutError:
            return False

    async def run_forever(self) -> None:
        """Call [run()][dvmkit.core.base_service.BaseService.run] every ``interval`` seconds.

        Exits on
        [request_shutdown()][dvmkit.core.base_service.BaseService.request_shutdown]
        or after ``max_consecutive_failures`` failed cycles in a row. Any
        exception raised by a cycle counts as a failure, except
        ``CancelledError``, ``KeyboardInterrupt`` and ``SystemExit``, which
        always propagate.

        Metrics: ``cycles_success``, ``cycles_failed``, ``errors_<Type>``
        counters, ``consecutive_failures`` and ``last_cycle_timestamp``
        gauges, and the cycle duration histogram.
        """
        interval = self._config.interval
        max_consecutive_failures = self._config.max_consecutive_failures
        metrics_enabled = self._config.metrics.enabled

        if metrics_enabled:
            SERVICE_INFO.info({"service": self.SERVICE_NAME})

        self._logger.info(
            "run_forever_started",
            interval=interval,
            max_consecutive_failures=max_consecutive_failures,
        )

        consecutive_failures = 0

        while self.is_running:
            cycle_start = time.monotonic()

            try:
                await self.run()
            except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
                raise
            except Exception as e:  # noqa: BLE001
                consecutive_failures += 1

                self.inc_counter("cycles_failed")
                self.set_gauge("consecutive_failures", consecutive_failures)
                self.inc_counter(f"errors_{type(e).__name__}")

                self._logger.error(
                    "run_cycle_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    consecutive_failures=consecutive_failures,
                )

                if 0 < max_consecutive_failures <= consecutive_failures:
                    self._logger.critical(
                        "max_consecutive_failures_reached",
                        failures=consecutive_failures,
                        limit=max_consecutive_failures,
                    )
                    break
            else:
                self.inc_counter("cycles_success")
                if metrics_enabled:
                    CYCLE_DURATION_SECONDS.labels(service=self.SERVICE_NAME).observe(
                        time.monotonic() - cycle_start
                    )
                self.set_gauge("last_cycle_timestamp", time.time())
                self.set_gauge("consecutive_failures", 0)
                consecutive_failures = 0
                self._logger.debug("cycle_completed", next_cycle_s=interval)

            if await self.wait(interval):
                break

        self._logger.info("run_forever_stopped")

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str, pool: RelayPool, **kwargs: Any) -> Self:
        """Create a service from a YAML file (see [load_yaml()][dvmkit.core.yaml.load_yaml])."""
        return cls.from_dict(load_yaml(config_path), pool=pool, **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], pool: RelayPool, **kwargs: Any) -> Self:
        """Create a service from a dictionary parsed into ``CONFIG_CLASS``."""
        config = cast("ConfigT", cls.CONFIG_CLASS(**data))
        return cls(pool=pool, config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        """Mark the service as running and start the metrics endpoint if enabled."""
        self._shutdown_event.clear()
        await self._metrics_server.start()
        self._logger.info("service_started", relays=len(self._pool.relays))
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._shutdown_event.set()
        await self._metrics_server.stop()
        self._logger.info("service_stopped")

    # -------------------------------------------------------------------------
    # Custom Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        """Set the ``SERVICE_GAUGE`` labelled *name* for this service. No-op if metrics are disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Increment the ``SERVICE_COUNTER`` labelled *name* for this service.

        Counters persist across cycles. No-op if metrics are disabled.
        """
        if not self._config.metrics.enabled:
            return
        SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)
