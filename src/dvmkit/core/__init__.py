"""Core layer: relay pool, service lifecycle, errors, logging, metrics and config.

Sits in the middle of the diamond DAG, next to
[dvmkit.nips][dvmkit.nips] and [dvmkit.utils][dvmkit.utils], and is
depended upon by [dvmkit.services][dvmkit.services].

Attributes:
    RelayPool: Fan-out query/publish over a fixed set of relay endpoints.
        See [RelayPool][dvmkit.core.relay_pool.RelayPool].
    BaseService: Abstract generic base class with lifecycle management
        ([run()][dvmkit.core.base_service.BaseService.run] /
        [run_forever()][dvmkit.core.base_service.BaseService.run_forever] /
        shutdown), factory methods and Prometheus metrics integration.
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][dvmkit.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][dvmkit.core.metrics.MetricsServer].
    YAML: Safe YAML loading with ``yaml.safe_load()``.
        See [load_yaml()][dvmkit.core.yaml.load_yaml].

Note:
    The relay pool and base service depend on [dvmkit.nips][dvmkit.nips],
    which itself imports the exceptions defined here, so they resolve
    lazily on first access.

Examples:
    ```python
    from dvmkit.core import RelayPool

    pool = RelayPool.from_yaml("config/relay_pool.yaml")
    async with pool:
        events = await pool.query(Filter(kinds={1}, limit=10))
    ```
"""

import importlib

from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    CryptoError,
    DecryptError,
    DvmKitError,
    EncryptError,
    JobError,
    JobFailedError,
    PublishError,
    RelayConnectionError,
    RelayRejectedError,
    RelayRequestError,
    RelayTimeoutError,
    RequestError,
    RequestTimeoutError,
    ResultDecryptError,
    SigningError,
    ValidationError,
    VerifyError,
)
from .logger import Logger, StructuredFormatter, configure_logging, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    RELAY_OPERATION_DURATION_SECONDS,
    RELAY_OPERATIONS_TOTAL,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "RELAY_OPERATIONS_TOTAL",
    "RELAY_OPERATION_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "CryptoError",
    "DecryptError",
    "DvmKitError",
    "EncryptError",
    "JobError",
    "JobFailedError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "PublishError",
    "RelayConnectionError",
    "RelayEndpoint",
    "RelayPool",
    "RelayPoolConfig",
    "RelayRejectedError",
    "RelayRequestError",
    "RelayTimeoutError",
    "RequestError",
    "RequestTimeoutError",
    "ResultDecryptError",
    "SigningError",
    "StructuredFormatter",
    "Subscription",
    "ValidationError",
    "VerifyError",
    "configure_logging",
    "format_kv_pairs",
    "load_yaml",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("dvmkit.core.base_service", "BaseService"),
    "BaseServiceConfig": ("dvmkit.core.base_service", "BaseServiceConfig"),
    "ConfigT": ("dvmkit.core.base_service", "ConfigT"),
    "RelayEndpoint": ("dvmkit.core.relay_pool", "RelayEndpoint"),
    "RelayPool": ("dvmkit.core.relay_pool", "RelayPool"),
    "RelayPoolConfig": ("dvmkit.core.relay_pool", "RelayPoolConfig"),
    "Subscription": ("dvmkit.core.relay_pool", "Subscription"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        value = getattr(importlib.import_module(module_path), attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'dvmkit.core' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
