r"""dvmkit -- Nostr relay pool and NIP-90 Data Vending Machine client.

Submit encrypted job requests to Data Vending Machines over a pool of Nostr
relays and collect their results, tolerating slow or failing relays.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Job protocol (customer side of NIP-90)
             /   |   \
          core  nips  utils    Relay pool, codec/crypto, transport/keys
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Events, tags, filters, relays and job values. Zero I/O.
    core: Relay pool, base service, exceptions, logging, metrics, YAML.
    nips: NIP-01 event codec, NIP-04 encryption, NIP-13 proof of work,
        NIP-90 job event builders and parsers.
    utils: nostr-sdk relay transport and Nostr key helpers.
    services: [JobProtocol][dvmkit.services.job_protocol.JobProtocol].

Note:
    Top-level imports (``from dvmkit import RelayPool``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("dvmkit")

__all__ = [
    "CryptoChannel",
    "Event",
    "Filter",
    "JobHandle",
    "JobInput",
    "JobProtocol",
    "JobProtocolConfig",
    "JobResult",
    "Logger",
    "PublishReport",
    "Relay",
    "RelayPool",
    "RelayPoolConfig",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("dvmkit.core", "Logger"),
    "RelayPool": ("dvmkit.core", "RelayPool"),
    "RelayPoolConfig": ("dvmkit.core", "RelayPoolConfig"),
    "Event": ("dvmkit.models", "Event"),
    "Filter": ("dvmkit.models", "Filter"),
    "JobInput": ("dvmkit.models", "JobInput"),
    "JobResult": ("dvmkit.models", "JobResult"),
    "PublishReport": ("dvmkit.models", "PublishReport"),
    "Relay": ("dvmkit.models", "Relay"),
    "CryptoChannel": ("dvmkit.nips", "CryptoChannel"),
    "JobHandle": ("dvmkit.services", "JobHandle"),
    "JobProtocol": ("dvmkit.services", "JobProtocol"),
    "JobProtocolConfig": ("dvmkit.services", "JobProtocolConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'dvmkit' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
