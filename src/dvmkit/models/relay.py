"""
Validated Nostr relay URL.

Parses, normalizes and validates WebSocket relay URLs (``ws://`` or
``wss://``) with RFC 3986 rules. The scheme the caller chose is kept:
unlike a crawler, a job client talks to relays it was explicitly configured
with, including local development relays over plain ``ws://``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable, normalized relay URL.

    Attributes:
        url: Fully normalized URL including scheme.
        scheme: ``ws`` or ``wss``.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit non-default port, or ``None``.
        path: URL path component, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses another scheme, carries a
            query string or fragment, or contains null bytes.

    Examples:
        ```python
        Relay("WSS://Relay.Example.com:443/").url   # 'wss://relay.example.com'
        Relay("ws://localhost:7777").port           # 7777
        ```
    """

    raw_url: str = field(repr=False, compare=False)

    url: str = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise TypeError(f"raw_url must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        parsed = self._parse(self.raw_url)
        for name, value in parsed.items():
            object.__setattr__(self, name, value)

    @classmethod
    def _parse(cls, raw: str) -> dict[str, Any]:
        uri = uri_reference(raw.strip()).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )

        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme
        host = uri.host.strip("[]")
        if not host:
            raise ValueError("Relay URL has an empty host")
        port = int(uri.port) if uri.port else None
        if port == cls._DEFAULT_PORTS[scheme]:
            port = None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        formatted_host = f"[{host}]" if ":" in host else host
        netloc = f"{formatted_host}:{port}" if port else formatted_host

        return {
            "url": f"{scheme}://{netloc}{path or ''}",
            "scheme": scheme,
            "host": host,
            "port": port,
            "path": path,
        }

    def __str__(self) -> str:
        return self.url
