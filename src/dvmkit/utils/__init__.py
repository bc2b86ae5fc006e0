"""Relay transport and Nostr key helpers.

The utils layer depends only on [dvmkit.models][dvmkit.models] and the
exception types of [dvmkit.core.exceptions][dvmkit.core.exceptions].

Attributes:
    keys: Key parsing (hex or ``nsec1`` bech32), generation and loading
        from environment variables, over nostr-sdk ``Keys``.
    transport: The [RelayTransport][dvmkit.utils.transport.RelayTransport]
        protocol and its implementation over a single-relay nostr-sdk ``Client``.

Examples:
    ```python
    from dvmkit.utils.keys import load_keys_from_env
    from dvmkit.utils.transport import ClientTransport
    ```
"""
