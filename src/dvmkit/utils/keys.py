"""Nostr key management utilities.

Thin helpers over ``nostr_sdk.Keys``: parsing a private key (nsec1 bech32 or
64-char hex), loading one from an environment variable, and generating the
ephemeral keypairs used for individual job requests.

Warning:
    Private keys must **never** be stored in configuration files, source code,
    or logged to any output. Configuration only ever names the environment
    variable that holds a key.

Examples:
    ```python
    import os

    os.environ["DVMKIT_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("DVMKIT_PRIVATE_KEY")
    keys.public_key().to_hex()
    ```
"""

from __future__ import annotations

import os

from nostr_sdk import Keys, NostrSdkError

from dvmkit.core.exceptions import ConfigurationError, SigningError


ENV_PRIVATE_KEY = "DVMKIT_PRIVATE_KEY"  # pragma: allowlist secret


def parse_keys(value: str) -> Keys:
    """Parse a private key into a ``Keys`` pair.

    Raises:
        SigningError: If *value* is not a valid secp256k1 private key.
    """
    try:
        return Keys.parse(value)
    except (NostrSdkError, ValueError, TypeError) as e:
        raise SigningError(f"invalid private key: {e}") from e


def generate_keys() -> Keys:
    """Generate a fresh random keypair (used for ephemeral job identities)."""
    return Keys.generate()


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable containing the private key.

    Raises:
        ConfigurationError: If the variable is unset or empty.
        SigningError: If the value is not a valid private key.

    Warning:
        The returned ``Keys`` object holds the private key in memory for the
        lifetime of the process. Do not serialize or log it.
    """
    value = os.getenv(env_var)
    if not value:
        raise ConfigurationError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )
    return parse_keys(value)


def public_key_hex(keys: Keys) -> str:
    """Return the x-only public key of *keys* as 64 lowercase hex chars."""
    return keys.public_key().to_hex()


def secret_key_hex(keys: Keys) -> str:
    """Return the private key of *keys* as 64 lowercase hex chars.

    Only for handing the key to a cipher. Never log the result.
    """
    return keys.secret_key().to_hex()
