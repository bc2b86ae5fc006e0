"""dvmkit exception hierarchy.

Every error that leaves a public operation is a
[DvmKitError][dvmkit.core.exceptions.DvmKitError]. Foreign exceptions
(nostr-sdk, cryptography, aiohttp, json) are wrapped at the component
boundary so callers never need to know which library failed, while
``asyncio.CancelledError`` always propagates untouched.

Exception hierarchy:

```text
DvmKitError (base -- never raised directly)
├── ConfigurationError           -- config validation, bad YAML, missing keys
├── ValidationError              -- bad caller input, never reaches the network
├── ConnectivityError            -- relay unreachable, network failures
│   ├── RelayConnectionError     -- endpoint unreachable or closed (retryable)
│   ├── RelayTimeoutError        -- single endpoint did not answer in time
│   └── RequestTimeoutError      -- aggregate time budget exceeded (retryable)
├── RelayRejectedError           -- relay answered OK false to a published event
├── RelayRequestError            -- fan-out failure, carries per-relay causes
│   ├── RequestError             -- every endpoint failed a query
│   └── PublishError             -- publish below the success threshold
├── CryptoError                  -- key, signature or cipher failures
│   ├── SigningError
│   ├── VerifyError
│   ├── EncryptError
│   └── DecryptError
│       └── ResultDecryptError   -- result content could not be decrypted
└── JobError                     -- job protocol failures
    └── JobFailedError           -- provider answered with status "error"
```

See Also:
    [RelayPool][dvmkit.core.relay_pool.RelayPool]: Raises the connectivity
        and relay request errors.
    [JobProtocol][dvmkit.services.job_protocol.JobProtocol]: Raises
        validation, timeout and job errors.
    [BaseService][dvmkit.core.base_service.BaseService]: Counts any
        exception escaping a cycle of
        [run_forever()][dvmkit.core.base_service.BaseService.run_forever]
        as a failure.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from dvmkit.models.event import Event
    from dvmkit.models.job import JobResult, PublishReport


class DvmKitError(Exception):
    """Base exception for all dvmkit errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration and input
# ---------------------------------------------------------------------------


class ConfigurationError(DvmKitError):
    """Invalid or missing configuration (YAML, env vars, keys).

    See Also:
        [load_yaml()][dvmkit.core.yaml.load_yaml]: YAML loading function
            that may trigger configuration errors.
        [load_keys_from_env()][dvmkit.utils.keys.load_keys_from_env]: Key
            loading that raises this on a missing variable.
    """


class ValidationError(DvmKitError):
    """Caller input rejected before any network call was made.

    Raised for empty job inputs, negative bids, malformed public keys and
    out-of-range kinds. Never retryable: the input itself is wrong.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(DvmKitError):
    """Base for all relay/network connectivity errors.

    See Also:
        [RelayConnectionError][dvmkit.core.exceptions.RelayConnectionError]:
            Endpoint unreachable or closed.
        [RelayTimeoutError][dvmkit.core.exceptions.RelayTimeoutError]:
            A single endpoint did not answer in time.
        [RequestTimeoutError][dvmkit.core.exceptions.RequestTimeoutError]:
            An aggregate operation ran out of time.
    """


class RelayConnectionError(ConnectivityError):
    """Relay endpoint unreachable, dropped, or the pool is closed.

    Callers may retry after a backoff (except after the pool was closed).
    """


class RelayTimeoutError(ConnectivityError):
    """A single relay endpoint did not answer before the deadline."""


class RequestTimeoutError(ConnectivityError):
    """An aggregate operation exceeded its time budget.

    Raised by [RelayPool.query()][dvmkit.core.relay_pool.RelayPool.query]
    when no endpoint answered in time, and by
    [JobProtocol.wait_for_result()][dvmkit.services.job_protocol.JobProtocol.wait_for_result]
    when no result arrived. Retryable.
    """


# ---------------------------------------------------------------------------
# Relay requests
# ---------------------------------------------------------------------------


class RelayRejectedError(DvmKitError):
    """A relay answered a published event with ``OK false``.

    The message is the reason the relay gave (e.g. ``blocked: ...``,
    ``pow: difficulty 8 is less than 16``). Used as a per-relay cause inside
    [PublishError][dvmkit.core.exceptions.PublishError].
    """


class RelayRequestError(DvmKitError):
    """A fan-out operation failed on too many endpoints.

    Attributes:
        causes: Relay URL to the exception that endpoint failed with,
            in configured endpoint order.
    """

    def __init__(self, message: str, causes: Mapping[str, BaseException] | None = None) -> None:
        super().__init__(message)
        self.causes: dict[str, BaseException] = dict(causes or {})


class RequestError(RelayRequestError):
    """Every relay endpoint failed a query.

    See Also:
        [RelayPool.query()][dvmkit.core.relay_pool.RelayPool.query]: The
            operation that raises it.
    """


class PublishError(RelayRequestError):
    """Fewer endpoints than required accepted a published event.

    Attributes:
        report: The full [PublishReport][dvmkit.models.job.PublishReport],
            including the endpoints that did succeed.
    """

    def __init__(
        self,
        message: str,
        causes: Mapping[str, BaseException] | None = None,
        report: PublishReport | None = None,
    ) -> None:
        super().__init__(message, causes)
        self.report = report


# ---------------------------------------------------------------------------
# Cryptography
# ---------------------------------------------------------------------------


class CryptoError(DvmKitError):
    """Base for key, signature and cipher failures.

    See Also:
        [dvmkit.nips.nip01][dvmkit.nips.nip01]: Signing and verification.
        [dvmkit.nips.nip04][dvmkit.nips.nip04]: Shared-secret encryption.
    """


class SigningError(CryptoError):
    """Malformed private key, or a key that does not own the event pubkey."""


class VerifyError(CryptoError):
    """Event id is not the content hash or the signature does not verify."""


class EncryptError(CryptoError):
    """Encryption failed, typically on a malformed or off-curve key."""


class DecryptError(CryptoError):
    """Malformed envelope, wrong key, bad padding or non UTF-8 plaintext."""


class ResultDecryptError(DecryptError):
    """The content of a job result or feedback event could not be decrypted.

    Attributes:
        event: The raw event, kept for diagnostics.
    """

    def __init__(self, message: str, event: Event | None = None) -> None:
        super().__init__(message)
        self.event = event


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class JobError(DvmKitError):
    """Base for job protocol failures."""


class JobFailedError(JobError):
    """The service provider answered the job with status ``error``.

    Attributes:
        result: The parsed [JobResult][dvmkit.models.job.JobResult].
    """

    def __init__(self, message: str, result: JobResult | None = None) -> None:
        super().__init__(message)
        self.result = result
