"""
Unit tests for core.exceptions module.

Tests:
- Hierarchy placement of every exception
- Per-relay causes on fan-out errors
- Attached payloads (report, event, result)
"""

import pytest

from dvmkit.core.exceptions import (
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
from dvmkit.models import PublishOutcome, PublishReport


class TestHierarchy:
    """Every error is catchable at the level callers care about."""

    @pytest.mark.parametrize(
        ("exc", "parent"),
        [
            (ConfigurationError, DvmKitError),
            (ValidationError, DvmKitError),
            (RelayConnectionError, ConnectivityError),
            (RelayTimeoutError, ConnectivityError),
            (RequestTimeoutError, ConnectivityError),
            (RelayRejectedError, DvmKitError),
            (RequestError, RelayRequestError),
            (PublishError, RelayRequestError),
            (SigningError, CryptoError),
            (VerifyError, CryptoError),
            (EncryptError, CryptoError),
            (ResultDecryptError, DecryptError),
            (DecryptError, CryptoError),
            (JobFailedError, JobError),
        ],
    )
    def test_subclass(self, exc, parent) -> None:
        assert issubclass(exc, parent)
        assert issubclass(exc, DvmKitError)

    def test_timeouts_are_not_request_errors(self) -> None:
        """Callers retrying on timeout must not swallow total query failure."""
        assert not issubclass(RequestTimeoutError, RelayRequestError)
        assert not issubclass(RequestError, ConnectivityError)


class TestPayloads:
    def test_causes_copied(self) -> None:
        causes = {"wss://r1": RelayTimeoutError("slow")}
        error = RequestError("query failed", causes)
        causes.clear()

        assert list(error.causes) == ["wss://r1"]
        assert str(error) == "query failed"

    def test_causes_default_empty(self) -> None:
        assert RelayRequestError("x").causes == {}

    def test_publish_error_report(self) -> None:
        report = PublishReport("a" * 64, [PublishOutcome("wss://r1", False, "down")])
        error = PublishError("below threshold", {"wss://r1": RelayConnectionError("down")}, report)

        assert error.report is report
        assert isinstance(error.causes["wss://r1"], RelayConnectionError)

    def test_result_decrypt_error_event(self) -> None:
        assert ResultDecryptError("nope").event is None

    def test_job_failed_result(self) -> None:
        assert JobFailedError("provider error").result is None
