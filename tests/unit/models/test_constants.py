"""Unit tests for models.constants."""

import pytest

from dvmkit.models.constants import (
    EventKind,
    JobState,
    is_job_request_kind,
    is_job_result_kind,
    result_kind_for,
)


class TestKindRanges:
    @pytest.mark.parametrize(("kind", "expected"), [(4999, False), (5000, True), (5999, True), (6000, False)])
    def test_request_range(self, kind: int, expected: bool) -> None:
        assert is_job_request_kind(kind) is expected

    @pytest.mark.parametrize(("kind", "expected"), [(5999, False), (6000, True), (6999, True), (7000, False)])
    def test_result_range(self, kind: int, expected: bool) -> None:
        assert is_job_result_kind(kind) is expected

    def test_result_kind_offset(self) -> None:
        assert result_kind_for(EventKind.TEXT_GENERATION) == 6100
        assert result_kind_for(5002) == 6002


class TestJobState:
    @pytest.mark.parametrize("state", [JobState.RESOLVED, JobState.FAILED, JobState.TIMED_OUT])
    def test_terminal(self, state: JobState) -> None:
        assert state.is_terminal

    @pytest.mark.parametrize(
        "state", [JobState.DRAFT, JobState.SEALED, JobState.PUBLISHED, JobState.AWAITING_RESULT]
    )
    def test_not_terminal(self, state: JobState) -> None:
        assert not state.is_terminal
