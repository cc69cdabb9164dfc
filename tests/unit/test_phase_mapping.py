"""
Unit tests for commitment phase <-> native status mapping.
"""

import pytest

from integrity_sync.enums import CommitmentPhase, ExternalSystem, TodoTaskStatus
from integrity_sync.exceptions import ServiceError
from integrity_sync.sync.phase_mapping import (
    PHASE_TO_STATUS,
    STATUS_TO_PHASE,
    external_action_to_native_status,
    external_action_to_phase,
    native_status_to_phase,
    phase_to_native_status,
    validate_phase_table,
)


class TestPhaseToNativeStatus:
    """Write direction tables."""

    @pytest.mark.parametrize("system", list(ExternalSystem))
    @pytest.mark.parametrize("phase", list(CommitmentPhase))
    def test_total_for_every_phase_and_system(self, phase, system):
        """Every phase maps to a status the system knows how to read back."""
        status = phase_to_native_status(phase, system)

        assert status
        assert status in STATUS_TO_PHASE[system]

    def test_todo_statuses(self):
        """To Do uses its native status vocabulary."""
        assert phase_to_native_status(CommitmentPhase.PLAN, ExternalSystem.TODO) == "notStarted"
        assert phase_to_native_status(CommitmentPhase.TRACK, ExternalSystem.TODO) == "inProgress"
        assert (
            phase_to_native_status(CommitmentPhase.COMPLETE, ExternalSystem.TODO) == "completed"
        )
        assert (
            phase_to_native_status(CommitmentPhase.ARCHIVE, ExternalSystem.TODO) == "completed"
        )

    def test_github_states(self):
        """GitHub only knows open and closed."""
        assert phase_to_native_status(CommitmentPhase.PLAN, ExternalSystem.GITHUB) == "open"
        assert phase_to_native_status(CommitmentPhase.COMPLETE, ExternalSystem.GITHUB) == "closed"

    def test_accepts_plain_strings(self):
        """Enum values given as strings are coerced."""
        assert phase_to_native_status("complete", "todo") == "completed"


class TestExternalActions:
    """Issue actions -> phases."""

    def test_recognized_actions(self):
        assert external_action_to_phase("opened") == CommitmentPhase.PLAN
        assert external_action_to_phase("reopened") == CommitmentPhase.PLAN
        assert external_action_to_phase("closed") == CommitmentPhase.COMPLETE

    @pytest.mark.parametrize("action", ["edited", "labeled", "assigned", "", None])
    def test_unrecognized_actions_are_none(self, action):
        assert external_action_to_phase(action) is None

    def test_action_to_native_status(self):
        """Closing an issue completes the task, reopening resets it."""
        assert external_action_to_native_status("closed", ExternalSystem.TODO) == "completed"
        assert external_action_to_native_status("reopened", ExternalSystem.TODO) == "notStarted"
        assert external_action_to_native_status("edited", ExternalSystem.TODO) is None


class TestNativeStatusToPhase:
    """Read direction tables."""

    def test_several_statuses_collapse_onto_one_phase(self):
        assert (
            native_status_to_phase(TodoTaskStatus.DEFERRED.value, ExternalSystem.TODO)
            == CommitmentPhase.PLAN
        )
        assert (
            native_status_to_phase(TodoTaskStatus.WAITING_ON_OTHERS.value, ExternalSystem.TODO)
            == CommitmentPhase.TRACK
        )

    def test_unknown_status(self):
        assert native_status_to_phase("archived", ExternalSystem.TODO) is None
        assert native_status_to_phase(None, ExternalSystem.GITHUB) is None

    def test_round_trip_through_github(self):
        """A completed task closes the issue and a closed issue completes the task."""
        phase = native_status_to_phase("completed", ExternalSystem.TODO)
        state = phase_to_native_status(phase, ExternalSystem.GITHUB)
        back = native_status_to_phase(state, ExternalSystem.GITHUB)

        assert state == "closed"
        assert phase_to_native_status(back, ExternalSystem.TODO) == "completed"


class TestValidatePhaseTable:
    """Totality check run at import time."""

    def test_shipped_table_is_total(self):
        validate_phase_table()

    def test_missing_phase_raises(self):
        """A table without ARCHIVE for GitHub is rejected."""
        partial = {
            ExternalSystem.TODO: dict(PHASE_TO_STATUS[ExternalSystem.TODO]),
            ExternalSystem.GITHUB: {
                phase: status
                for phase, status in PHASE_TO_STATUS[ExternalSystem.GITHUB].items()
                if phase != CommitmentPhase.ARCHIVE
            },
        }

        with pytest.raises(ServiceError) as exc_info:
            validate_phase_table(partial)

        assert "github:archive" in exc_info.value.context["missing"]
