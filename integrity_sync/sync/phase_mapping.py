"""
Commitment phase <-> native status tables.

Pure data plus lookups. The tables are checked for totality at import time:
every phase must map to a status on every system.
"""

from typing import Dict, Optional

from ..enums import CommitmentPhase, ExternalSystem, GitHubIssueState, IssueAction, TodoTaskStatus
from ..exceptions import ErrorCode, ServiceError

ACTION_TO_PHASE: Dict[str, CommitmentPhase] = {
    IssueAction.OPENED.value: CommitmentPhase.PLAN,
    IssueAction.REOPENED.value: CommitmentPhase.PLAN,
    IssueAction.CLOSED.value: CommitmentPhase.COMPLETE,
}

PHASE_TO_STATUS: Dict[ExternalSystem, Dict[CommitmentPhase, str]] = {
    ExternalSystem.TODO: {
        CommitmentPhase.PLAN: TodoTaskStatus.NOT_STARTED.value,
        CommitmentPhase.TRACK: TodoTaskStatus.IN_PROGRESS.value,
        CommitmentPhase.COMPLETE: TodoTaskStatus.COMPLETED.value,
        CommitmentPhase.ARCHIVE: TodoTaskStatus.COMPLETED.value,
    },
    ExternalSystem.GITHUB: {
        CommitmentPhase.PLAN: GitHubIssueState.OPEN.value,
        CommitmentPhase.TRACK: GitHubIssueState.OPEN.value,
        CommitmentPhase.COMPLETE: GitHubIssueState.CLOSED.value,
        CommitmentPhase.ARCHIVE: GitHubIssueState.CLOSED.value,
    },
}

# Read direction: several native statuses collapse onto one phase
STATUS_TO_PHASE: Dict[ExternalSystem, Dict[str, CommitmentPhase]] = {
    ExternalSystem.TODO: {
        TodoTaskStatus.NOT_STARTED.value: CommitmentPhase.PLAN,
        TodoTaskStatus.DEFERRED.value: CommitmentPhase.PLAN,
        TodoTaskStatus.IN_PROGRESS.value: CommitmentPhase.TRACK,
        TodoTaskStatus.WAITING_ON_OTHERS.value: CommitmentPhase.TRACK,
        TodoTaskStatus.COMPLETED.value: CommitmentPhase.COMPLETE,
    },
    ExternalSystem.GITHUB: {
        GitHubIssueState.OPEN.value: CommitmentPhase.PLAN,
        GitHubIssueState.CLOSED.value: CommitmentPhase.COMPLETE,
    },
}


def external_action_to_phase(action: Optional[str]) -> Optional[CommitmentPhase]:
    """Phase implied by a GitHub issue action, or None if the action is ignored."""
    if action is None:
        return None
    return ACTION_TO_PHASE.get(action)


def phase_to_native_status(phase: CommitmentPhase, system: ExternalSystem) -> str:
    return PHASE_TO_STATUS[ExternalSystem(system)][CommitmentPhase(phase)]


def native_status_to_phase(
    status: Optional[str], system: ExternalSystem
) -> Optional[CommitmentPhase]:
    if status is None:
        return None
    return STATUS_TO_PHASE[ExternalSystem(system)].get(status)


def external_action_to_native_status(action: str, system: ExternalSystem) -> Optional[str]:
    phase = external_action_to_phase(action)
    if phase is None:
        return None
    return phase_to_native_status(phase, system)


def validate_phase_table(
    table: Optional[Dict[ExternalSystem, Dict[CommitmentPhase, str]]] = None,
) -> None:
    """
    Raise ServiceError unless every phase maps to a status on every system.
    """
    table = PHASE_TO_STATUS if table is None else table
    missing = [
        f"{system.value}:{phase.value}"
        for system in ExternalSystem
        for phase in CommitmentPhase
        if phase not in table.get(system, {})
    ]
    if missing:
        raise ServiceError(
            "Phase mapping table is not total",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="validate_phase_table",
            missing=missing,
        )


validate_phase_table()
