"""
Domain enums shared across the sync engine.
"""

from enum import Enum


class CommitmentPhase(str, Enum):
    """Shared lifecycle phase of a commitment, independent of either platform."""

    PLAN = "plan"
    TRACK = "track"
    COMPLETE = "complete"
    ARCHIVE = "archive"


class ExternalSystem(str, Enum):
    """Platforms the engine keeps in sync."""

    TODO = "todo"
    GITHUB = "github"


class SyncStatus(str, Enum):
    """Progress of a keyed cross-system mutation."""

    PENDING = "pending"  # claimed, target not created yet
    TARGET_CREATED = "target_created"  # target exists, link not written back
    LINKED = "linked"
    FAILED = "failed"


class TodoTaskStatus(str, Enum):
    """Native Microsoft To Do task statuses."""

    NOT_STARTED = "notStarted"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    WAITING_ON_OTHERS = "waitingOnOthers"
    DEFERRED = "deferred"


class GitHubIssueState(str, Enum):
    """Native GitHub issue states."""

    OPEN = "open"
    CLOSED = "closed"


class IssueAction(str, Enum):
    """GitHub ``issues`` event actions the engine reacts to."""

    OPENED = "opened"
    CLOSED = "closed"
    REOPENED = "reopened"
