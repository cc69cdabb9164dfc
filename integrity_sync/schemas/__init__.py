"""Pydantic schemas for credentials, links and webhook payloads."""

from .credential_schemas import Credential, TokenResponse
from .sync_schemas import CrossSystemLink, IssueLink, OwnerRepo
from .webhook_schemas import (
    CommitmentEvent,
    GitHubIssue,
    GitHubIssuesEvent,
    GitHubRepository,
    GraphNotification,
    GraphNotificationBatch,
    IssueEvent,
    TaskNotificationEvent,
)

__all__ = [
    "Credential",
    "TokenResponse",
    "CrossSystemLink",
    "IssueLink",
    "OwnerRepo",
    "CommitmentEvent",
    "GitHubIssue",
    "GitHubIssuesEvent",
    "GitHubRepository",
    "GraphNotification",
    "GraphNotificationBatch",
    "IssueEvent",
    "TaskNotificationEvent",
]
