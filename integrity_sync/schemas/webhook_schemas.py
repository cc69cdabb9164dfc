"""
Pydantic schemas for inbound webhook payloads.

Envelopes are validated at the boundary and immediately converted into the
engine's internal event variants (IssueEvent, TaskNotificationEvent). Nothing
past the ingestors looks at raw JSON.
"""

import re
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import CommitmentPhase

_TASK_RESOURCE = re.compile(
    r"lists(?:/|\(')(?P<list_id>[^/'()]+)'?\)?/tasks(?:/|\(')(?P<task_id>[^/'()?]+)"
)
_LIST_RESOURCE = re.compile(r"lists(?:/|\(')(?P<list_id>[^/'()]+)")


# ==================== GITHUB ====================


class GitHubOwner(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str = Field(..., min_length=1)


class GitHubRepository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    owner: GitHubOwner


class GitHubIssue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    title: str
    html_url: str
    body: Optional[str] = None
    state: str

    @field_validator("html_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("html_url must be an absolute http(s) URL")
        return v


class GitHubIssuesEvent(BaseModel):
    """Payload of a GitHub ``issues`` webhook delivery."""

    model_config = ConfigDict(extra="ignore")

    action: str
    issue: GitHubIssue
    repository: Optional[GitHubRepository] = None

    def to_event(
        self, phase: Optional[CommitmentPhase], delivery_id: Optional[str] = None
    ) -> "IssueEvent":
        return IssueEvent(
            action=self.action,
            phase=phase,
            issue_number=self.issue.number,
            title=self.issue.title,
            body=self.issue.body,
            issue_url=self.issue.html_url,
            state=self.issue.state,
            owner=self.repository.owner.login if self.repository else None,
            repo=self.repository.name if self.repository else None,
            delivery_id=delivery_id,
        )


# ==================== MICROSOFT GRAPH ====================


class ResourceData(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    odata_type: Optional[str] = Field(None, alias="@odata.type")
    odata_id: Optional[str] = Field(None, alias="@odata.id")


class GraphNotification(BaseModel):
    """A single entry of a Graph change-notification batch."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    subscription_id: Optional[str] = Field(None, alias="subscriptionId")
    change_type: str = Field(..., alias="changeType")
    client_state: Optional[str] = Field(None, alias="clientState")
    resource: str = Field(..., min_length=1)
    resource_data: Optional[ResourceData] = Field(None, alias="resourceData")

    def to_event(self) -> "TaskNotificationEvent":
        list_id = task_id = None
        match = _TASK_RESOURCE.search(self.resource)
        if match:
            list_id = match.group("list_id")
            task_id = match.group("task_id")
        else:
            list_match = _LIST_RESOURCE.search(self.resource)
            if list_match:
                list_id = list_match.group("list_id")
        if task_id is None and self.resource_data is not None:
            task_id = self.resource_data.id
        return TaskNotificationEvent(
            notification_id=self.id,
            subscription_id=self.subscription_id,
            change_type=self.change_type,
            client_state=self.client_state,
            resource=self.resource,
            list_id=list_id,
            task_id=task_id,
        )


class GraphNotificationBatch(BaseModel):
    """Top-level notification body. Entries are validated one at a time."""

    model_config = ConfigDict(extra="ignore")

    value: list[Any]


# ==================== INTERNAL EVENTS ====================


class IssueEvent(BaseModel):
    """A GitHub issue lifecycle change."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["issue"] = "issue"
    action: str
    phase: Optional[CommitmentPhase] = None
    issue_number: int
    title: str
    body: Optional[str] = None
    issue_url: str
    state: str
    owner: Optional[str] = None
    repo: Optional[str] = None
    delivery_id: Optional[str] = None


class TaskNotificationEvent(BaseModel):
    """A To Do task change announced by a Graph subscription."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["task"] = "task"
    notification_id: Optional[str] = None
    subscription_id: Optional[str] = None
    change_type: str
    client_state: Optional[str] = None
    resource: str
    list_id: Optional[str] = None
    task_id: Optional[str] = None


CommitmentEvent = Annotated[Union[IssueEvent, TaskNotificationEvent], Field(discriminator="kind")]
