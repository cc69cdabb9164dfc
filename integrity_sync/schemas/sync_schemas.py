"""
Value objects describing how a To Do task and a GitHub issue relate.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OwnerRepo(BaseModel):
    """A GitHub repository coordinate, resolved from a To Do list."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class IssueLink(BaseModel):
    """A GitHub issue URL found in a task body, split into its parts."""

    model_config = ConfigDict(frozen=True)

    url: str
    owner: str
    repo: str
    number: int


class CrossSystemLink(BaseModel):
    """A To Do task and the GitHub issue it mirrors. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    list_id: str
    task_id: str
    owner: str
    repo: str
    issue_number: int
    issue_url: str
    group_id: Optional[str] = None
