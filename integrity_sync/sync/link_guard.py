"""
Task body conventions that link a To Do task to its GitHub issue.

A linked task carries a ``GitHub Issue: <url>`` line in its body. That marker
is the durable idempotency key for the To Do -> GitHub direction: a task whose
body already has it is never mirrored again. Issues created from tasks end
with a provenance footer so the GitHub -> To Do direction can skip them.
"""

import re
from typing import List, Optional

from ..constants import ISSUE_LINK_MARKER, PROVENANCE_FOOTER
from ..schemas.sync_schemas import CrossSystemLink, IssueLink

_ISSUE_URL = (
    r"https://github\.com/"
    r"(?P<owner>[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)/"
    r"(?P<repo>[A-Za-z0-9_][A-Za-z0-9_.-]*)/"
    r"issues/(?P<number>\d+)"
)

LINK_PATTERN = re.compile(
    re.escape(ISSUE_LINK_MARKER) + r"\s*(?P<url>" + _ISSUE_URL + r")(?!\w)"
)


def _normalize(body: Optional[str]) -> str:
    return (body or "").strip()


def already_linked(body: Optional[str]) -> bool:
    """True if the body contains the marker followed by a GitHub issue URL."""
    return LINK_PATTERN.search(body or "") is not None


def extract_issue_links(body: Optional[str]) -> List[IssueLink]:
    return [
        IssueLink(
            url=match.group("url"),
            owner=match.group("owner"),
            repo=match.group("repo"),
            number=int(match.group("number")),
        )
        for match in LINK_PATTERN.finditer(body or "")
    ]


def extract_issue_link(body: Optional[str]) -> Optional[IssueLink]:
    links = extract_issue_links(body)
    return links[0] if links else None


def derive_link(list_id: str, task_id: str, body: Optional[str]) -> Optional[CrossSystemLink]:
    """The link a task carries, read from its body. None for an unlinked task."""
    link = extract_issue_link(body)
    if link is None:
        return None
    return CrossSystemLink(
        list_id=list_id,
        task_id=task_id,
        owner=link.owner,
        repo=link.repo,
        issue_number=link.number,
        issue_url=link.url,
    )


def body_links_to(body: Optional[str], issue_url: str) -> bool:
    """Exact match on the issue URL, so ``/issues/1`` never matches ``/issues/12``."""
    target = issue_url.rstrip("/")
    return any(link.url == target for link in extract_issue_links(body))


def embed_link(existing_body: Optional[str], issue_url: str) -> str:
    """Append the link line, keeping everything already in the body."""
    line = f"{ISSUE_LINK_MARKER} {issue_url}"
    if not _normalize(existing_body):
        return line
    return f"{existing_body.rstrip()}\n\n{line}"


def build_task_body_from_issue(issue_url: str, issue_body: Optional[str]) -> str:
    """Task body for an issue mirrored into To Do: link first, then the issue text."""
    line = f"{ISSUE_LINK_MARKER} {issue_url}"
    content = _normalize(issue_body)
    if not content:
        return line
    return f"{line}\n\n{content}"


def build_issue_body_from_task(task_body: Optional[str]) -> str:
    content = _normalize(task_body)
    if not content:
        return PROVENANCE_FOOTER
    return f"{content}\n\n---\n{PROVENANCE_FOOTER}"


def originated_from_todo(issue_body: Optional[str]) -> bool:
    """True for issues this engine created from a To Do task."""
    return PROVENANCE_FOOTER in (issue_body or "")
