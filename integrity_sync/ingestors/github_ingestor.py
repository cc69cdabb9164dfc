"""
GitHub ``issues`` webhook -> Microsoft To Do.

``opened`` mirrors the issue into the To Do list mapped to its repository.
``closed`` and ``reopened`` move the linked task to the matching status.
"""

import hashlib
import hmac
from typing import Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..auth.token_manager import TokenManager
from ..clients.graph_client import TodoClient
from ..config import AppConfig
from ..constants import GitHubEvent, GitHubHeader
from ..enums import ExternalSystem, IssueAction
from ..exceptions import (
    AuthError,
    BaseError,
    CapabilityError,
    ErrorCode,
    PayloadInvalidError,
    ResolutionFailure,
    SyncSkipped,
    WebhookAuthError,
    clear_correlation_id,
    set_correlation_id,
)
from ..schemas.webhook_schemas import GitHubIssuesEvent, IssueEvent
from ..sync.link_guard import body_links_to, build_task_body_from_issue, originated_from_todo
from ..sync.phase_mapping import external_action_to_phase, phase_to_native_status
from ..sync.structural_resolver import StructuralResolver
from ..sync.sync_ledger import SyncLedger, task_coordinates
from ..utils.hash_utils import calculate_fingerprint
from ..utils.json_utils import loads
from ..utils.logger import get_logger
from .results import IngestResult

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, raw_body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, raw_body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of an ``X-Hub-Signature-256`` header value."""
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    expected = compute_signature(secret, raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


class GitHubWebhookIngestor:
    def __init__(
        self,
        config: AppConfig,
        todo: TodoClient,
        token_manager: TokenManager,
        resolver: StructuralResolver,
        ledger: Optional[SyncLedger] = None,
    ):
        self.config = config
        self.todo = todo
        self.token_manager = token_manager
        self.resolver = resolver
        self.ledger = ledger
        self.logger = get_logger()

    def handle(self, raw_body: bytes, headers: Mapping[str, str]) -> IngestResult:
        """
        Process one webhook delivery.

        Args:
            raw_body: Request body exactly as received, used for the signature
            headers: Request headers (any case)

        Returns:
            IngestResult with the status and plain text body to answer
        """
        headers = {k.lower(): v for k, v in headers.items()}
        delivery_id = headers.get(GitHubHeader.DELIVERY.value)
        if delivery_id:
            set_correlation_id(delivery_id)

        try:
            self._authenticate(raw_body, headers.get(GitHubHeader.SIGNATURE.value))
            payload = self._parse_json(raw_body)

            event_name = headers.get(GitHubHeader.EVENT.value)
            if event_name != GitHubEvent.ISSUES.value:
                self.logger.debug("Ignoring GitHub event", extra={"event": event_name})
                return IngestResult.ok("Event ignored", outcome="ignored")

            event = self._to_event(payload, delivery_id)
            if event.phase is None:
                self.logger.info("Ignoring issue action", extra={"action": event.action})
                return IngestResult.ok("Action ignored", outcome="ignored")

            if not self.token_manager.has_credential_source():
                raise AuthError(
                    "Graph authentication not configured", error_code=ErrorCode.AUTH_NO_TOKEN
                )

            if event.action == IssueAction.OPENED.value:
                return self._handle_opened(event)
            return self._handle_transition(event)
        except BaseError as e:
            return IngestResult.from_error(e)
        finally:
            clear_correlation_id()

    # ---- boundary checks -----------------------------------------------------

    def _authenticate(self, raw_body: bytes, signature: Optional[str]) -> None:
        secret = self.config.webhooks.github_webhook_secret
        if not secret:
            return
        if not verify_signature(secret, raw_body, signature):
            raise WebhookAuthError("Signature mismatch")

    @staticmethod
    def _parse_json(raw_body: bytes):
        try:
            return loads(raw_body)
        except ValueError as e:
            raise PayloadInvalidError("Invalid JSON", cause=e)

    @staticmethod
    def _to_event(payload, delivery_id: Optional[str]) -> IssueEvent:
        try:
            envelope = GitHubIssuesEvent.model_validate(payload)
        except PydanticValidationError as e:
            raise PayloadInvalidError(
                "Invalid issues payload", errors=[err["loc"] for err in e.errors()]
            )
        return envelope.to_event(external_action_to_phase(envelope.action), delivery_id)

    # ---- opened --------------------------------------------------------------

    def _handle_opened(self, event: IssueEvent) -> IngestResult:
        if not event.owner or not event.repo:
            raise SyncSkipped("Repository info missing", issue_url=event.issue_url)

        if originated_from_todo(event.body) or (
            self.ledger and self.ledger.is_mirrored_issue(event.issue_url)
        ):
            raise SyncSkipped("Issue originated from To Do", issue_url=event.issue_url)

        list_id = self.resolver.resolve_target(event.owner, event.repo)
        if list_id is None:
            raise ResolutionFailure(owner=event.owner, repo=event.repo)

        record_id = None
        if self.ledger:
            claim = self.ledger.claim(
                calculate_fingerprint(ExternalSystem.GITHUB, event.issue_url, ExternalSystem.TODO),
                source_system=ExternalSystem.GITHUB,
                source_id=str(event.issue_number),
                target_system=ExternalSystem.TODO,
                source_container=f"{event.owner}/{event.repo}",
                source_url=event.issue_url,
                event_id=event.delivery_id,
            )
            if not claim.acquired:
                raise SyncSkipped(
                    "Already synchronized",
                    error_code=ErrorCode.DUPLICATE,
                    issue_url=event.issue_url,
                    sync_status=claim.status.value,
                )
            record_id = claim.record.id

        body = build_task_body_from_issue(event.issue_url, event.body)
        try:
            task, list_id = self._create_task(event, list_id, body)
        except BaseError as e:
            if record_id:
                self.ledger.mark_failed(record_id, e.message)
            raise

        if record_id:
            self.ledger.record_target(record_id, task["id"], target_container=list_id)
            self.ledger.mark_linked(record_id)

        self.logger.info(
            "Created To Do task for issue",
            extra={"issue_url": event.issue_url, "list_id": list_id, "task_id": task["id"]},
        )
        return IngestResult.ok("Task created", outcome="created")

    def _create_task(self, event: IssueEvent, list_id: str, body: str) -> Tuple[dict, str]:
        try:
            return self.todo.create_task(list_id, event.title, body), list_id
        except CapabilityError as e:
            if e.http_status != 404:
                raise
        # The list was deleted after it was resolved: forget it and resolve again once
        self.resolver.invalidate(list_id)
        list_id = self.resolver.resolve_target(event.owner, event.repo)
        if list_id is None:
            raise ResolutionFailure(owner=event.owner, repo=event.repo)
        return self.todo.create_task(list_id, event.title, body), list_id

    # ---- closed / reopened ---------------------------------------------------

    def _handle_transition(self, event: IssueEvent) -> IngestResult:
        include_completed = event.action == IssueAction.REOPENED.value
        status = phase_to_native_status(event.phase, ExternalSystem.TODO)

        coordinates = self._ledger_coordinates(event.issue_url)
        if coordinates is not None and not self._update_status(coordinates, status):
            self.logger.info(
                "Recorded task no longer exists, searching lists",
                extra={"issue_url": event.issue_url, "task_id": coordinates[1]},
            )
            coordinates = None
        if coordinates is None:
            coordinates = self._scan_for_task(event.issue_url, include_completed)
            if coordinates is None or not self._update_status(coordinates, status):
                raise SyncSkipped(
                    "No linked task found",
                    error_code=ErrorCode.SYNC_NO_LINKED_TASK,
                    issue_url=event.issue_url,
                )

        self.logger.info(
            "Updated linked To Do task",
            extra={"issue_url": event.issue_url, "task_id": coordinates[1], "task_status": status},
        )
        return IngestResult.ok("Task updated", outcome="updated")

    def _update_status(self, coordinates: Tuple[str, str], status: str) -> bool:
        """Patch the task status; False if Graph no longer has the task."""
        list_id, task_id = coordinates
        try:
            self.todo.update_task(list_id, task_id, status=status)
        except CapabilityError as e:
            if e.http_status != 404:
                raise
            return False
        return True

    def _ledger_coordinates(self, issue_url: str) -> Optional[Tuple[str, str]]:
        if not self.ledger:
            return None
        record = self.ledger.find_by_issue_url(issue_url)
        coordinates = task_coordinates(record) if record else None
        return coordinates if coordinates and all(coordinates) else None

    def _scan_for_task(self, issue_url: str, include_completed: bool) -> Optional[Tuple[str, str]]:
        for todo_list in self.todo.list_lists():
            for task in self.todo.list_tasks(todo_list["id"], include_completed=include_completed):
                content = (task.get("body") or {}).get("content")
                if body_links_to(content, issue_url):
                    return todo_list["id"], task["id"]
        return None
