"""
Microsoft Graph change notifications for To Do tasks -> GitHub.

A notification batch is acknowledged with 202 as soon as every entry has been
handed to the worker pool. Each entry is then processed on its own: a failure
is logged with the entry's correlation id and never affects its siblings.
"""

import hmac
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..auth.token_manager import TokenManager
from ..clients.github_client import GitHubClient
from ..clients.graph_client import TodoClient
from ..config import AppConfig
from ..constants import GraphChangeType
from ..enums import ExternalSystem
from ..exceptions import (
    AuthError,
    BaseError,
    ErrorCode,
    PayloadInvalidError,
    SyncSkipped,
    WebhookAuthError,
    clear_correlation_id,
    set_correlation_id,
)
from ..schemas.webhook_schemas import (
    GraphNotification,
    GraphNotificationBatch,
    TaskNotificationEvent,
)
from ..sync.link_guard import (
    already_linked,
    build_issue_body_from_task,
    derive_link,
    embed_link,
)
from ..sync.phase_mapping import native_status_to_phase, phase_to_native_status
from ..sync.structural_resolver import StructuralResolver
from ..sync.sync_ledger import SyncLedger
from ..utils.hash_utils import calculate_fingerprint
from ..utils.json_utils import loads
from ..utils.logger import get_logger
from .results import IngestResult

VALIDATION_TOKEN_PARAM = "validationToken"


def _task_body(task: Dict[str, Any]) -> str:
    return (task.get("body") or {}).get("content") or ""


class TodoNotificationIngestor:
    def __init__(
        self,
        config: AppConfig,
        todo: TodoClient,
        github: GitHubClient,
        token_manager: TokenManager,
        resolver: StructuralResolver,
        ledger: Optional[SyncLedger] = None,
        executor: Optional[Executor] = None,
    ):
        self.config = config
        self.todo = todo
        self.github = github
        self.token_manager = token_manager
        self.resolver = resolver
        self.ledger = ledger
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.processing.fanout_workers,
            thread_name_prefix="todo-notification",
        )
        self.logger = get_logger()

    def handle(self, raw_body: Optional[bytes], params: Mapping[str, str]) -> IngestResult:
        """
        Answer a validation handshake, or dispatch a notification batch.

        Returns:
            200 with the echoed token, 202 once the batch is dispatched, or
            the status of a request-wide failure (400, 500)
        """
        validation_token = params.get(VALIDATION_TOKEN_PARAM)
        if validation_token:
            self.logger.info("Graph subscription validation request")
            return IngestResult.text(validation_token)

        try:
            batch = self._parse_batch(raw_body)

            if not self.token_manager.has_credential_source():
                raise AuthError(
                    "Graph authentication not configured", error_code=ErrorCode.AUTH_NO_TOKEN
                )
            if not self.github.has_token():
                raise AuthError("GitHub token not configured", error_code=ErrorCode.GITHUB_NO_TOKEN)
        except BaseError as e:
            return IngestResult.from_error(e)

        futures: List[Future] = [
            self.executor.submit(self._process_entry_safely, entry) for entry in batch.value
        ]
        self.logger.info("Dispatched Graph notifications", extra={"count": len(futures)})
        return IngestResult.accepted(futures)

    @staticmethod
    def _parse_batch(raw_body: Optional[bytes]) -> GraphNotificationBatch:
        try:
            payload = loads(raw_body or b"")
        except ValueError as e:
            raise PayloadInvalidError("Invalid JSON", cause=e)
        try:
            return GraphNotificationBatch.model_validate(payload)
        except PydanticValidationError:
            raise PayloadInvalidError("Notification batch must contain a value array")

    # ---- per entry -----------------------------------------------------------

    def _process_entry_safely(self, entry: Any) -> str:
        """Run one entry, returning its outcome instead of raising."""
        try:
            return self.process_entry(entry)
        except BaseError as e:
            # Already logged when raised
            return e.error_code.name.lower()
        except Exception:
            self.logger.exception(
                "Unexpected error processing Graph notification",
                extra={"notification_id": entry.get("id") if isinstance(entry, dict) else None},
            )
            return "error"
        finally:
            clear_correlation_id()

    def process_entry(self, entry: Any) -> str:
        try:
            notification = GraphNotification.model_validate(entry)
        except PydanticValidationError:
            raise PayloadInvalidError("Malformed Graph notification entry")

        event = notification.to_event()
        if event.notification_id:
            set_correlation_id(event.notification_id)

        self._check_client_state(event)

        if event.change_type == GraphChangeType.CREATED.value:
            return self._mirror_task(event)
        if (
            event.change_type == GraphChangeType.UPDATED.value
            and self.config.features.enable_status_writeback
        ):
            return self._write_back_status(event)
        raise SyncSkipped("Change type ignored", change_type=event.change_type)

    def _check_client_state(self, event: TaskNotificationEvent) -> None:
        expected = self.config.webhooks.graph_subscription_secret
        if not expected:
            return
        provided = event.client_state or ""
        if not hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8")):
            raise WebhookAuthError(
                "clientState mismatch",
                error_code=ErrorCode.WEBHOOK_CLIENT_STATE_INVALID,
                notification_id=event.notification_id,
            )

    def _fetch_task(self, event: TaskNotificationEvent) -> Dict[str, Any]:
        if not (event.list_id and event.task_id):
            raise SyncSkipped("Could not extract list and task ids", resource=event.resource)
        task = self.todo.get_task(event.list_id, event.task_id)
        if not task:
            raise SyncSkipped("Could not fetch task", resource=event.resource)
        return task

    # ---- created: task -> issue ------------------------------------------------

    def _mirror_task(self, event: TaskNotificationEvent) -> str:
        task = self._fetch_task(event)
        body = _task_body(task)
        if already_linked(body):
            raise SyncSkipped("Task already linked to a GitHub issue", task_id=task.get("id"))

        task_id = task.get("id") or event.task_id

        owner_repo = self.resolver.resolve_source(event.list_id)
        if owner_repo is None:
            raise SyncSkipped(
                "List has no associated list group",
                error_code=ErrorCode.SYNC_NO_LIST_GROUP,
                list_id=event.list_id,
            )

        record_id = None
        if self.ledger:
            claim = self.ledger.claim(
                calculate_fingerprint(
                    ExternalSystem.TODO, f"{event.list_id}/{task_id}", ExternalSystem.GITHUB
                ),
                source_system=ExternalSystem.TODO,
                source_id=task_id,
                target_system=ExternalSystem.GITHUB,
                source_container=event.list_id,
                event_id=event.notification_id,
            )
            if claim.resumable and claim.record.target_url:
                self.logger.info(
                    "Resuming link write-back for existing issue",
                    extra={"task_id": task_id, "issue_url": claim.record.target_url},
                )
                self._write_link(event.list_id, task_id, body, claim.record.target_url)
                self.ledger.mark_linked(claim.record.id)
                return "resumed"
            if not claim.acquired:
                raise SyncSkipped(
                    "Already synchronized",
                    error_code=ErrorCode.DUPLICATE,
                    task_id=task_id,
                    sync_status=claim.status.value,
                )
            record_id = claim.record.id

        try:
            issue = self.github.create_issue(
                owner_repo.owner,
                owner_repo.repo,
                task.get("title") or "",
                build_issue_body_from_task(body),
            )
        except BaseError as e:
            if record_id:
                self.ledger.mark_failed(record_id, e.message)
            raise

        issue_url = issue["html_url"]
        self.logger.info(
            "Created GitHub issue for task",
            extra={
                "issue_url": issue_url,
                "repository": owner_repo.full_name,
                "task_id": task_id,
            },
        )
        if record_id:
            self.ledger.record_target(
                record_id, str(issue["number"]), issue_url, owner_repo.full_name
            )

        # Leaves the record in target_created on failure so a redelivery resumes here
        self._write_link(event.list_id, task_id, body, issue_url)
        if record_id:
            self.ledger.mark_linked(record_id)
        return "created"

    def _write_link(self, list_id: str, task_id: str, body: str, issue_url: str) -> None:
        self.todo.update_task(list_id, task_id, body=embed_link(body, issue_url))

    # ---- updated: status -> issue state ----------------------------------------

    def _write_back_status(self, event: TaskNotificationEvent) -> str:
        task = self._fetch_task(event)
        link = derive_link(event.list_id, task.get("id") or event.task_id, _task_body(task))
        if link is None:
            raise SyncSkipped("Task is not linked", task_id=task.get("id"))

        phase = native_status_to_phase(task.get("status"), ExternalSystem.TODO)
        if phase is None:
            raise SyncSkipped("Unknown task status", task_status=task.get("status"))
        desired = phase_to_native_status(phase, ExternalSystem.GITHUB)

        issue = self.github.get_issue(link.owner, link.repo, link.issue_number) or {}
        if issue.get("state") == desired:
            return "unchanged"

        self.github.update_issue_state(link.owner, link.repo, link.issue_number, desired)
        self.logger.info(
            "Updated linked GitHub issue state",
            extra={
                "issue_url": link.issue_url,
                "repository": f"{link.owner}/{link.repo}",
                "state": desired,
            },
        )
        return "updated"
