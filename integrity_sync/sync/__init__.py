"""Phase mapping, structural resolution and idempotency for cross-system sync."""

from .container_mappings import ContainerMappingRepository
from .link_guard import (
    already_linked,
    body_links_to,
    build_issue_body_from_task,
    build_task_body_from_issue,
    derive_link,
    embed_link,
    extract_issue_link,
    extract_issue_links,
    originated_from_todo,
)
from .phase_mapping import (
    external_action_to_native_status,
    external_action_to_phase,
    native_status_to_phase,
    phase_to_native_status,
    validate_phase_table,
)
from .structural_resolver import StructuralResolver
from .sync_ledger import ClaimResult, SyncLedger, SyncRecordView, task_coordinates

__all__ = [
    "ContainerMappingRepository",
    "already_linked",
    "body_links_to",
    "build_issue_body_from_task",
    "build_task_body_from_issue",
    "derive_link",
    "embed_link",
    "extract_issue_link",
    "extract_issue_links",
    "originated_from_todo",
    "external_action_to_native_status",
    "external_action_to_phase",
    "native_status_to_phase",
    "phase_to_native_status",
    "validate_phase_table",
    "StructuralResolver",
    "ClaimResult",
    "SyncLedger",
    "SyncRecordView",
    "task_coordinates",
]
