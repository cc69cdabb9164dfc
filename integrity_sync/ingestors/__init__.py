"""Webhook ingestors for GitHub deliveries and Graph change notifications."""

from .github_ingestor import GitHubWebhookIngestor, compute_signature, verify_signature
from .results import IngestResult
from .todo_ingestor import TodoNotificationIngestor

__all__ = [
    "GitHubWebhookIngestor",
    "compute_signature",
    "verify_signature",
    "IngestResult",
    "TodoNotificationIngestor",
]
