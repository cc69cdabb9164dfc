"""
Constants and enums for the Integrity Sync engine.

This module centralizes the magic strings, endpoints and limits used by the
webhook ingestors, the capability clients and the subscription renewer.
"""

from enum import Enum

VERSION = "2.0.0"
USER_AGENT = f"integrity-sync/{VERSION}"

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_BETA_BASE_URL = "https://graph.microsoft.com/beta"
GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_ACCEPT = "application/vnd.github+json"
TOKEN_ENDPOINT_TEMPLATE = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"

TODO_SCOPES = (
    "offline_access Tasks.Read Tasks.ReadWrite Tasks.Read.Shared "
    "Tasks.ReadWrite.Shared User.Read"
)

# Task body markers
ISSUE_LINK_MARKER = "GitHub Issue:"
PROVENANCE_FOOTER = "*Created from Microsoft To Do task*"

MAILBOX_NOT_ENABLED = "MailboxNotEnabledForRESTAPI"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    LOG_LEVEL = "LOG_LEVEL"

    # Microsoft Graph (To Do)
    MS_TODO_CLIENT_ID = "MS_TODO_CLIENT_ID"
    CLIENT_ID = "CLIENT_ID"
    MS_TODO_CLIENT_SECRET = "MS_TODO_CLIENT_SECRET"
    CLIENT_SECRET = "CLIENT_SECRET"
    MS_TODO_TENANT_ID = "MS_TODO_TENANT_ID"
    TENANT_ID = "TENANT_ID"
    MS_TODO_ACCESS_TOKEN = "MS_TODO_ACCESS_TOKEN"
    MS_TODO_REFRESH_TOKEN = "MS_TODO_REFRESH_TOKEN"
    MS_TODO_TOKEN_EXPIRES_AT = "MS_TODO_TOKEN_EXPIRES_AT"

    # GitHub
    GITHUB_TOKEN = "GITHUB_TOKEN"

    # Webhooks and subscriptions
    GITHUB_WEBHOOK_SECRET = "GITHUB_WEBHOOK_SECRET"
    GRAPH_SUBSCRIPTION_SECRET = "GRAPH_SUBSCRIPTION_SECRET"
    GRAPH_SUBSCRIPTION_IDS = "GRAPH_SUBSCRIPTION_IDS"
    SUBSCRIPTION_RENEWAL_SCHEDULE = "SUBSCRIPTION_RENEWAL_SCHEDULE"

    # Persistence
    TOKEN_ENCRYPTION_KEY = "TOKEN_ENCRYPTION_KEY"

    # Feature flags
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    ENABLE_SYNC_LEDGER = "ENABLE_SYNC_LEDGER"
    ENABLE_MAPPING_CACHE = "ENABLE_MAPPING_CACHE"
    ENABLE_STATUS_WRITEBACK = "ENABLE_STATUS_WRITEBACK"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class QueueName(str, Enum):
    """Queue names used by the engine."""

    LOGS = "logs-queue"


class GitHubEvent(str, Enum):
    """GitHub webhook event names the engine looks at."""

    ISSUES = "issues"


class GitHubHeader(str, Enum):
    """GitHub webhook request headers."""

    SIGNATURE = "x-hub-signature-256"
    EVENT = "x-github-event"
    DELIVERY = "x-github-delivery"


class GraphChangeType(str, Enum):
    """Change types carried by Graph change notifications."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class Limits:
    """System limits and thresholds."""

    # Graph caps To Do subscriptions at 4230 minutes (70.5 hours)
    MAX_SUBSCRIPTION_LIFETIME_MINUTES = 4230
    TOKEN_REFRESH_BUFFER_MINUTES = 5
    DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
    DEFAULT_FANOUT_WORKERS = 4
    DEFAULT_CLAIM_TTL_SECONDS = 300
    MAX_PAGES = 50


class Timeouts:
    """Timeout values in seconds."""

    EXTERNAL_API_CALL = 30
    TOKEN_REFRESH = 30


class Schedules:
    """NCRONTAB schedules for timer triggers."""

    SUBSCRIPTION_RENEWAL = "0 0 */12 * * *"
