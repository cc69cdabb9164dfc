"""
Centralized configuration management for the Integrity Sync engine.

This module provides a unified configuration system with support for:
- Environment variables (Azure Functions application settings)
- Feature flags
- Validation using Pydantic
"""

import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import TODO_SCOPES, EnvironmentVariable, Limits, LogLevel, QueueName, Schedules


def _env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment variable among ``names``."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _env_int(name: str) -> Optional[int]:
    value = _env(name)
    return int(value) if value else None


def _env_list(name: str) -> List[str]:
    value = _env(name, default="")
    return [part.strip() for part in value.split(",") if part.strip()]


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class GraphConfig(BaseModel):
    """Microsoft Graph (To Do) OAuth client and bootstrap credential."""

    client_id: Optional[str] = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.MS_TODO_CLIENT_ID.value, EnvironmentVariable.CLIENT_ID.value
        ),
        description="Azure AD application (client) id",
    )
    client_secret: Optional[str] = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.MS_TODO_CLIENT_SECRET.value,
            EnvironmentVariable.CLIENT_SECRET.value,
        ),
        description="Azure AD client secret",
    )
    tenant_id: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.MS_TODO_TENANT_ID.value,
            EnvironmentVariable.TENANT_ID.value,
            default="organizations",
        ),
        description="Azure AD tenant used for the token endpoint",
    )
    access_token: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.MS_TODO_ACCESS_TOKEN.value),
        description="Bootstrap access token",
    )
    refresh_token: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.MS_TODO_REFRESH_TOKEN.value),
        description="Bootstrap refresh token",
    )
    token_expires_at: Optional[int] = Field(
        default_factory=lambda: _env_int(EnvironmentVariable.MS_TODO_TOKEN_EXPIRES_AT.value),
        description="Bootstrap access token expiry (unix epoch milliseconds)",
    )
    scopes: str = Field(default=TODO_SCOPES, description="Scopes requested on refresh")

    def has_client_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def has_any_token(self) -> bool:
        return bool(self.access_token or self.refresh_token)


class GitHubConfig(BaseModel):
    """GitHub API access."""

    token: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.GITHUB_TOKEN.value),
        description="GitHub personal access or installation token",
    )


class WebhookConfig(BaseModel):
    """Shared secrets used to authenticate inbound webhooks."""

    github_webhook_secret: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.GITHUB_WEBHOOK_SECRET.value),
        description="HMAC secret configured on the GitHub webhook",
    )
    graph_subscription_secret: Optional[str] = Field(
        default_factory=lambda: _env(EnvironmentVariable.GRAPH_SUBSCRIPTION_SECRET.value),
        description="clientState value registered with the Graph subscription",
    )


class SubscriptionConfig(BaseModel):
    """Graph change-notification subscription renewal."""

    subscription_ids: List[str] = Field(
        default_factory=lambda: _env_list(EnvironmentVariable.GRAPH_SUBSCRIPTION_IDS.value),
        description="Subscription ids to renew",
    )
    max_lifetime_minutes: int = Field(
        default=Limits.MAX_SUBSCRIPTION_LIFETIME_MINUTES,
        description="Lifetime requested on every renewal",
    )
    schedule: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.SUBSCRIPTION_RENEWAL_SCHEDULE.value,
            default=Schedules.SUBSCRIPTION_RENEWAL,
        ),
        description="Renewal timer NCRONTAB schedule",
    )

    @field_validator("subscription_ids", mode="before")
    def split_subscription_ids(cls, v: Any) -> List[str]:
        """Accept a comma separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("max_lifetime_minutes")
    def validate_lifetime(cls, v: int) -> int:
        if v <= 0 or v > Limits.MAX_SUBSCRIPTION_LIFETIME_MINUTES:
            raise ValueError(
                f"max_lifetime_minutes must be between 1 and "
                f"{Limits.MAX_SUBSCRIPTION_LIFETIME_MINUTES}"
            )
        return v


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default=QueueName.LOGS.value, description="Logs queue name")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    queue_batch_size: int = Field(default=10, description="Log entries batched per queue flush")

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class FeatureFlags(BaseModel):
    """Feature flags for controlling engine behavior."""

    enable_logs_queue: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_LOGS_QUEUE.value, False),
        description="Ship structured logs to the logs queue",
    )
    enable_sync_ledger: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_SYNC_LEDGER.value, True),
        description="Record keyed sync records in the database",
    )
    enable_mapping_cache: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_MAPPING_CACHE.value, True),
        description="Consult and populate the list/repository mapping table",
    )
    enable_status_writeback: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_STATUS_WRITEBACK.value, False),
        description="Mirror To Do status changes onto the linked GitHub issue",
    )


class ProcessingConfig(BaseModel):
    """Configuration for processing behavior."""

    http_timeout: int = Field(default=30, description="Outbound HTTP timeout (seconds)")
    token_refresh_buffer_minutes: int = Field(
        default=Limits.TOKEN_REFRESH_BUFFER_MINUTES,
        description="Refresh access tokens this long before they expire",
    )
    fanout_workers: int = Field(
        default=Limits.DEFAULT_FANOUT_WORKERS,
        description="Worker threads used for notification fan-out",
    )
    claim_ttl_seconds: int = Field(
        default=Limits.DEFAULT_CLAIM_TTL_SECONDS,
        description="Age after which a pending sync claim counts as abandoned",
    )


class SecurityConfig(BaseModel):
    """Security-related configuration."""

    encryption_key: str = Field(
        default_factory=lambda: _env(
            EnvironmentVariable.TOKEN_ENCRYPTION_KEY.value, default="integrity-sync"
        ),
        description="pgcrypto key prefix for tokens stored in the database",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    graph: GraphConfig = Field(default_factory=GraphConfig, description="Graph configuration")
    github: GitHubConfig = Field(default_factory=GitHubConfig, description="GitHub configuration")
    webhooks: WebhookConfig = Field(
        default_factory=WebhookConfig, description="Webhook secrets"
    )
    subscriptions: SubscriptionConfig = Field(
        default_factory=SubscriptionConfig, description="Subscription renewal"
    )
    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    features: FeatureFlags = Field(default_factory=FeatureFlags, description="Feature flags")
    processing: ProcessingConfig = Field(
        default_factory=ProcessingConfig, description="Processing configuration"
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()

    def service_status(self) -> Dict[str, Any]:
        """Which integrations are configured, as reported by the health endpoint."""
        return {
            "graphApi": self.graph.has_any_token(),
            "github": bool(self.github.token),
            "webhooks": {
                "github": bool(self.webhooks.github_webhook_secret),
                "graph": bool(self.webhooks.graph_subscription_secret),
            },
        }


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
