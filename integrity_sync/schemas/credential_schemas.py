"""
Pydantic schemas for OAuth credentials and token endpoint responses.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import Limits


class Credential(BaseModel):
    """
    A bearer credential for an external system.

    ``expires_at`` is the true expiry reported by the issuer. The refresh
    buffer is applied once, in ``is_usable``.
    """

    model_config = ConfigDict(frozen=True)

    # Empty when only a refresh token was provisioned
    access_token: str = Field(default="", repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    expires_at: datetime

    @field_validator("expires_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Naive datetimes are interpreted as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_usable(self, buffer: timedelta, now: Optional[datetime] = None) -> bool:
        if not self.access_token:
            return False
        now = now or datetime.now(timezone.utc)
        return now < self.expires_at - buffer

    @classmethod
    def from_epoch_ms(
        cls,
        access_token: Optional[str],
        refresh_token: Optional[str],
        expires_at_ms: Optional[int],
    ) -> "Credential":
        """Build the bootstrap credential from application settings."""
        access_token = access_token or ""
        if access_token and expires_at_ms:
            expires_at = datetime.fromtimestamp(expires_at_ms / 1000, tz=timezone.utc)
        else:
            # Unknown expiry: force a refresh on first use
            expires_at = datetime.fromtimestamp(0, tz=timezone.utc)
        return cls(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)


class TokenResponse(BaseModel):
    """Successful response of the Microsoft identity platform token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: int = Field(default=Limits.DEFAULT_TOKEN_LIFETIME_SECONDS, gt=0)
    token_type: str = "Bearer"
    scope: Optional[str] = None

    def to_credential(
        self, previous_refresh_token: Optional[str], now: Optional[datetime] = None
    ) -> Credential:
        """A response without a rotated refresh token keeps the previous one."""
        now = now or datetime.now(timezone.utc)
        return Credential(
            access_token=self.access_token,
            refresh_token=self.refresh_token or previous_refresh_token,
            expires_at=now + timedelta(seconds=self.expires_in),
        )
