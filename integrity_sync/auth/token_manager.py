"""
Microsoft Graph OAuth token lifecycle.

Hands out a usable access token, refreshing it through the refresh-token
grant when it is missing, expired, or inside the refresh buffer. Refreshes
are single-flight per process: concurrent callers wait on one lock and
reuse whatever credential the first caller installed.
"""

import threading
from datetime import timedelta
from typing import Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from ..config import GraphConfig
from ..constants import TOKEN_ENDPOINT_TEMPLATE, Timeouts
from ..exceptions import AuthError, ErrorCode
from ..schemas.credential_schemas import Credential, TokenResponse
from ..utils.logger import get_logger
from .credential_store import CredentialStore


class TokenManager:
    def __init__(
        self,
        graph_config: GraphConfig,
        store: CredentialStore,
        refresh_buffer: timedelta = timedelta(minutes=5),
        http: Optional[requests.Session] = None,
        timeout: int = Timeouts.TOKEN_REFRESH,
    ):
        self.graph_config = graph_config
        self.store = store
        self.refresh_buffer = refresh_buffer
        self.http = http or requests.Session()
        self.timeout = timeout
        self.logger = get_logger()
        self._refresh_lock = threading.Lock()

    @property
    def token_endpoint(self) -> str:
        return TOKEN_ENDPOINT_TEMPLATE.format(tenant=self.graph_config.tenant_id)

    def has_credential_source(self) -> bool:
        """True when some access or refresh token is known at all."""
        credential = self.store.load()
        if credential and (credential.access_token or credential.refresh_token):
            return True
        return self.graph_config.has_any_token()

    def acquire(self, force_refresh: bool = False, stale_token: Optional[str] = None) -> Credential:
        """
        Return a credential whose access token is usable right now.

        Args:
            force_refresh: Skip the cache, typically after the API answered 401.
            stale_token: The access token that was rejected. If another caller
                already replaced it, that newer credential is returned instead
                of refreshing a second time.

        Raises:
            AuthError: No refresh token is available, or the refresh was rejected.
        """
        cached = self.store.load()
        if not force_refresh and cached and cached.is_usable(self.refresh_buffer):
            return cached

        with self._refresh_lock:
            latest = self.store.load()
            if latest and latest.is_usable(self.refresh_buffer):
                if not force_refresh or (stale_token and latest.access_token != stale_token):
                    return latest

            refresh_token = (latest.refresh_token if latest else None) or (
                self.graph_config.refresh_token
            )
            if not refresh_token:
                raise AuthError(
                    "No valid access token or refresh token available",
                    error_code=ErrorCode.AUTH_NO_TOKEN,
                )

            try:
                credential = self._refresh(refresh_token)
            except AuthError:
                # Another function instance may have rotated the refresh token already
                reloaded = self.store.load()
                if (
                    reloaded
                    and reloaded != latest
                    and reloaded.is_usable(self.refresh_buffer)
                ):
                    self.logger.info("Using credential refreshed by another instance")
                    return reloaded
                raise

            self.store.save(credential)
            return credential

    def _refresh(self, refresh_token: str) -> Credential:
        if not self.graph_config.has_client_credentials():
            raise AuthError(
                "Missing client id or client secret for token refresh",
                error_code=ErrorCode.AUTH_NO_TOKEN,
            )

        form = {
            "client_id": self.graph_config.client_id,
            "client_secret": self.graph_config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
            "scope": self.graph_config.scopes,
        }

        try:
            response = self.http.post(self.token_endpoint, data=form, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(
                "Error refreshing token", error_code=ErrorCode.AUTH_REFRESH_FAILED, cause=e
            )

        if not response.ok:
            raise AuthError(
                "Token refresh failed",
                error_code=ErrorCode.AUTH_REFRESH_FAILED,
                http_status=response.status_code,
                response_body=response.text[:500],
            )

        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise AuthError(
                "Token endpoint returned an unexpected body",
                error_code=ErrorCode.AUTH_REFRESH_FAILED,
                cause=e,
            )

        credential = token_response.to_credential(previous_refresh_token=refresh_token)
        self.logger.info(
            "Access token refreshed",
            extra={
                "expires_at": credential.expires_at.isoformat(),
                "refresh_token_rotated": credential.refresh_token != refresh_token,
            },
        )
        return credential
