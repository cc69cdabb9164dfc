"""OAuth credential storage and token lifecycle."""

from .credential_store import (
    CredentialStore,
    DatabaseCredentialStore,
    InMemoryCredentialStore,
    bootstrap_credential,
)
from .token_manager import TokenManager

__all__ = [
    "CredentialStore",
    "DatabaseCredentialStore",
    "InMemoryCredentialStore",
    "bootstrap_credential",
    "TokenManager",
]
