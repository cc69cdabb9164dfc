"""
Credential stores used by the token manager.

The in-memory store keeps the credential for the lifetime of a warm function
host. The database store persists it so rotated refresh tokens survive
restarts and are visible to every function instance.
"""

import threading
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import GraphConfig
from ..db import DatabaseManager, StoredCredential, as_utc
from ..exceptions import ErrorCode, RepositoryError
from ..schemas.credential_schemas import Credential
from ..utils.encryption_utils import decrypt_token, encrypt_token
from ..utils.logger import get_logger

GRAPH_SYSTEM_NAME = "microsoft_todo"


def bootstrap_credential(graph_config: GraphConfig) -> Optional[Credential]:
    """The credential provisioned through application settings, if any."""
    if not graph_config.has_any_token():
        return None
    return Credential.from_epoch_ms(
        graph_config.access_token, graph_config.refresh_token, graph_config.token_expires_at
    )


class CredentialStore:
    """Interface: load and save the current credential for one system."""

    def load(self) -> Optional[Credential]:
        raise NotImplementedError

    def save(self, credential: Credential) -> None:
        raise NotImplementedError


class InMemoryCredentialStore(CredentialStore):
    def __init__(self, credential: Optional[Credential] = None):
        self._credential = credential
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, graph_config: GraphConfig) -> "InMemoryCredentialStore":
        return cls(bootstrap_credential(graph_config))

    def load(self) -> Optional[Credential]:
        with self._lock:
            return self._credential

    def save(self, credential: Credential) -> None:
        with self._lock:
            self._credential = credential


class DatabaseCredentialStore(CredentialStore):
    """
    Persist the credential in ``stored_credentials``.

    Token values are encrypted with pgcrypto on PostgreSQL. When nothing has
    been stored yet, ``seed`` (normally the bootstrap credential) is returned.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        encryption_key: str,
        system_name: str = GRAPH_SYSTEM_NAME,
        seed: Optional[Credential] = None,
    ):
        self.db_manager = db_manager
        self.encryption_key = encryption_key
        self.system_name = system_name
        self.seed = seed
        self.logger = get_logger()

    def load(self) -> Optional[Credential]:
        session = self.db_manager.get_session()
        try:
            record = (
                session.query(StoredCredential)
                .filter(StoredCredential.system_name == self.system_name)
                .first()
            )
            if record is None:
                return self.seed
            return Credential(
                access_token=decrypt_token(
                    session, record.access_token, self.encryption_key, self.system_name, "access"
                )
                or "",
                refresh_token=decrypt_token(
                    session, record.refresh_token, self.encryption_key, self.system_name, "refresh"
                ),
                expires_at=as_utc(record.expires_at),
            )
        except SQLAlchemyError as e:
            raise RepositoryError(
                "Failed to load stored credential",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                system_name=self.system_name,
            )
        finally:
            self.db_manager.close_session(session)

    def save(self, credential: Credential) -> None:
        session = self.db_manager.get_session()
        try:
            record = (
                session.query(StoredCredential)
                .filter(StoredCredential.system_name == self.system_name)
                .first()
            )
            if record is None:
                record = StoredCredential(system_name=self.system_name)
                session.add(record)

            record.access_token = encrypt_token(
                session, credential.access_token, self.encryption_key, self.system_name, "access"
            )
            record.refresh_token = (
                encrypt_token(
                    session,
                    credential.refresh_token,
                    self.encryption_key,
                    self.system_name,
                    "refresh",
                )
                if credential.refresh_token
                else None
            )
            record.expires_at = credential.expires_at
            session.commit()

            self.logger.info(
                "Stored refreshed credential",
                extra={"system_name": self.system_name, "expires_at": credential.expires_at},
            )
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                "Failed to store credential",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                system_name=self.system_name,
            )
        finally:
            self.db_manager.close_session(session)
