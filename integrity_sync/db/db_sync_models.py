"""
Persistence models for the sync engine.

Just the data structure - the claim/record logic lives in sync.sync_ledger and
the credential round trip in auth.credential_store.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from .db_base import JSON, EncryptedBinary, TimestampMixin, UUIDMixin
from .db_config import Base


class SyncRecord(Base, UUIDMixin, TimestampMixin):
    """One keyed cross-system mutation (create target + write link back)."""

    __tablename__ = "sync_records"

    # Idempotency key, see utils.hash_utils.calculate_fingerprint
    fingerprint = Column(String(64), nullable=False, unique=True)

    source_system = Column(String(20), nullable=False)
    source_container = Column(String(255), nullable=True)
    source_id = Column(String(255), nullable=False)
    source_url = Column(Text, nullable=True)

    target_system = Column(String(20), nullable=False)
    target_container = Column(String(255), nullable=True)
    target_id = Column(String(255), nullable=True)
    target_url = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default="pending")
    event_id = Column(String(255), nullable=True)
    attempts = Column(Integer, nullable=False, default=1)
    last_error = Column(Text, nullable=True)

    context = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_sync_source_url", "source_url"),
        Index("ix_sync_target_url", "target_url"),
    )


class ContainerMapping(Base, UUIDMixin, TimestampMixin):
    """Explicit To Do list <-> GitHub owner/repo mapping."""

    __tablename__ = "container_mappings"

    list_id = Column(String(255), nullable=False, unique=True)
    group_id = Column(String(255), nullable=True)
    owner = Column(String(255), nullable=False)
    repo = Column(String(255), nullable=False)

    __table_args__ = (UniqueConstraint("owner", "repo", name="uq_mapping_owner_repo"),)


class StoredCredential(Base, UUIDMixin, TimestampMixin):
    """Latest OAuth credential per external system, tokens encrypted at rest."""

    __tablename__ = "stored_credentials"

    system_name = Column(String(50), nullable=False, unique=True)
    access_token = Column(EncryptedBinary, nullable=False)
    refresh_token = Column(EncryptedBinary, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
