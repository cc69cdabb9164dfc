"""
SQLAlchemy models and database setup for the sync engine.
"""

from .db_base import (
    JSON,
    EncryptedBinary,
    TimestampMixin,
    UUIDMixin,
    as_utc,
    utc_now,
)
from .db_config import Base, DatabaseConfig, DatabaseManager, import_all_models, initialize_db
from .db_sync_models import ContainerMapping, StoredCredential, SyncRecord

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "EncryptedBinary",
    "TimestampMixin",
    "UUIDMixin",
    "as_utc",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "initialize_db",
    "import_all_models",
    # Models
    "SyncRecord",
    "ContainerMapping",
    "StoredCredential",
]
