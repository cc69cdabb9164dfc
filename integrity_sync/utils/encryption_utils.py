"""
Encryption utilities for persisted OAuth tokens.

Handles cross-database encryption (PostgreSQL pgcrypto, SQLite plaintext for testing).
"""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session


def _key_for(encryption_key: str, system_name: str, kind: str) -> str:
    return f"{encryption_key}_{system_name}_{kind}"


def encrypt_value(session: Session, value: str, key: str) -> bytes:
    """
    Encrypt a value using database-specific encryption.

    Args:
        session: Database session
        value: Value to encrypt
        key: Symmetric key passed to pgcrypto

    Returns:
        Encrypted bytes (UTF-8 bytes of the plain value on SQLite)
    """
    if session.bind.dialect.name == "postgresql":
        return session.execute(
            text("SELECT pgp_sym_encrypt(:data, :key)"), {"data": value, "key": key}
        ).scalar()
    return value.encode("utf-8")


def decrypt_value(session: Session, encrypted_value: Optional[bytes], key: str) -> Optional[str]:
    """Inverse of encrypt_value. Returns None for an empty column."""
    if not encrypted_value:
        return None

    if session.bind.dialect.name == "postgresql":
        return session.execute(
            text("SELECT pgp_sym_decrypt(:data, :key)"), {"data": encrypted_value, "key": key}
        ).scalar()
    if isinstance(encrypted_value, bytes):
        return encrypted_value.decode("utf-8")
    return encrypted_value


def encrypt_token(
    session: Session, token: str, encryption_key: str, system_name: str, kind: str
) -> bytes:
    """Encrypt an access or refresh token with a per-system, per-kind key."""
    return encrypt_value(session, token, _key_for(encryption_key, system_name, kind))


def decrypt_token(
    session: Session, encrypted: Optional[bytes], encryption_key: str, system_name: str, kind: str
) -> Optional[str]:
    return decrypt_value(session, encrypted, _key_for(encryption_key, system_name, kind))
