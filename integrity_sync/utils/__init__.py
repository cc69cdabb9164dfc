"""Utility modules for the Integrity Sync engine."""

from .encryption_utils import decrypt_token, decrypt_value, encrypt_token, encrypt_value
from .hash_utils import calculate_data_hash, calculate_fingerprint
from .json_utils import dumps, loads
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    CorrelationContextFilter,
    configure_logging,
    get_logger,
)

__all__ = [
    # Encryption utilities
    "encrypt_value",
    "decrypt_value",
    "encrypt_token",
    "decrypt_token",
    # Hash utilities
    "calculate_data_hash",
    "calculate_fingerprint",
    # JSON utilities
    "dumps",
    "loads",
    # Logging utilities
    "ContextAwareLogger",
    "CorrelationContextFilter",
    "AzureQueueHandler",
    "configure_logging",
    "get_logger",
]
