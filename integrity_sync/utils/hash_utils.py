"""
Hash utilities for keyed idempotency.

A fingerprint identifies one cross-system mutation (for example "this GitHub
issue mirrored into To Do"). Deliveries of the same event, possibly running
concurrently in different function instances, produce the same fingerprint.
"""

import hashlib
from typing import Any, Dict

from ..enums import ExternalSystem
from ..exceptions import ErrorCode, ValidationError
from .json_utils import dumps


def calculate_data_hash(data: Dict[str, Any]) -> str:
    """
    Calculate a deterministic SHA-256 hash of a JSON-serializable mapping.

    Raises:
        ValidationError: If data is None
    """
    if data is None:
        raise ValidationError(
            "Cannot calculate hash for None data",
            error_code=ErrorCode.INVALID_FORMAT,
            field="data",
        )
    serialized = dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def calculate_fingerprint(
    source_system: ExternalSystem,
    source_key: str,
    target_system: ExternalSystem,
) -> str:
    """Fingerprint of "mirror ``source_key`` from ``source_system`` into ``target_system``"."""
    return calculate_data_hash(
        {
            "source_system": ExternalSystem(source_system).value,
            "source_key": source_key,
            "target_system": ExternalSystem(target_system).value,
        }
    )
