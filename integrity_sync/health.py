"""
Health report served by ``GET /api/health``.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import AppConfig
from .constants import VERSION

_STARTED_AT = time.monotonic()


def build_health_report(
    config: AppConfig, started_at: Optional[float] = None, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Static liveness report. Flags reflect configuration only, no outbound calls are made."""
    started_at = _STARTED_AT if started_at is None else started_at
    now = now or datetime.now(timezone.utc)
    return {
        "status": "healthy",
        "version": VERSION,
        "uptime": int(time.monotonic() - started_at),
        "timestamp": now.isoformat(),
        "services": config.service_status(),
    }
