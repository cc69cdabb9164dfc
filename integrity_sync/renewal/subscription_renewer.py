"""
Renewal of Microsoft Graph change-notification subscriptions.

To Do subscriptions expire after at most 4230 minutes. The renewal timer runs
every 12 hours, so a lease survives several consecutive failed attempts.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..clients.graph_client import TodoClient
from ..config import SubscriptionConfig
from ..exceptions import BaseError
from ..utils.logger import get_logger


class RenewalReport(BaseModel):
    """Outcome of one renewal run."""

    expires_at: Optional[datetime] = None
    renewed: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict, description="id -> error message")

    @property
    def success(self) -> bool:
        return not self.failed


class SubscriptionRenewer:
    def __init__(self, todo: TodoClient, subscription_config: SubscriptionConfig):
        self.todo = todo
        self.subscription_config = subscription_config
        self.logger = get_logger()

    def next_expiration(self, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return now + timedelta(minutes=self.subscription_config.max_lifetime_minutes)

    def renew_all(self, now: Optional[datetime] = None) -> RenewalReport:
        subscription_ids = self.subscription_config.subscription_ids
        if not subscription_ids:
            self.logger.info("No Graph subscription ids configured, nothing to renew")
            return RenewalReport()

        expires_at = self.next_expiration(now)
        report = RenewalReport(expires_at=expires_at)

        if not self.todo.token_manager.has_credential_source():
            self.logger.error(
                "Graph authentication not configured, cannot renew subscriptions",
                extra={"subscription_count": len(subscription_ids)},
            )
            report.failed = {sid: "Graph authentication not configured" for sid in subscription_ids}
            return report

        for subscription_id in subscription_ids:
            try:
                self.todo.renew_subscription(subscription_id, expires_at)
            except BaseError as e:
                # Logged by the error itself; keep going with the next lease
                report.failed[subscription_id] = e.message
                continue
            report.renewed.append(subscription_id)
            self.logger.info(
                "Renewed Graph subscription",
                extra={"subscription_id": subscription_id, "expires_at": expires_at.isoformat()},
            )

        if report.failed:
            self.logger.warning(
                "Some Graph subscriptions were not renewed",
                extra={"renewed": len(report.renewed), "failed": list(report.failed)},
            )
        return report
