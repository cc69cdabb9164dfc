"""
Unit tests for Graph subscription renewal and the health report.
"""

import time
from datetime import datetime, timedelta, timezone

import pytest

from integrity_sync.config import SubscriptionConfig
from integrity_sync.constants import VERSION
from integrity_sync.health import build_health_report
from integrity_sync.renewal import RenewalReport, SubscriptionRenewer

NOW = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def renewer(todo):
    return SubscriptionRenewer(todo, SubscriptionConfig(subscription_ids=["sub-1", "sub-2"]))


class TestSubscriptionRenewer:
    def test_next_expiration_uses_maximum_lifetime(self, renewer):
        assert renewer.next_expiration(NOW) == NOW + timedelta(minutes=4230)

    def test_renews_every_subscription(self, renewer, todo):
        report = renewer.renew_all(now=NOW)

        assert report.success
        assert report.renewed == ["sub-1", "sub-2"]
        assert report.expires_at == NOW + timedelta(minutes=4230)
        assert todo.renewed == [("sub-1", report.expires_at), ("sub-2", report.expires_at)]

    def test_one_failure_does_not_stop_the_others(self, renewer, todo):
        todo.failing_subscriptions.add("sub-1")

        report = renewer.renew_all(now=NOW)

        assert not report.success
        assert report.renewed == ["sub-2"]
        assert report.failed == {"sub-1": "subscription not found"}

    def test_no_subscriptions_is_a_no_op(self, todo):
        renewer = SubscriptionRenewer(todo, SubscriptionConfig(subscription_ids=[]))

        report = renewer.renew_all(now=NOW)

        assert report == RenewalReport()
        assert todo.renewed == []

    def test_missing_graph_credential_fails_every_subscription(self, renewer, todo):
        todo.token_manager.has_credential_source.return_value = False

        report = renewer.renew_all(now=NOW)

        assert report.renewed == []
        assert set(report.failed) == {"sub-1", "sub-2"}
        assert todo.renewed == []

    def test_shorter_lifetime(self, todo):
        config = SubscriptionConfig(subscription_ids=["sub-1"], max_lifetime_minutes=60)

        report = SubscriptionRenewer(todo, config).renew_all(now=NOW)

        assert report.expires_at == NOW + timedelta(hours=1)


class TestHealthReport:
    def test_report_shape(self, app_config):
        report = build_health_report(app_config, now=NOW)

        assert report["status"] == "healthy"
        assert report["version"] == VERSION
        assert report["timestamp"] == NOW.isoformat()
        assert isinstance(report["uptime"], int)
        assert report["services"] == {
            "graphApi": True,
            "github": True,
            "webhooks": {"github": True, "graph": True},
        }

    def test_uptime_counts_from_start(self, app_config):
        report = build_health_report(app_config, started_at=time.monotonic() - 90)

        assert report["uptime"] >= 90

    def test_unconfigured_services(self, app_config):
        app_config.github.token = None
        app_config.webhooks.graph_subscription_secret = None

        services = build_health_report(app_config)["services"]

        assert services["github"] is False
        assert services["webhooks"]["graph"] is False
