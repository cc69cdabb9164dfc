"""
Unit tests for the keyed idempotency ledger.
"""

from datetime import timedelta

from sqlalchemy import update

from integrity_sync.db import SyncRecord, utc_now
from integrity_sync.enums import ExternalSystem, SyncStatus
from integrity_sync.sync.sync_ledger import SyncLedger, task_coordinates
from integrity_sync.utils.hash_utils import calculate_fingerprint

ISSUE_URL = "https://github.com/Acme/widgets/issues/7"


def _claim_issue(ledger, event_id="delivery-1"):
    return ledger.claim(
        calculate_fingerprint(ExternalSystem.GITHUB, ISSUE_URL, ExternalSystem.TODO),
        source_system=ExternalSystem.GITHUB,
        source_id="7",
        target_system=ExternalSystem.TODO,
        source_container="Acme/widgets",
        source_url=ISSUE_URL,
        event_id=event_id,
    )


def _age_record(db_manager, record_id, minutes):
    session = db_manager.get_session()
    session.execute(
        update(SyncRecord)
        .where(SyncRecord.id == record_id)
        .values(updated_at=utc_now() - timedelta(minutes=minutes))
    )
    session.commit()
    db_manager.close_session(session)


class TestClaim:
    def test_first_claim_acquires(self, ledger):
        claim = _claim_issue(ledger)

        assert claim.acquired
        assert claim.status == SyncStatus.PENDING
        assert claim.record.attempts == 1

    def test_second_claim_does_not_acquire(self, ledger):
        """A redelivery while the first is in flight loses the claim."""
        first = _claim_issue(ledger, "delivery-1")
        second = _claim_issue(ledger, "delivery-2")

        assert first.acquired
        assert not second.acquired
        assert second.record.id == first.record.id
        assert not second.resumable

    def test_linked_record_is_never_reclaimed(self, ledger):
        claim = _claim_issue(ledger)
        ledger.record_target(claim.record.id, "task-1", target_container="list-1")
        ledger.mark_linked(claim.record.id)

        again = _claim_issue(ledger)

        assert not again.acquired
        assert again.status == SyncStatus.LINKED

    def test_failed_record_is_reclaimed(self, ledger):
        claim = _claim_issue(ledger)
        ledger.mark_failed(claim.record.id, "Graph returned 503")

        again = _claim_issue(ledger)

        assert again.acquired
        assert again.record.attempts == 2
        assert again.status == SyncStatus.PENDING

    def test_stale_pending_record_is_reclaimed(self, clean_db):
        ledger = SyncLedger(clean_db, claim_ttl=timedelta(minutes=5))
        claim = _claim_issue(ledger)
        _age_record(clean_db, claim.record.id, minutes=10)

        assert _claim_issue(ledger).acquired

    def test_fresh_pending_record_is_not_reclaimed(self, clean_db):
        ledger = SyncLedger(clean_db, claim_ttl=timedelta(minutes=5))
        _claim_issue(ledger)

        assert not _claim_issue(ledger).acquired

    def test_target_created_is_resumable(self, ledger):
        """The target exists but the link write-back never happened."""
        claim = _claim_issue(ledger)
        ledger.record_target(claim.record.id, "task-1", target_container="list-1")

        again = _claim_issue(ledger)

        assert not again.acquired
        assert again.resumable
        assert again.record.target_id == "task-1"


class TestLookups:
    def test_find_by_issue_url_as_source(self, ledger):
        claim = _claim_issue(ledger)
        ledger.record_target(claim.record.id, "task-1", target_container="list-1")

        record = ledger.find_by_issue_url(ISSUE_URL)

        assert task_coordinates(record) == ("list-1", "task-1")

    def test_find_by_issue_url_as_target(self, ledger):
        """Issues created from tasks are found through target_url."""
        claim = ledger.claim(
            calculate_fingerprint(ExternalSystem.TODO, "list-9/task-9", ExternalSystem.GITHUB),
            source_system=ExternalSystem.TODO,
            source_id="task-9",
            target_system=ExternalSystem.GITHUB,
            source_container="list-9",
        )
        ledger.record_target(claim.record.id, "7", ISSUE_URL, "Acme/widgets")

        record = ledger.find_by_issue_url(ISSUE_URL)

        assert task_coordinates(record) == ("list-9", "task-9")
        assert ledger.is_mirrored_issue(ISSUE_URL)

    def test_pending_claim_without_target_is_not_found(self, ledger):
        _claim_issue(ledger)

        assert ledger.find_by_issue_url(ISSUE_URL) is None
        assert not ledger.is_mirrored_issue(ISSUE_URL)

    def test_failure_is_recorded(self, ledger, db_session):
        claim = _claim_issue(ledger)
        ledger.mark_failed(claim.record.id, "x" * 5000)

        record = db_session.get(SyncRecord, claim.record.id)

        assert record.status == SyncStatus.FAILED.value
        assert len(record.last_error) == 2000
