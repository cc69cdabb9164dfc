"""
Keyed idempotency ledger for cross-system mutations.

Each mutation ("mirror this issue into To Do", "mirror this task into
GitHub") is keyed by a fingerprint. ``claim`` is an atomic insert-if-absent
on that key, so two deliveries of the same event racing in different
function instances produce exactly one winner.

Records move through PENDING -> TARGET_CREATED -> LINKED. A record left in
FAILED, or PENDING for longer than the claim TTL, can be claimed again.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db import DatabaseManager, SyncRecord, as_utc, utc_now
from ..enums import ExternalSystem, SyncStatus
from ..exceptions import ErrorCode, RepositoryError
from ..utils.logger import get_logger


class SyncRecordView(BaseModel):
    """Detached snapshot of a SyncRecord row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    fingerprint: str
    source_system: str
    source_container: Optional[str] = None
    source_id: str
    source_url: Optional[str] = None
    target_system: str
    target_container: Optional[str] = None
    target_id: Optional[str] = None
    target_url: Optional[str] = None
    status: SyncStatus
    attempts: int
    event_id: Optional[str] = None


class ClaimResult(BaseModel):
    acquired: bool
    record: SyncRecordView

    @property
    def status(self) -> SyncStatus:
        return self.record.status

    @property
    def resumable(self) -> bool:
        """The target exists but the link was never written back."""
        return not self.acquired and self.record.status == SyncStatus.TARGET_CREATED


class SyncLedger:
    def __init__(self, db_manager: DatabaseManager, claim_ttl: timedelta = timedelta(minutes=5)):
        self.db_manager = db_manager
        self.claim_ttl = claim_ttl
        self.logger = get_logger()

    def claim(
        self,
        fingerprint: str,
        source_system: ExternalSystem,
        source_id: str,
        target_system: ExternalSystem,
        source_container: Optional[str] = None,
        source_url: Optional[str] = None,
        event_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ClaimResult:
        """
        Claim the right to perform the mutation identified by ``fingerprint``.

        Returns:
            ClaimResult with ``acquired=True`` for the single caller that may
            go ahead, ``acquired=False`` (and the current record) otherwise.
        """
        session = self.db_manager.get_session()
        try:
            record = SyncRecord(
                fingerprint=fingerprint,
                source_system=ExternalSystem(source_system).value,
                source_container=source_container,
                source_id=source_id,
                source_url=source_url,
                target_system=ExternalSystem(target_system).value,
                status=SyncStatus.PENDING.value,
                event_id=event_id,
                attempts=1,
                context=context,
            )
            session.add(record)
            try:
                session.commit()
                return ClaimResult(acquired=True, record=SyncRecordView.model_validate(record))
            except IntegrityError:
                session.rollback()

            existing = (
                session.query(SyncRecord).filter(SyncRecord.fingerprint == fingerprint).one()
            )
            if self._reclaimable(existing):
                result = session.execute(
                    update(SyncRecord)
                    .where(
                        SyncRecord.id == existing.id,
                        SyncRecord.status == existing.status,
                        SyncRecord.attempts == existing.attempts,
                    )
                    .values(
                        status=SyncStatus.PENDING.value,
                        attempts=existing.attempts + 1,
                        event_id=event_id,
                        last_error=None,
                        updated_at=utc_now(),
                    )
                )
                session.commit()
                session.refresh(existing)
                if result.rowcount == 1:
                    self.logger.info(
                        "Reclaimed sync record",
                        extra={"fingerprint": fingerprint, "attempts": existing.attempts},
                    )
                    return ClaimResult(
                        acquired=True, record=SyncRecordView.model_validate(existing)
                    )

            return ClaimResult(acquired=False, record=SyncRecordView.model_validate(existing))
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                "Failed to claim sync record",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                fingerprint=fingerprint,
            )
        finally:
            self.db_manager.close_session(session)

    def _reclaimable(self, record: SyncRecord) -> bool:
        if record.status == SyncStatus.FAILED.value:
            return True
        if record.status == SyncStatus.PENDING.value:
            age = datetime.now(timezone.utc) - as_utc(record.updated_at)
            return age > self.claim_ttl
        return False

    def _update(self, record_id: str, **values: Any) -> None:
        session = self.db_manager.get_session()
        try:
            values["updated_at"] = utc_now()
            session.execute(update(SyncRecord).where(SyncRecord.id == record_id).values(**values))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                "Failed to update sync record",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                record_id=record_id,
            )
        finally:
            self.db_manager.close_session(session)

    def record_target(
        self,
        record_id: str,
        target_id: str,
        target_url: Optional[str] = None,
        target_container: Optional[str] = None,
    ) -> None:
        self._update(
            record_id,
            status=SyncStatus.TARGET_CREATED.value,
            target_id=target_id,
            target_url=target_url,
            target_container=target_container,
        )

    def mark_linked(self, record_id: str) -> None:
        self._update(record_id, status=SyncStatus.LINKED.value)

    def mark_failed(self, record_id: str, error: str) -> None:
        self._update(record_id, status=SyncStatus.FAILED.value, last_error=error[:2000])

    def find_by_issue_url(self, issue_url: str) -> Optional[SyncRecordView]:
        """
        The record linking a GitHub issue to a To Do task, whichever side it
        started from.
        """
        return self._find_one(
            or_(
                (SyncRecord.source_system == ExternalSystem.GITHUB.value)
                & (SyncRecord.source_url == issue_url),
                (SyncRecord.target_system == ExternalSystem.GITHUB.value)
                & (SyncRecord.target_url == issue_url),
            ),
            SyncRecord.target_id.isnot(None),
        )

    def is_mirrored_issue(self, issue_url: str) -> bool:
        """True when the issue was itself created from a To Do task."""
        return (
            self._find_one(
                SyncRecord.target_system == ExternalSystem.GITHUB.value,
                SyncRecord.target_url == issue_url,
            )
            is not None
        )

    def _find_one(self, *criteria) -> Optional[SyncRecordView]:
        session = self.db_manager.get_session()
        try:
            record = (
                session.query(SyncRecord)
                .filter(*criteria)
                .order_by(SyncRecord.updated_at.desc())
                .first()
            )
            return SyncRecordView.model_validate(record) if record else None
        except SQLAlchemyError as e:
            raise RepositoryError("Failed to read sync record", cause=e)
        finally:
            self.db_manager.close_session(session)


def task_coordinates(record: SyncRecordView) -> Optional[tuple]:
    """(list_id, task_id) of the To Do side of a record, if known."""
    if record.source_system == ExternalSystem.TODO.value:
        return record.source_container, record.source_id
    if record.target_id:
        return record.target_container, record.target_id
    return None
