# Overview: Service-layer approval gateway; commits approved staged records to the permanent sales store.

"""
Each staged record commits independently: a failure on one never rolls back
records committed earlier in the same call, and the caller gets one outcome per
requested id.

Outcome statuses:
- committed: new sales record written
- replaced: existing record for the same (team, date) overwritten on request
- conflict: a record for that day exists and replace_existing was false
- skipped: staged record is not approved
- failed: correction, constraint or storage failure (CommitFailure)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import CorrectionError
from ..extensions import db
from ..models import StagedRecord, ValidationLog
from ..models.uploads import STAGED_APPROVED
from ..pipeline.channels import ChannelBreakdown
from ..pipeline.settings import IngestSettings
from . import channel_service, sales_record_service
from .concurrency import day_locks, run_with_retry
from .upload_batch_service import merged_record

logger = logging.getLogger(__name__)

COMMITTED = "committed"
REPLACED = "replaced"
CONFLICT = "conflict"
SKIPPED = "skipped"
FAILED = "failed"

COMPARED_FIELDS = ("gross_sales", "net_sales", "order_count", "order_average")


@dataclass
class DuplicateConflict:
    """Side-by-side view of the committed day and the incoming record."""

    business_date: date
    team_id: str
    existing: dict
    incoming: dict

    @property
    def differences(self) -> dict:
        out = {}
        for name in COMPARED_FIELDS:
            before, after = self.existing.get(name), self.incoming.get(name)
            if str(before) != str(after):
                out[name] = {"existing": before, "incoming": after}
        return out

    def to_dict(self) -> dict:
        return {
            "date": self.business_date.isoformat(),
            "team_id": self.team_id,
            "existing": self.existing,
            "incoming": self.incoming,
            "differences": self.differences,
        }


@dataclass
class CommitOutcome:
    staged_id: int
    status: str
    sales_record_id: int | None = None
    error: str | None = None
    conflict: DuplicateConflict | None = None
    channels: list[ChannelBreakdown] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "staged_id": self.staged_id,
            "status": self.status,
            "sales_record_id": self.sales_record_id,
            "error": self.error,
            "conflict": self.conflict.to_dict() if self.conflict else None,
            "channels": [c.to_dict() for c in self.channels],
        }


@dataclass
class CommitReport:
    outcomes: list[CommitOutcome] = field(default_factory=list)

    def _count(self, *statuses: str) -> int:
        return sum(1 for o in self.outcomes if o.status in statuses)

    @property
    def committed(self) -> int:
        return self._count(COMMITTED, REPLACED)

    @property
    def failed(self) -> int:
        return self._count(FAILED)

    @property
    def conflicts(self) -> int:
        return self._count(CONFLICT)

    @property
    def skipped(self) -> int:
        return self._count(SKIPPED)

    def to_dict(self) -> dict:
        return {
            "committed": self.committed,
            "failed": self.failed,
            "conflicts": self.conflicts,
            "skipped": self.skipped,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def _conflict(staged_id: int, record, existing) -> CommitOutcome:
    return CommitOutcome(
        staged_id=staged_id,
        status=CONFLICT,
        sales_record_id=existing.id,
        conflict=DuplicateConflict(
            business_date=record.date,
            team_id=record.team_id,
            existing=existing.data,
            incoming=record.to_dict(),
        ),
    )


def _write(staged_id: int, org_id: int, replace_existing: bool, actor: str | None) -> CommitOutcome:
    staged = db.session.query(StagedRecord).filter_by(id=staged_id, org_id=org_id).first()
    if staged is None:
        return CommitOutcome(staged_id=staged_id, status=FAILED, error="Staged record not found")
    if staged.status != STAGED_APPROVED:
        return CommitOutcome(staged_id=staged_id, status=SKIPPED, error=f"Status is {staged.status}")

    record = merged_record(staged)
    existing = sales_record_service.get_existing(org_id, record.team_id, record.date)
    if existing is not None and not replace_existing:
        return _conflict(staged_id, record, existing)

    with db.session.begin_nested():
        target = existing or sales_record_service.new_record(org_id, record, actor=actor)
        sales_record_service.fill_record(
            target,
            record,
            pos_system=staged.detected_format,
            source_file_name=staged.file_name,
            source_batch_id=staged.batch_id,
            confidence_score=staged.confidence_score,
        )
        db.session.add(target)
        db.session.flush()
        target.data = {**target.data, "id": target.id}
        db.session.query(ValidationLog).filter_by(staged_record_id=staged.id).update(
            {"sales_record_id": target.id}, synchronize_session=False
        )
        db.session.delete(staged)
    db.session.commit()
    return CommitOutcome(
        staged_id=staged_id,
        status=REPLACED if existing is not None else COMMITTED,
        sales_record_id=target.id,
    )


def _lost_race(staged_id: int, org_id: int, record) -> CommitOutcome | None:
    # Another process committed the same day between our check and insert.
    existing = sales_record_service.get_existing(org_id, record.team_id, record.date)
    if existing is None:
        return None
    return _conflict(staged_id, record, existing)


def commit_one(
    staged_id: int,
    *,
    org_id: int,
    replace_existing: bool,
    actor: str | None,
    settings: IngestSettings,
) -> CommitOutcome:
    staged = db.session.query(StagedRecord).filter_by(id=staged_id, org_id=org_id).first()
    if staged is None:
        return CommitOutcome(staged_id=staged_id, status=FAILED, error="Staged record not found")
    try:
        preview = merged_record(staged)
    except CorrectionError as exc:
        return CommitOutcome(staged_id=staged_id, status=FAILED, error=str(exc))

    with day_locks.hold(org_id, preview.team_id, preview.date):
        try:
            outcome = run_with_retry(lambda: _write(staged_id, org_id, replace_existing, actor))
        except IntegrityError as exc:
            db.session.rollback()
            outcome = _lost_race(staged_id, org_id, preview) if not replace_existing else None
            if outcome is None:
                outcome = CommitOutcome(staged_id=staged_id, status=FAILED, error=f"Constraint violation: {exc.orig}")
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            outcome = CommitOutcome(staged_id=staged_id, status=FAILED, error=f"Storage error: {exc}")
        except CorrectionError as exc:
            db.session.rollback()
            outcome = CommitOutcome(staged_id=staged_id, status=FAILED, error=str(exc))

    if outcome.status in (COMMITTED, REPLACED):
        outcome.channels = channel_service.attribute_record(org_id, preview, settings)
    else:
        logger.info("Staged record %s not committed: %s (%s)", staged_id, outcome.status, outcome.error or "")
    return outcome


def approve_and_commit(
    staged_ids,
    *,
    org_id: int,
    replace_existing: bool = False,
    actor: str | None = None,
    settings: IngestSettings | None = None,
) -> CommitReport:
    settings = settings or IngestSettings()
    report = CommitReport()
    seen = set()
    for raw_id in staged_ids:
        staged_id = int(raw_id)
        if staged_id in seen:
            continue
        seen.add(staged_id)
        report.outcomes.append(
            commit_one(
                staged_id,
                org_id=org_id,
                replace_existing=replace_existing,
                actor=actor,
                settings=settings,
            )
        )
    logger.info(
        "Commit: %d committed, %d conflicts, %d skipped, %d failed",
        report.committed,
        report.conflicts,
        report.skipped,
        report.failed,
    )
    return report


def check_existing(org_id: int, business_date: date, team_id: str) -> sales_record_service.ExistingCheck:
    return sales_record_service.check_existing(org_id, business_date, team_id)
