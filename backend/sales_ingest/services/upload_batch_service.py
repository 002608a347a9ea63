# Overview: Service-layer operations for upload batches and the staging store; encapsulates review and batch state.

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from ..errors import (
    BatchNotFound,
    CorrectionConflict,
    IngestError,
    InvalidStatusTransition,
    StagedRecordNotFound,
    ValidationLogNotFound,
)
from ..extensions import db
from ..models import StagedRecord, UploadBatch, UploadBatchFile, ValidationLog
from ..models.uploads import (
    BATCH_CANCELLED,
    BATCH_COMPLETED,
    BATCH_FAILED,
    BATCH_PROCESSING,
    FILE_FAILED,
    FILE_QUEUED,
    FILE_SKIPPED,
    FILE_STAGED,
    STAGED_APPROVED,
    STAGED_PENDING,
    STAGED_REJECTED,
    STAGED_STATUSES,
)
from ..pipeline.corrections import apply_corrections, merge_corrections, normalize_patch
from ..pipeline.records import (
    BUSINESS_RULE,
    FINDING_CATEGORIES,
    FORMAT_ERROR,
    MISSING_FIELD,
    DailySales,
    ValidationFinding,
)
from ..pipeline.settings import ValidationRules
from ..pipeline.validator import initial_status, is_approval_eligible, validate
from ..time_utils import utcnow
from . import sales_record_service

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def _get_batch_for_org(batch_id: int, org_id: int) -> UploadBatch:
    batch = db.session.query(UploadBatch).filter_by(id=batch_id, org_id=org_id).first()
    if not batch:
        raise BatchNotFound("Upload batch not found")
    return batch


def _get_staged_for_org(staged_id: int, org_id: int) -> StagedRecord:
    staged = db.session.query(StagedRecord).filter_by(id=staged_id, org_id=org_id).first()
    if not staged:
        raise StagedRecordNotFound("Staged record not found")
    return staged


def validation_type(finding: ValidationFinding) -> str:
    if finding.category in FINDING_CATEGORIES:
        return finding.category
    message = finding.message.lower()
    if finding.field == "format":
        return FORMAT_ERROR
    if "not found" in message or message.startswith("no "):
        return MISSING_FIELD
    return BUSINESS_RULE


def _finding_key(field: str, message: str, severity: str) -> tuple[str, str, str]:
    return (field, message, severity)


# -- batches -----------------------------------------------------------------


def create_batch(
    *,
    org_id: int,
    team_id: str,
    file_names: list[tuple[str, int]],
    name: str | None = None,
    business_date: date | None = None,
    forced_format: str | None = None,
    actor: str | None = None,
) -> UploadBatch:
    if not team_id:
        raise IngestError("team_id is required")
    batch = UploadBatch(
        org_id=org_id,
        team_id=str(team_id),
        name=name or f"Upload {utcnow().strftime('%Y-%m-%d %H:%M')} ({len(file_names)} files)",
        status=BATCH_PROCESSING,
        business_date=business_date,
        forced_format=forced_format,
        total_files=len(file_names),
        processed_files=0,
        failed_files=0,
        created_by=actor,
        created_at=utcnow(),
    )
    for position, (file_name, size) in enumerate(file_names):
        batch.files.append(
            UploadBatchFile(position=position, file_name=file_name, size_bytes=size, status=FILE_QUEUED)
        )
    db.session.add(batch)
    db.session.commit()
    return batch


def get_batch(batch_id: int, org_id: int) -> UploadBatch:
    return _get_batch_for_org(batch_id, org_id)


def list_batches(org_id: int, limit: int = DEFAULT_LIST_LIMIT) -> list[UploadBatch]:
    return (
        db.session.query(UploadBatch)
        .filter_by(org_id=org_id)
        .order_by(UploadBatch.created_at.desc(), UploadBatch.id.desc())
        .limit(limit)
        .all()
    )


def batch_status(batch_id: int) -> str | None:
    return db.session.query(UploadBatch.status).filter_by(id=batch_id).scalar()


def record_file_result(
    batch_id: int,
    position: int,
    *,
    staged: bool,
    detected_format: str | None = None,
    detection_confidence: int | None = None,
    extracted_date: date | None = None,
    staged_record_id: int | None = None,
    error_kind: str | None = None,
    error_message: str | None = None,
) -> None:
    """Per-file outcome plus the matching counter bump, in the caller's transaction."""
    file_row = db.session.query(UploadBatchFile).filter_by(batch_id=batch_id, position=position).one()
    file_row.status = FILE_STAGED if staged else FILE_FAILED
    file_row.detected_format = detected_format
    file_row.detection_confidence = detection_confidence
    file_row.extracted_date = extracted_date
    file_row.staged_record_id = staged_record_id
    file_row.error_kind = error_kind
    file_row.error_message = error_message
    file_row.processed_at = utcnow()
    counter = UploadBatch.processed_files if staged else UploadBatch.failed_files
    db.session.execute(
        update(UploadBatch)
        .where(UploadBatch.id == batch_id)
        .values({counter: counter + 1})
    )


def skip_queued_files(batch_id: int) -> int:
    skipped = (
        db.session.query(UploadBatchFile)
        .filter_by(batch_id=batch_id, status=FILE_QUEUED)
        .update({"status": FILE_SKIPPED, "error_message": "Batch cancelled"}, synchronize_session=False)
    )
    db.session.commit()
    return skipped


def finish_batch(batch_id: int) -> str:
    """
    Move a processing batch to its terminal state. The status guard in the
    UPDATE keeps completed/failed/cancelled from ever being overwritten.
    """
    batch = db.session.get(UploadBatch, batch_id)
    db.session.refresh(batch)
    target = BATCH_FAILED if batch.processed_files == 0 else BATCH_COMPLETED
    if target == BATCH_FAILED and not batch.error_message:
        error_message = "No file could be processed"
    else:
        error_message = batch.error_message
    db.session.execute(
        update(UploadBatch)
        .where(UploadBatch.id == batch_id, UploadBatch.status == BATCH_PROCESSING)
        .values(status=target, completed_at=utcnow(), error_message=error_message)
    )
    db.session.commit()
    db.session.refresh(batch)
    return batch.status


def fail_batch(batch_id: int, message: str) -> None:
    db.session.rollback()
    db.session.execute(
        update(UploadBatch)
        .where(UploadBatch.id == batch_id, UploadBatch.status == BATCH_PROCESSING)
        .values(status=BATCH_FAILED, completed_at=utcnow(), error_message=message)
    )
    db.session.commit()


def cancel_batch(batch_id: int, org_id: int) -> UploadBatch:
    batch = _get_batch_for_org(batch_id, org_id)
    if batch.status == BATCH_CANCELLED:
        return batch
    if batch.is_terminal:
        raise InvalidStatusTransition(f"Batch is already {batch.status}")
    result = db.session.execute(
        update(UploadBatch)
        .where(UploadBatch.id == batch_id, UploadBatch.status == BATCH_PROCESSING)
        .values(status=BATCH_CANCELLED, completed_at=utcnow())
    )
    db.session.commit()
    db.session.refresh(batch)
    if result.rowcount == 0 and batch.status != BATCH_CANCELLED:
        raise InvalidStatusTransition(f"Batch is already {batch.status}")
    logger.info("Batch %s cancelled", batch_id)
    return batch


# -- staging -----------------------------------------------------------------


def _log_findings(batch_id: int, staged: StagedRecord, findings: list[ValidationFinding]) -> None:
    for finding in findings:
        data = finding.to_dict()
        db.session.add(
            ValidationLog(
                batch_id=batch_id,
                staged_record_id=staged.id,
                file_name=staged.file_name,
                validation_type=validation_type(finding),
                field_name=finding.field,
                message=finding.message,
                severity=finding.severity.value,
                suggested_value=data["suggested_value"],
                is_resolved=False,
                created_at=utcnow(),
            )
        )


def stage(
    *,
    batch_id: int,
    org_id: int,
    file_name: str,
    detected_format: str,
    confidence: int,
    record: DailySales,
    findings: list[ValidationFinding],
    status: str = STAGED_PENDING,
) -> StagedRecord:
    """Add a staged record and its validation logs to the current transaction."""
    staged = StagedRecord(
        batch_id=batch_id,
        org_id=org_id,
        team_id=record.team_id,
        file_name=file_name,
        detected_format=detected_format,
        confidence_score=int(confidence),
        business_date=record.date,
        extracted_data=record.to_dict(),
        validation_findings=[f.to_dict() for f in findings],
        user_corrections={},
        status=status,
        created_at=utcnow(),
    )
    db.session.add(staged)
    db.session.flush()
    _log_findings(batch_id, staged, findings)
    return staged


def list_staged(batch_id: int, org_id: int, status: str | None = None) -> list[StagedRecord]:
    _get_batch_for_org(batch_id, org_id)
    query = db.session.query(StagedRecord).filter_by(batch_id=batch_id, org_id=org_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(StagedRecord.id.asc()).all()


def get_staged(staged_id: int, org_id: int) -> StagedRecord:
    return _get_staged_for_org(staged_id, org_id)


def merged_record(staged: StagedRecord) -> DailySales:
    return apply_corrections(staged.extracted_data, staged.user_corrections or {})


def findings_for(staged: StagedRecord) -> list[ValidationFinding]:
    return [ValidationFinding.from_dict(f) for f in staged.validation_findings or []]


def _revalidate(
    staged: StagedRecord,
    record: DailySales,
    corrections: dict,
    rules: ValidationRules,
    actor: str | None,
    today: date | None,
):
    baseline = sales_record_service.order_average_baseline(staged.org_id, staged.team_id, record.date)
    history = sales_record_service.gross_sales_history(staged.org_id, staged.team_id, record.date)
    findings = validate(record, today=today, rules=rules, order_average_baseline=baseline, gross_history=history)
    # Extraction-time findings (format, missing figures) stay until a reviewer resolves them.
    carried = [
        f for f in findings_for(staged)
        if f.field == "format" or "not found" in f.message.lower()
    ]
    carried = [f for f in carried if not _corrected(f.field, corrections)]
    new_findings = carried + findings

    current = {_finding_key(f.field, f.message, f.severity.value) for f in new_findings}
    open_logs = (
        db.session.query(ValidationLog)
        .filter_by(staged_record_id=staged.id, is_resolved=False)
        .all()
    )
    logged = set()
    for log in open_logs:
        key = _finding_key(log.field_name, log.message, log.severity)
        if key in current:
            logged.add(key)
            continue
        log.is_resolved = True
        log.resolved_by = actor
        log.resolved_at = utcnow()
    _log_findings(
        staged.batch_id,
        staged,
        [f for f in new_findings if _finding_key(f.field, f.message, f.severity.value) not in logged],
    )
    return new_findings


def _corrected(field: str, corrections: dict) -> bool:
    return any(path == field or path.startswith(field + ".") for path in corrections)


def update_staged(
    staged_id: int,
    org_id: int,
    *,
    corrections: dict | None = None,
    status: str | None = None,
    expected_version: int | None = None,
    actor: str | None = None,
    rules: ValidationRules | None = None,
    review_confidence: int = 70,
    today: date | None = None,
) -> StagedRecord:
    staged = _get_staged_for_org(staged_id, org_id)
    if expected_version is not None and int(expected_version) != staged.version_id:
        raise CorrectionConflict(
            f"Staged record changed since it was loaded (version {staged.version_id}, expected {expected_version})"
        )
    if status is not None and status not in STAGED_STATUSES:
        raise InvalidStatusTransition(f"Invalid status: {status}")

    if corrections:
        patch = normalize_patch(corrections, staged.extracted_data)
        merged_patch = merge_corrections(staged.user_corrections, patch)
        record = apply_corrections(staged.extracted_data, merged_patch)
        # One edit is one versioned UPDATE; nothing may flush before the commit.
        with db.session.no_autoflush:
            findings = _revalidate(staged, record, merged_patch, rules or ValidationRules(), actor, today)
        staged.user_corrections = merged_patch
        staged.validation_findings = [f.to_dict() for f in findings]
        staged.business_date = record.date
        if status is None and staged.status != STAGED_REJECTED:
            # An edited record goes back through review.
            status = initial_status(findings, staged.confidence_score, review_confidence)

    if status is not None:
        staged.status = status
        staged.reviewed_by = actor
        staged.reviewed_at = utcnow()

    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise CorrectionConflict("Staged record was changed by another reviewer") from exc
    return staged


def approve_eligible(batch_id: int, org_id: int, actor: str | None = None) -> list[StagedRecord]:
    """One-click approval: every pending record without critical/error findings."""
    approved = []
    for staged in list_staged(batch_id, org_id, status=STAGED_PENDING):
        if is_approval_eligible(findings_for(staged)):
            staged.status = STAGED_APPROVED
            staged.reviewed_by = actor
            staged.reviewed_at = utcnow()
            approved.append(staged)
    db.session.commit()
    return approved


# -- validation logs ---------------------------------------------------------


def get_validation_logs(batch_id: int, org_id: int, include_resolved: bool = True) -> list[ValidationLog]:
    _get_batch_for_org(batch_id, org_id)
    query = db.session.query(ValidationLog).filter_by(batch_id=batch_id)
    if not include_resolved:
        query = query.filter_by(is_resolved=False)
    return query.order_by(ValidationLog.id.asc()).all()


def resolve_validation_log(log_id: int, org_id: int, actor: str | None = None) -> ValidationLog:
    log = (
        db.session.query(ValidationLog)
        .join(UploadBatch, UploadBatch.id == ValidationLog.batch_id)
        .filter(ValidationLog.id == log_id, UploadBatch.org_id == org_id)
        .first()
    )
    if not log:
        raise ValidationLogNotFound("Validation log not found")
    if not log.is_resolved:
        log.is_resolved = True
        log.resolved_by = actor
        log.resolved_at = utcnow()
        db.session.commit()
    return log
