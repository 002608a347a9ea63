from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

BATCH_PROCESSING = "processing"
BATCH_COMPLETED = "completed"
BATCH_FAILED = "failed"
BATCH_CANCELLED = "cancelled"
BATCH_TERMINAL = (BATCH_COMPLETED, BATCH_FAILED, BATCH_CANCELLED)

STAGED_PENDING = "pending"
STAGED_APPROVED = "approved"
STAGED_REJECTED = "rejected"
STAGED_NEEDS_REVIEW = "needs_review"
STAGED_STATUSES = (STAGED_PENDING, STAGED_APPROVED, STAGED_REJECTED, STAGED_NEEDS_REVIEW)

FILE_QUEUED = "queued"
FILE_STAGED = "staged"
FILE_FAILED = "failed"
FILE_SKIPPED = "skipped"


class UploadBatch(db.Model):
    """
    One submission of sales report files.

    LIFECYCLE:
    1. processing: files are being read, detected, extracted and staged
    2. completed: every file was either staged or failed, at least one staged
    3. failed: no file produced a staged record
    4. cancelled: stopped at a chunk boundary on request

    Terminal states never change again; processed_files + failed_files only
    grows and never exceeds total_files.
    """
    __tablename__ = "upload_batches"
    __table_args__ = (
        db.Index("ix_upload_batches_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    team_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=BATCH_PROCESSING, index=True)

    # Submission options, kept for re-runs and display
    business_date = db.Column(db.Date, nullable=True)
    forced_format = db.Column(db.String(32), nullable=True)

    total_files = db.Column(db.Integer, nullable=False, default=0)
    processed_files = db.Column(db.Integer, nullable=False, default=0)
    failed_files = db.Column(db.Integer, nullable=False, default=0)

    error_message = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    files = db.relationship(
        "UploadBatchFile",
        backref="batch",
        lazy=True,
        order_by="UploadBatchFile.position",
        cascade="all, delete-orphan",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in BATCH_TERMINAL

    def to_dict(self, include_files: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "team_id": self.team_id,
            "name": self.name,
            "status": self.status,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "forced_format": self.forced_format,
            "total_files": self.total_files,
            "processed_files": self.processed_files,
            "failed_files": self.failed_files,
            "error_message": self.error_message,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }
        if include_files:
            data["files"] = [f.to_dict() for f in self.files]
        return data


class UploadBatchFile(db.Model):
    """Per-file outcome inside a batch (staged, failed, or skipped after cancel)."""
    __tablename__ = "upload_batch_files"
    __table_args__ = (
        db.UniqueConstraint("batch_id", "position", name="uq_upload_batch_file_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("upload_batches.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    size_bytes = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=FILE_QUEUED)
    detected_format = db.Column(db.String(32), nullable=True)
    detection_confidence = db.Column(db.Integer, nullable=True)
    extracted_date = db.Column(db.Date, nullable=True)

    # ExtractionError kind / message when failed
    error_kind = db.Column(db.String(64), nullable=True)
    error_message = db.Column(db.Text, nullable=True)

    staged_record_id = db.Column(db.Integer, nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "position": self.position,
            "file_name": self.file_name,
            "size_bytes": self.size_bytes,
            "status": self.status,
            "detected_format": self.detected_format,
            "detection_confidence": self.detection_confidence,
            "extracted_date": self.extracted_date.isoformat() if self.extracted_date else None,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "staged_record_id": self.staged_record_id,
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
        }


class StagedRecord(db.Model):
    """
    Parsed-but-unapproved daily sales record.

    extracted_data is the extractor's canonical record and is never rewritten;
    user_corrections holds the reviewer's dotted-path patch on top of it.
    validation_findings always reflects the merged view.
    """
    __tablename__ = "staged_records"
    __table_args__ = (
        db.Index("ix_staged_records_batch_status", "batch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("upload_batches.id"), nullable=False, index=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    team_id = db.Column(db.String(64), nullable=False)

    file_name = db.Column(db.String(255), nullable=False)
    detected_format = db.Column(db.String(32), nullable=False)
    confidence_score = db.Column(db.Integer, nullable=False, default=0)
    business_date = db.Column(db.Date, nullable=False)

    extracted_data = db.Column(db.JSON, nullable=False)
    validation_findings = db.Column(db.JSON, nullable=False, default=list)
    user_corrections = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(db.String(16), nullable=False, default=STAGED_PENDING, index=True)

    reviewed_by = db.Column(db.String(128), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    batch = db.relationship("UploadBatch", backref=db.backref("staged_records", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, merged: dict | None = None) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "team_id": self.team_id,
            "file_name": self.file_name,
            "detected_format": self.detected_format,
            "confidence_score": self.confidence_score,
            "business_date": self.business_date.isoformat(),
            "extracted_data": self.extracted_data,
            "user_corrections": self.user_corrections or {},
            "merged_data": merged,
            "validation_findings": self.validation_findings or [],
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class ValidationLog(db.Model):
    """
    Audit trail of findings raised for a batch.

    Rows outlive the staged record: on commit they are re-pointed at the
    permanent sales record so the review history stays queryable.
    """
    __tablename__ = "validation_logs"
    __table_args__ = (
        db.Index("ix_validation_logs_batch_resolved", "batch_id", "is_resolved"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("upload_batches.id"), nullable=False, index=True)
    staged_record_id = db.Column(db.Integer, nullable=True, index=True)
    sales_record_id = db.Column(db.Integer, nullable=True, index=True)
    file_name = db.Column(db.String(255), nullable=True)

    validation_type = db.Column(db.String(32), nullable=False)
    field_name = db.Column(db.String(128), nullable=False)
    message = db.Column(db.Text, nullable=False)
    severity = db.Column(db.String(16), nullable=False)
    suggested_value = db.Column(db.JSON, nullable=True)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_by = db.Column(db.String(128), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "staged_record_id": self.staged_record_id,
            "sales_record_id": self.sales_record_id,
            "file_name": self.file_name,
            "validation_type": self.validation_type,
            "field": self.field_name,
            "message": self.message,
            "severity": self.severity,
            "suggested_value": self.suggested_value,
            "is_resolved": self.is_resolved,
            "resolved_by": self.resolved_by,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "created_at": to_utc_z(self.created_at),
        }
