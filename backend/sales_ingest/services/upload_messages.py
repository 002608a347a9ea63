# Overview: Short user-facing summaries for batch progress and commit results.

from __future__ import annotations

from ..models.uploads import BATCH_CANCELLED, BATCH_COMPLETED, BATCH_FAILED, UploadBatch
from .approval_service import CommitReport


def _files(n: int) -> str:
    return f"{n} file" if n == 1 else f"{n} files"


def batch_summary(batch: UploadBatch) -> str:
    done = (batch.processed_files or 0) + (batch.failed_files or 0)
    if batch.status == BATCH_COMPLETED:
        if batch.failed_files:
            return (
                f"Processed {_files(batch.processed_files)}; "
                f"{_files(batch.failed_files)} could not be read"
            )
        return f"Processed {_files(batch.processed_files)}, ready for review"
    if batch.status == BATCH_FAILED:
        return batch.error_message or "No file could be processed"
    if batch.status == BATCH_CANCELLED:
        return f"Upload cancelled after {done} of {_files(batch.total_files)}"
    return f"Processing {done} of {_files(batch.total_files)}"


def commit_summary(report: CommitReport) -> str:
    parts = [f"{report.committed} committed"]
    if report.conflicts:
        parts.append(f"{report.conflicts} already exist")
    if report.skipped:
        parts.append(f"{report.skipped} not approved")
    if report.failed:
        parts.append(f"{report.failed} failed")
    return ", ".join(parts)
