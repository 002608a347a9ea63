"""
Batch coordinator tests: chunked progress, bounded concurrency, cancellation
and per-file failure containment.
"""

import threading
import time

import pytest

from sales_ingest.errors import BatchRejected
from sales_ingest.models import StagedRecord
from sales_ingest.models.uploads import (
    BATCH_CANCELLED,
    BATCH_COMPLETED,
    BATCH_FAILED,
    FILE_FAILED,
    FILE_SKIPPED,
    FILE_STAGED,
)
from sales_ingest.pipeline.documents import UploadedFile
from sales_ingest.pipeline.extractors import GenericExtractor, default_extractors
from sales_ingest.pipeline.profiles import PosSystem
from sales_ingest.pipeline.settings import IngestSettings
from sales_ingest.services import batch_coordinator, upload_batch_service
from sales_ingest.services.batch_coordinator import BatchCoordinator, request_cancel, wait_for_batch
from sales_ingest.services.upload_messages import batch_summary

from conftest import ORG_ID, TEAM_ID, TextPdfReader, generic_csv


def _csvs(day, count):
    return [UploadedFile(name=f"day-{i}.csv", data=generic_csv(day)) for i in range(count)]


def _coordinator(**settings):
    settings.setdefault("max_concurrent", 3)
    settings.setdefault("chunk_size", 5)
    return BatchCoordinator(IngestSettings(**settings), reader=TextPdfReader())


class CountingExtractor(GenericExtractor):
    """Records how many extractions overlap."""

    def __init__(self, delay=0.05):
        super().__init__()
        self.delay = delay
        self.lock = threading.Lock()
        self.active = 0
        self.high_water = 0

    def _extract(self, document, context):
        with self.lock:
            self.active += 1
            self.high_water = max(self.high_water, self.active)
        try:
            time.sleep(self.delay)
            return super()._extract(document, context)
        finally:
            with self.lock:
                self.active -= 1


class ExplodingReader(TextPdfReader):
    def read(self, upload):
        if upload.name.startswith("explode"):
            raise RuntimeError("reader crashed")
        return super().read(upload)


class TestProgress:
    def test_counters_grow_chunk_by_chunk(self, db_session, business_day):
        seen = []
        batch_id = _coordinator().submit(
            _csvs(business_day, 12),
            org_id=ORG_ID,
            team_id=TEAM_ID,
            wait=True,
            on_progress=lambda b: seen.append(b["processed_files"] + b["failed_files"]),
        )
        assert seen == [5, 10, 12]

        batch = upload_batch_service.get_batch(batch_id, ORG_ID)
        assert batch.status == BATCH_COMPLETED
        assert batch.processed_files == 12
        assert all(f.status == FILE_STAGED for f in batch.files)
        assert len(upload_batch_service.list_staged(batch_id, ORG_ID)) == 12
        assert batch_summary(batch) == "Processed 12 files, ready for review"

    def test_never_more_than_max_concurrent(self, db_session, business_day):
        counting = CountingExtractor()
        extractors = default_extractors()
        extractors[PosSystem.GENERIC] = counting
        coordinator = BatchCoordinator(
            IngestSettings(max_concurrent=3, chunk_size=5),
            reader=TextPdfReader(),
            extractors=extractors,
        )
        coordinator.submit(_csvs(business_day, 12), org_id=ORG_ID, team_id=TEAM_ID, wait=True)
        assert 1 <= counting.high_water <= 3


class TestCancellation:
    def test_cancel_stops_at_chunk_boundary(self, db_session, business_day):
        def cancel_after_first_chunk(batch):
            if batch["status"] == "processing":
                request_cancel(batch["id"], ORG_ID)

        batch_id = _coordinator().submit(
            _csvs(business_day, 12),
            org_id=ORG_ID,
            team_id=TEAM_ID,
            wait=True,
            on_progress=cancel_after_first_chunk,
        )

        batch = upload_batch_service.get_batch(batch_id, ORG_ID)
        db_session.refresh(batch)
        assert batch.status == BATCH_CANCELLED
        assert batch.processed_files == 5
        statuses = [f.status for f in batch.files]
        assert statuses.count(FILE_STAGED) == 5
        assert statuses.count(FILE_SKIPPED) == 7
        assert batch_summary(batch) == "Upload cancelled after 5 of 12 files"


class TestFailureContainment:
    def test_bad_files_fail_alone(self, db_session, business_day):
        uploads = [
            UploadedFile(name="good.csv", data=generic_csv(business_day)),
            UploadedFile(name="nogross.csv", data=b"Notes,hello\nMore,text\n"),
            UploadedFile(name="notes.txt", data=b"plain text"),
            UploadedFile(name="scan.pdf", data=b"nothing legible in here at all"),
            UploadedFile(name="explode.csv", data=generic_csv(business_day)),
        ]
        coordinator = BatchCoordinator(IngestSettings(), reader=ExplodingReader())
        batch_id = coordinator.submit(uploads, org_id=ORG_ID, team_id=TEAM_ID, wait=True)

        batch = upload_batch_service.get_batch(batch_id, ORG_ID)
        assert batch.status == BATCH_COMPLETED
        assert (batch.processed_files, batch.failed_files) == (1, 4)
        kinds = {f.file_name: f.error_kind for f in batch.files}
        assert kinds == {
            "good.csv": None,
            "nogross.csv": "missing_required_field",
            "notes.txt": "unsupported_format",
            "scan.pdf": "missing_required_field",
            "explode.csv": "internal_error",
        }
        assert all(f.status == FILE_FAILED for f in batch.files if f.file_name != "good.csv")
        assert batch_summary(batch) == "Processed 1 file; 4 files could not be read"

    def test_nothing_readable_fails_batch(self, db_session):
        batch_id = _coordinator().submit(
            [UploadedFile(name="a.txt", data=b"x"), UploadedFile(name="b.txt", data=b"y")],
            org_id=ORG_ID,
            team_id=TEAM_ID,
            wait=True,
        )
        batch = upload_batch_service.get_batch(batch_id, ORG_ID)
        assert batch.status == BATCH_FAILED
        assert batch.error_message == "No file could be processed"
        assert db_session.query(StagedRecord).filter_by(batch_id=batch_id).count() == 0


class TestLimits:
    def test_empty_batch(self, db_session):
        with pytest.raises(BatchRejected):
            _coordinator().submit([], org_id=ORG_ID, team_id=TEAM_ID, wait=True)

    def test_too_many_files(self, db_session, business_day):
        with pytest.raises(BatchRejected):
            _coordinator(max_files=2).submit(_csvs(business_day, 3), org_id=ORG_ID, team_id=TEAM_ID, wait=True)

    def test_batch_too_large(self, db_session, business_day):
        with pytest.raises(BatchRejected):
            _coordinator(max_batch_bytes=100).submit(
                _csvs(business_day, 2), org_id=ORG_ID, team_id=TEAM_ID, wait=True
            )

    def test_unknown_forced_format(self, db_session, business_day):
        with pytest.raises(BatchRejected):
            _coordinator().submit(
                _csvs(business_day, 1), org_id=ORG_ID, team_id=TEAM_ID, forced_format="abacus", wait=True
            )

    def test_rejected_batch_leaves_no_rows(self, db_session):
        with pytest.raises(BatchRejected):
            _coordinator().submit([], org_id=ORG_ID, team_id=TEAM_ID, wait=True)
        assert upload_batch_service.list_batches(ORG_ID) == []


class TestBackground:
    def test_submit_returns_before_processing_finishes(self, db_session, business_day):
        batch_id = _coordinator().submit(_csvs(business_day, 3), org_id=ORG_ID, team_id=TEAM_ID)
        wait_for_batch(batch_id, timeout=30)

        db_session.expire_all()
        batch = upload_batch_service.get_batch(batch_id, ORG_ID)
        assert batch.status == BATCH_COMPLETED
        assert batch.processed_files == 3
        assert batch_id not in batch_coordinator._futures

    def test_waiting_on_a_finished_batch_returns(self, db_session, business_day):
        batch_id = _coordinator().submit(_csvs(business_day, 1), org_id=ORG_ID, team_id=TEAM_ID)
        wait_for_batch(batch_id, timeout=30)
        wait_for_batch(batch_id, timeout=1)
        assert batch_id not in batch_coordinator._futures

    def test_finished_run_leaves_no_cancel_event(self, db_session, business_day):
        batch_id = _coordinator().submit(_csvs(business_day, 1), org_id=ORG_ID, team_id=TEAM_ID, wait=True)
        assert batch_id not in batch_coordinator._cancel_events
