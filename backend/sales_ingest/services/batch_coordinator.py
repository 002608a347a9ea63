# Overview: Batch coordinator; drives uploaded files through the pipeline in bounded-concurrency chunks.

"""
Files of a batch are split into fixed-size chunks. Chunks run one after the
other; inside a chunk up to `max_concurrent` files are read, detected,
extracted and validated at once on a thread pool. Worker threads never touch
the database: results come back to the submitting thread, which stages them
and bumps the batch counters one file at a time.

Cancellation is observed between chunks. Files already handed to the pool
finish and are staged; queued files are marked skipped.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import date

from flask import current_app

from ..errors import BatchRejected
from ..extensions import db
from ..models.uploads import BATCH_CANCELLED, BATCH_PROCESSING
from ..pipeline.documents import DocumentReader, UploadedFile
from ..pipeline.extractors import default_extractors
from ..pipeline.flow import FileOutcome, ManualChannelSale, process_file
from ..pipeline.profiles import PosSystem
from ..pipeline.settings import IngestSettings
from . import sales_record_service, upload_batch_service

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_cancel_events: dict[int, threading.Event] = {}
_futures: dict[int, Future] = {}
_runner: ThreadPoolExecutor | None = None


def _cancel_event(batch_id: int) -> threading.Event:
    with _registry_lock:
        event = _cancel_events.get(batch_id)
        if event is None:
            event = _cancel_events[batch_id] = threading.Event()
        return event


def _runner_pool(workers: int) -> ThreadPoolExecutor:
    global _runner
    with _registry_lock:
        if _runner is None:
            _runner = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="upload-batch")
        return _runner


def _forget(batch_id: int) -> None:
    with _registry_lock:
        _futures.pop(batch_id, None)


def request_cancel(batch_id: int, org_id: int):
    """Mark the batch cancelled and stop it at the next chunk boundary."""
    batch = upload_batch_service.cancel_batch(batch_id, org_id)
    # Only a running batch has an event; finished ones are already stopped.
    with _registry_lock:
        event = _cancel_events.get(batch_id)
    if event is not None:
        event.set()
    return batch


def wait_for_batch(batch_id: int, timeout: float | None = None) -> None:
    with _registry_lock:
        future = _futures.get(batch_id)
    if future is not None:
        future.result(timeout=timeout)
        _forget(batch_id)


def check_limits(uploads: list[UploadedFile], settings: IngestSettings) -> None:
    """Batch-wide limits. Oversized or unsupported single files fail on their own."""
    if not uploads:
        raise BatchRejected("No files were submitted")
    if len(uploads) > settings.max_files:
        raise BatchRejected(f"A batch may contain at most {settings.max_files} files")
    total = sum(u.size for u in uploads)
    if total > settings.max_batch_bytes:
        raise BatchRejected(f"Batch exceeds {settings.max_batch_bytes // (1024 * 1024)}MB in total")


def _chunks(items: list, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchCoordinator:
    def __init__(
        self,
        settings: IngestSettings,
        *,
        reader: DocumentReader | None = None,
        extractors=None,
        today: date | None = None,
    ):
        self.settings = settings
        self.reader = reader or DocumentReader()
        self.extractors = extractors or default_extractors()
        self.today = today

    @classmethod
    def from_app(cls, app=None, **kwargs) -> "BatchCoordinator":
        app = app or current_app
        return cls(IngestSettings.from_config(app.config), **kwargs)

    def submit(
        self,
        uploads: list[UploadedFile],
        *,
        org_id: int,
        team_id: str,
        business_date: date | None = None,
        forced_format=None,
        channel_sales=(),
        actor: str | None = None,
        name: str | None = None,
        wait: bool = False,
        on_progress=None,
    ) -> int:
        """
        Create the batch and start processing it. Returns the batch id at once
        unless `wait` is set, in which case the batch has reached a terminal
        state on return.
        """
        check_limits(uploads, self.settings)
        try:
            forced = PosSystem.parse(forced_format)
        except ValueError as exc:
            raise BatchRejected(f"Unknown POS format: {forced_format}") from exc
        sales = [s if isinstance(s, ManualChannelSale) else ManualChannelSale.from_dict(s) for s in channel_sales or ()]
        batch = upload_batch_service.create_batch(
            org_id=org_id,
            team_id=team_id,
            file_names=[(u.name, u.size) for u in uploads],
            name=name,
            business_date=business_date,
            forced_format=forced.value if forced else None,
            actor=actor,
        )
        batch_id = batch.id
        logger.info("Batch %s submitted: %d files for team %s", batch_id, len(uploads), team_id)
        _cancel_event(batch_id)

        kwargs = dict(
            batch_id=batch_id,
            uploads=list(uploads),
            org_id=org_id,
            team_id=str(team_id),
            business_date=business_date or date.today(),
            forced_format=forced,
            channel_sales=sales,
            on_progress=on_progress,
        )
        if wait:
            self.run(**kwargs)
            return batch_id

        app = current_app._get_current_object()
        future = _runner_pool(app.config.get("INGEST_RUNNER_WORKERS", 2)).submit(self._run_in_app, app, kwargs)
        with _registry_lock:
            _futures[batch_id] = future
        # Runs inline when the batch already finished, so outside the registry lock.
        future.add_done_callback(lambda done, finished=batch_id: _forget(finished))
        return batch_id

    def _run_in_app(self, app, kwargs) -> None:
        with app.app_context():
            try:
                self.run(**kwargs)
            except Exception:
                logger.exception("Batch %s aborted", kwargs["batch_id"])
                upload_batch_service.fail_batch(kwargs["batch_id"], "Batch processing aborted")
            finally:
                db.session.remove()

    def _cancelled(self, batch_id: int) -> bool:
        if _cancel_event(batch_id).is_set():
            return True
        return upload_batch_service.batch_status(batch_id) == BATCH_CANCELLED

    def run(
        self,
        *,
        batch_id: int,
        uploads: list[UploadedFile],
        org_id: int,
        team_id: str,
        business_date: date,
        forced_format=None,
        channel_sales=(),
        on_progress=None,
    ) -> str:
        baseline = sales_record_service.order_average_baseline(org_id, team_id, business_date)
        history = sales_record_service.gross_sales_history(org_id, team_id, business_date)
        positioned = list(enumerate(uploads))
        try:
            with ThreadPoolExecutor(
                max_workers=self.settings.max_concurrent,
                thread_name_prefix=f"batch-{batch_id}",
            ) as pool:
                for chunk in _chunks(positioned, self.settings.chunk_size):
                    if self._cancelled(batch_id):
                        skipped = upload_batch_service.skip_queued_files(batch_id)
                        logger.info("Batch %s cancelled; %d files not started", batch_id, skipped)
                        break
                    futures = {
                        pool.submit(
                            process_file,
                            upload,
                            team_id=team_id,
                            business_date=business_date,
                            settings=self.settings,
                            extractors=self.extractors,
                            reader=self.reader,
                            forced_format=forced_format,
                            channel_sales=channel_sales,
                            order_average_baseline=baseline,
                            gross_history=history,
                            today=self.today,
                        ): (position, upload)
                        for position, upload in chunk
                    }
                    for future in as_completed(futures):
                        position, upload = futures[future]
                        try:
                            outcome = future.result()
                        except Exception as exc:
                            logger.exception("Unexpected failure processing %s", upload.name)
                            outcome = FileOutcome(file_name=upload.name, error=str(exc), error_kind="internal_error")
                        self._record(batch_id, org_id, position, outcome)
                    if on_progress is not None:
                        on_progress(upload_batch_service.get_batch(batch_id, org_id).to_dict())
        finally:
            with _registry_lock:
                _cancel_events.pop(batch_id, None)

        if upload_batch_service.batch_status(batch_id) != BATCH_PROCESSING:
            status = upload_batch_service.batch_status(batch_id)
        else:
            status = upload_batch_service.finish_batch(batch_id)
        logger.info("Batch %s finished: %s", batch_id, status)
        return status

    def _record(self, batch_id: int, org_id: int, position: int, outcome: FileOutcome) -> None:
        detection = outcome.detection
        detected = detection.pos_system.value if detection else None
        confidence = detection.confidence if detection else None
        if outcome.ok:
            result = outcome.result
            try:
                staged = upload_batch_service.stage(
                    batch_id=batch_id,
                    org_id=org_id,
                    file_name=outcome.file_name,
                    detected_format=result.pos_system.value,
                    confidence=outcome.confidence,
                    record=result.record,
                    findings=outcome.findings,
                    status=outcome.status,
                )
                upload_batch_service.record_file_result(
                    batch_id,
                    position,
                    staged=True,
                    detected_format=detected,
                    detection_confidence=confidence,
                    extracted_date=result.extracted_date,
                    staged_record_id=staged.id,
                )
                db.session.commit()
                return
            except Exception as exc:
                db.session.rollback()
                logger.exception("Staging failed for %s", outcome.file_name)
                outcome.error = f"Could not stage record: {exc}"
                outcome.error_kind = "staging_error"

        logger.warning(
            "File %s failed in batch %s (%s): %s",
            outcome.file_name,
            batch_id,
            outcome.error_kind,
            outcome.error,
        )
        upload_batch_service.record_file_result(
            batch_id,
            position,
            staged=False,
            detected_format=detected,
            detection_confidence=confidence,
            error_kind=outcome.error_kind,
            error_message=outcome.error,
        )
        db.session.commit()
