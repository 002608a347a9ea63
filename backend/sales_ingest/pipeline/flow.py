"""
Detector -> Extractor -> Validator for a single uploaded file.

`process_file` never touches the database and never raises for a bad file; the
outcome says whether the file produced a stageable record. It is the unit of
work the batch coordinator runs on its worker pool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence

from ..errors import DetectionAmbiguous, ExtractionError, IngestError
from .detection import Detection, detect
from .documents import DocumentKind, DocumentReader, UploadedFile
from .extractors import ExtractionContext, ExtractionResult, ExtractorStrategy
from .profiles import PosSystem
from .records import FORMAT_ERROR, LineItem, Severity, ValidationFinding, to_decimal, with_group_percents
from .settings import IngestSettings
from .validator import initial_status, validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManualChannelSale:
    name: str
    amount: Decimal
    order_count: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "ManualChannelSale":
        name = str((data or {}).get("name") or "").strip()
        amount = to_decimal(data.get("amount"), default=None)  # type: ignore[arg-type]
        if not name or amount is None:
            raise IngestError("channel_sales entries need a name and an amount")
        return cls(name=name, amount=amount, order_count=int(data.get("order_count") or 0))


@dataclass
class FileOutcome:
    file_name: str
    detection: Detection | None = None
    result: ExtractionResult | None = None
    findings: list[ValidationFinding] = field(default_factory=list)
    confidence: int = 0
    status: str | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.error is None


def staged_confidence(detection: Detection, result: ExtractionResult) -> int:
    """Auto-detected PDFs are only as trustworthy as the weaker of the two scores."""
    if detection.forced or detection.document_kind is DocumentKind.TABULAR:
        return result.confidence
    return min(detection.confidence, result.confidence)


def add_channel_sales(result: ExtractionResult, channel_sales) -> None:
    record = result.record
    for sale in channel_sales or ():
        record.destinations.append(LineItem(name=sale.name, quantity=sale.order_count, total=sale.amount))
    if channel_sales:
        with_group_percents(record.destinations)


def process_file(
    upload: UploadedFile,
    *,
    team_id: str,
    business_date: date,
    settings: IngestSettings,
    extractors: dict[PosSystem, ExtractorStrategy],
    reader: DocumentReader | None = None,
    forced_format=None,
    channel_sales=(),
    order_average_baseline: Decimal | None = None,
    gross_history: Sequence[Decimal] = (),
    today: date | None = None,
) -> FileOutcome:
    outcome = FileOutcome(file_name=upload.name)
    reader = reader or DocumentReader()
    try:
        if upload.size > settings.max_file_bytes:
            raise ExtractionError(
                f"{upload.name} exceeds the {settings.max_file_bytes // (1024 * 1024)}MB file limit",
                kind=ExtractionError.UNSUPPORTED_FORMAT,
            )
        document = reader.read(upload)
        detection = detect(
            upload.name,
            document,
            forced_format,
            min_confidence=settings.detection_min_confidence,
        )
        outcome.detection = detection
        if detection.ambiguous and settings.reject_ambiguous:
            raise DetectionAmbiguous(upload.name, detection.confidence)

        extractor = extractors.get(detection.pos_system) or extractors[PosSystem.GENERIC]
        result = extractor.extract(
            document,
            ExtractionContext(team_id=team_id, date=business_date),
        )
    except IngestError as exc:
        outcome.error = str(exc)
        outcome.error_kind = getattr(exc, "kind", type(exc).__name__)
        return outcome

    add_channel_sales(result, channel_sales)
    findings = list(result.findings)
    if detection.ambiguous:
        findings.append(
            ValidationFinding(
                field="format",
                message=(
                    f"POS format could not be detected confidently ({detection.confidence}%); "
                    "parsed with the generic layout"
                ),
                severity=Severity.WARNING,
                category=FORMAT_ERROR,
            )
        )
    findings.extend(
        validate(
            result.record,
            today=today,
            rules=settings.rules,
            order_average_baseline=order_average_baseline,
            gross_history=gross_history,
        )
    )

    outcome.result = result
    outcome.findings = findings
    outcome.confidence = staged_confidence(detection, result)
    outcome.status = initial_status(findings, outcome.confidence, settings.review_confidence)
    return outcome
