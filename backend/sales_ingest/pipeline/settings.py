"""Frozen views of app.config handed to the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping

MB = 1024 * 1024


@dataclass(frozen=True)
class ValidationRules:
    tender_abs_tolerance: Decimal = Decimal("1.00")
    tender_rel_tolerance: Decimal = Decimal("0.01")
    max_age_years: int = 2
    percent_tolerance: Decimal = Decimal("1.0")
    order_average_factor: Decimal = Decimal("2.0")
    max_labor_percent: Decimal = Decimal("40")
    max_order_count: int = 1000
    payment_anomaly_tolerance: Decimal = Decimal("0.02")
    sales_anomaly_z: Decimal = Decimal("2")
    min_history_days: int = 7

    @classmethod
    def from_config(cls, config: Mapping) -> "ValidationRules":
        return cls(
            tender_abs_tolerance=Decimal(str(config.get("VALIDATION_TENDER_ABS_TOLERANCE", "1.00"))),
            tender_rel_tolerance=Decimal(str(config.get("VALIDATION_TENDER_REL_TOLERANCE", "0.01"))),
            max_age_years=int(config.get("VALIDATION_MAX_AGE_YEARS", 2)),
            percent_tolerance=Decimal(str(config.get("VALIDATION_PERCENT_TOLERANCE", "1.0"))),
            order_average_factor=Decimal(str(config.get("VALIDATION_ORDER_AVERAGE_FACTOR", "2.0"))),
            max_labor_percent=Decimal(str(config.get("VALIDATION_MAX_LABOR_PERCENT", "40"))),
            max_order_count=int(config.get("VALIDATION_MAX_ORDER_COUNT", 1000)),
            payment_anomaly_tolerance=Decimal(str(config.get("VALIDATION_PAYMENT_ANOMALY_TOLERANCE", "0.02"))),
            sales_anomaly_z=Decimal(str(config.get("VALIDATION_SALES_ANOMALY_Z", "2"))),
            min_history_days=int(config.get("VALIDATION_MIN_HISTORY_DAYS", 7)),
        )


@dataclass(frozen=True)
class IngestSettings:
    max_concurrent: int = 3
    chunk_size: int = 5
    max_file_bytes: int = 50 * MB
    max_batch_bytes: int = 200 * MB
    max_files: int = 25
    detection_min_confidence: int = 30
    review_confidence: int = 70
    reject_ambiguous: bool = False
    channel_prefixes: tuple[str, ...] = ("ext", "3pd", "online", "third party")
    channel_fuzzy_threshold: float = 0.85
    rules: ValidationRules = field(default_factory=ValidationRules)

    @classmethod
    def from_config(cls, config: Mapping) -> "IngestSettings":
        return cls(
            max_concurrent=max(1, int(config.get("INGEST_MAX_CONCURRENT", 3))),
            chunk_size=max(1, int(config.get("INGEST_CHUNK_SIZE", 5))),
            max_file_bytes=int(config.get("INGEST_MAX_FILE_MB", 50)) * MB,
            max_batch_bytes=int(config.get("INGEST_MAX_BATCH_MB", 200)) * MB,
            max_files=int(config.get("INGEST_MAX_FILES", 25)),
            detection_min_confidence=int(config.get("INGEST_DETECTION_MIN_CONFIDENCE", 30)),
            review_confidence=int(config.get("INGEST_REVIEW_CONFIDENCE", 70)),
            reject_ambiguous=bool(config.get("INGEST_REJECT_AMBIGUOUS", False)),
            channel_prefixes=tuple(config.get("CHANNEL_NAME_PREFIXES", ("ext", "3pd", "online", "third party"))),
            channel_fuzzy_threshold=float(config.get("CHANNEL_FUZZY_THRESHOLD", 0.85)),
            rules=ValidationRules.from_config(config),
        )
