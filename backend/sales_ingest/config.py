# backend/sales_ingest/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/sales_ingest.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///sales_ingest.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Batch upload limits and worker pool shape
    INGEST_MAX_CONCURRENT = int(os.environ.get("INGEST_MAX_CONCURRENT", 3))
    INGEST_CHUNK_SIZE = int(os.environ.get("INGEST_CHUNK_SIZE", 5))
    INGEST_MAX_FILE_MB = int(os.environ.get("INGEST_MAX_FILE_MB", 50))
    INGEST_MAX_BATCH_MB = int(os.environ.get("INGEST_MAX_BATCH_MB", 200))
    INGEST_MAX_FILES = int(os.environ.get("INGEST_MAX_FILES", 25))
    INGEST_RUNNER_WORKERS = int(os.environ.get("INGEST_RUNNER_WORKERS", 2))

    # Format detection / staging review thresholds (0-100)
    INGEST_DETECTION_MIN_CONFIDENCE = int(os.environ.get("INGEST_DETECTION_MIN_CONFIDENCE", 30))
    INGEST_REVIEW_CONFIDENCE = int(os.environ.get("INGEST_REVIEW_CONFIDENCE", 70))
    INGEST_REJECT_AMBIGUOUS = _env_bool("INGEST_REJECT_AMBIGUOUS", False)

    # Validator tolerances
    VALIDATION_TENDER_ABS_TOLERANCE = os.environ.get("VALIDATION_TENDER_ABS_TOLERANCE", "1.00")
    VALIDATION_TENDER_REL_TOLERANCE = os.environ.get("VALIDATION_TENDER_REL_TOLERANCE", "0.01")
    VALIDATION_MAX_AGE_YEARS = int(os.environ.get("VALIDATION_MAX_AGE_YEARS", 2))
    VALIDATION_PERCENT_TOLERANCE = os.environ.get("VALIDATION_PERCENT_TOLERANCE", "1.0")
    VALIDATION_ORDER_AVERAGE_FACTOR = os.environ.get("VALIDATION_ORDER_AVERAGE_FACTOR", "2.0")
    VALIDATION_MAX_LABOR_PERCENT = os.environ.get("VALIDATION_MAX_LABOR_PERCENT", "40")
    VALIDATION_MAX_ORDER_COUNT = int(os.environ.get("VALIDATION_MAX_ORDER_COUNT", 1000))
    VALIDATION_PAYMENT_ANOMALY_TOLERANCE = os.environ.get("VALIDATION_PAYMENT_ANOMALY_TOLERANCE", "0.02")
    VALIDATION_SALES_ANOMALY_Z = os.environ.get("VALIDATION_SALES_ANOMALY_Z", "2")
    VALIDATION_MIN_HISTORY_DAYS = int(os.environ.get("VALIDATION_MIN_HISTORY_DAYS", 7))

    # Delivery channel matching
    CHANNEL_NAME_PREFIXES = tuple(
        p.strip()
        for p in os.environ.get("CHANNEL_NAME_PREFIXES", "ext,3pd,online,third party").split(",")
        if p.strip()
    )
    CHANNEL_FUZZY_THRESHOLD = float(os.environ.get("CHANNEL_FUZZY_THRESHOLD", 0.85))
