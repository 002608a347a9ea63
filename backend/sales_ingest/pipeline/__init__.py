"""
Framework-free ingestion pipeline: documents in, canonical records and
findings out. Nothing here imports Flask or the database layer.
"""

from .detection import Detection, detect
from .documents import DocumentReader, UploadedFile
from .flow import FileOutcome, ManualChannelSale, process_file
from .profiles import PosSystem
from .records import DailySales, Severity, ValidationFinding
from .settings import IngestSettings, ValidationRules
from .validator import validate

__all__ = [
    "DailySales",
    "Detection",
    "DocumentReader",
    "FileOutcome",
    "IngestSettings",
    "ManualChannelSale",
    "PosSystem",
    "Severity",
    "UploadedFile",
    "ValidationFinding",
    "ValidationRules",
    "detect",
    "process_file",
    "validate",
]
