from __future__ import annotations

from ..profiles import PosSystem
from .base import ExtractionContext, ExtractionResult, ExtractorStrategy, find_date
from .tabular import GenericExtractor, ToastExtractor
from .text import TextReportExtractor, vendor_text_extractors


def default_extractors() -> dict[PosSystem, ExtractorStrategy]:
    extractors: dict[PosSystem, ExtractorStrategy] = dict(vendor_text_extractors())
    extractors[PosSystem.TOAST] = ToastExtractor()
    extractors[PosSystem.GENERIC] = GenericExtractor()
    return extractors


__all__ = [
    "ExtractionContext",
    "ExtractionResult",
    "ExtractorStrategy",
    "GenericExtractor",
    "TextReportExtractor",
    "ToastExtractor",
    "default_extractors",
    "find_date",
]
