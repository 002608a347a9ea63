"""
Format detection.

The file extension picks the path (document vs tabular); content signatures
inside that path pick the vendor profile. Ambiguity is not an error here: the
caller gets `ambiguous=True` and the generic profile, and decides whether to
proceed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..errors import ExtractionError
from .documents import DocumentKind, SourceDocument, kind_for
from .profiles import TEXT_PROFILES, PosSystem

DEFAULT_MIN_CONFIDENCE = 30

TOAST_BANNER = "salessummary"
TOAST_SECTION_MARKERS = ("revenue summary", "net sales summary", "payments summary")


@dataclass(frozen=True)
class Detection:
    pos_system: PosSystem
    confidence: int
    document_kind: DocumentKind
    ambiguous: bool = False
    forced: bool = False
    scores: dict[str, int] = field(default_factory=dict)


def score_text(text: str) -> dict[PosSystem, int]:
    """Per-vendor confidence (0-100): label hits plus keyword hits weighted 2."""
    scores: dict[PosSystem, int] = {}
    for system, profile in TEXT_PROFILES.items():
        raw = 0
        for labels in profile.patterns.values():
            for label in labels:
                if re.search(label, text, re.IGNORECASE):
                    raw += 1
        for keyword in profile.keywords:
            if keyword.lower() in text.lower():
                raw += 2
        scores[system] = round(raw / profile.max_score * 100) if profile.max_score else 0
    return scores


def is_toast_layout(rows: list[list[str]]) -> bool:
    if rows and any(TOAST_BANNER in cell.lower() for cell in rows[0]):
        return True
    for row in rows:
        for cell in row:
            if cell.lower() in TOAST_SECTION_MARKERS:
                return True
    return False


def detect(
    file_name: str,
    document: SourceDocument,
    forced_format=None,
    *,
    min_confidence: int = DEFAULT_MIN_CONFIDENCE,
) -> Detection:
    kind = kind_for(file_name)
    if kind is None:
        raise ExtractionError(
            f"Unsupported file type: {file_name}",
            kind=ExtractionError.UNSUPPORTED_FORMAT,
        )

    forced = PosSystem.parse(forced_format)
    if forced is not None:
        return Detection(pos_system=forced, confidence=100, document_kind=kind, forced=True)

    if kind is DocumentKind.TABULAR:
        if is_toast_layout(document.rows):
            return Detection(pos_system=PosSystem.TOAST, confidence=90, document_kind=kind)
        # Plain spreadsheets carry no vendor signature; the generic layout is the match.
        return Detection(pos_system=PosSystem.GENERIC, confidence=60, document_kind=kind)

    scores = score_text(document.flat_text)
    best = PosSystem.GENERIC
    best_score = 0
    # Enum order breaks ties.
    for system in TEXT_PROFILES:
        if scores[system] > best_score:
            best, best_score = system, scores[system]

    named = {system.value: score for system, score in scores.items()}
    if best_score < min_confidence:
        return Detection(
            pos_system=PosSystem.GENERIC,
            confidence=best_score,
            document_kind=kind,
            ambiguous=True,
            scores=named,
        )
    return Detection(pos_system=best, confidence=best_score, document_kind=kind, scores=named)
