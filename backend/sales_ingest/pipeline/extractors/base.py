"""
Shared extractor contract.

Every strategy turns a SourceDocument into an ExtractionResult or raises
ExtractionError. Strategies hold no state between calls, so one instance is
shared across the coordinator's worker threads.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ...errors import ExtractionError
from ..documents import DocumentKind, SourceDocument
from ..profiles import PosSystem
from ..records import (
    ZERO,
    CashManagement,
    DailySales,
    GiftCardActivity,
    LaborSummary,
    PaymentBreakdown,
    Severity,
    ValidationFinding,
    order_average,
    payment_breakdown_from_tenders,
    with_group_percents,
)

MONTHS = {
    name: index
    for index, names in enumerate(
        (
            ("january", "jan"),
            ("february", "feb"),
            ("march", "mar"),
            ("april", "apr"),
            ("may",),
            ("june", "jun"),
            ("july", "jul"),
            ("august", "aug"),
            ("september", "sep", "sept"),
            ("october", "oct"),
            ("november", "nov"),
            ("december", "dec"),
        ),
        start=1,
    )
    for name in names
}

_WORDY_DATE = re.compile(
    r"(?:(?:Mon|Tues|Wednes|Thurs|Fri|Satur|Sun)day,?\s+)?([A-Za-z]{3,9})\.?\s+(\d{1,2}),?\s+(\d{4})"
)
_US_DATE = re.compile(r"\b(\d{1,2})[/\-](\d{1,2})[/\-](\d{4}|\d{2})\b")
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")

# Weights for the located-field confidence score.
CORE_WEIGHT = 25
OPTIONAL_WEIGHT = 10
DATE_WEIGHT = 15
CRITICAL_PENALTY = 30


_DATE_LABEL = re.compile(r"\b(?:(?:business|report|sales)\s+)?date\b\s*[:\-]?\s*", re.IGNORECASE)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _wordy(match) -> date | None:
    month = MONTHS.get(match.group(1).lower())
    return _safe_date(int(match.group(3)), month, int(match.group(2))) if month else None


def _us(match) -> date | None:
    year = int(match.group(3))
    if year < 100:
        year += 2000
    return _safe_date(year, int(match.group(1)), int(match.group(2)))


def _iso(match) -> date | None:
    return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))


# Print timestamps are usually ISO, so ISO comes last.
_DATE_FORMS = ((_WORDY_DATE, _wordy), (_US_DATE, _us), (_ISO_DATE, _iso))


def find_date(text: str) -> date | None:
    """
    Business date in the text. A date right after a "Business Date" / "Date:"
    label wins; otherwise the first weekday or month-name date, then M/D/Y,
    then ISO.
    """
    for label in _DATE_LABEL.finditer(text):
        rest = text[label.end():]
        for pattern, convert in _DATE_FORMS:
            match = pattern.match(rest)
            found = convert(match) if match else None
            if found:
                return found
    for pattern, convert in _DATE_FORMS:
        for match in pattern.finditer(text):
            found = convert(match)
            if found:
                return found
    return None


@dataclass(frozen=True)
class ExtractionContext:
    team_id: str
    date: date
    location: str | None = None


@dataclass
class ExtractionResult:
    record: DailySales
    pos_system: PosSystem
    confidence: int
    findings: list[ValidationFinding] = field(default_factory=list)
    extracted_date: date | None = None


def weighted_confidence(
    record: DailySales,
    *,
    date_found: bool,
    tips: Decimal = ZERO,
    labor_hours: Decimal = ZERO,
) -> int:
    """Located-field score: core figures count most, the date and optionals less."""
    core = (record.gross_sales, record.net_sales, record.order_count)
    optional = (
        record.payment_breakdown.total_cash,
        record.payment_breakdown.non_cash,
        tips,
        labor_hours,
    )
    max_score = CORE_WEIGHT * len(core) + OPTIONAL_WEIGHT * len(optional) + DATE_WEIGHT
    score = sum(CORE_WEIGHT for value in core if value and value > 0)
    score += sum(OPTIONAL_WEIGHT for value in optional if value and value > 0)
    if date_found:
        score += DATE_WEIGHT
    if record.net_sales > record.gross_sales:
        score -= CRITICAL_PENALTY
    return max(0, min(100, round(score / max_score * 100)))


def missing(field_name: str, message: str, severity: Severity = Severity.INFO, suggested=None) -> ValidationFinding:
    return ValidationFinding(field=field_name, message=message, severity=severity, suggested_value=suggested)


def complete_record(record: DailySales) -> DailySales:
    """
    Fill derived figures every extractor owes the canonical shape: group
    percents, order average, the payment breakdown when tenders are known, and
    zeroed optional sections.
    """
    for items in record.groups().values():
        if items and not any(item.percent for item in items):
            with_group_percents(items)
    if record.tenders and record.payment_breakdown.is_empty:
        record.payment_breakdown = payment_breakdown_from_tenders(record.tenders)
    record.order_average = order_average(record.net_sales, record.order_count)
    if record.labor is None:
        record.labor = LaborSummary()
    if record.cash_management is None:
        record.cash_management = CashManagement()
    if record.gift_cards is None:
        record.gift_cards = GiftCardActivity()
    if record.payment_breakdown is None:
        record.payment_breakdown = PaymentBreakdown()
    return record


class ExtractorStrategy:
    """One POS layout family. Subclasses implement `_extract`."""

    system: PosSystem = PosSystem.GENERIC
    supported_kinds: frozenset[DocumentKind] = frozenset()

    def supports(self, kind: DocumentKind) -> bool:
        return kind in self.supported_kinds

    def extract(self, document: SourceDocument, context: ExtractionContext) -> ExtractionResult:
        if not self.supports(document.kind):
            raise ExtractionError(
                f"{self.system.value} reports are not read from {document.kind.value} files",
                kind=ExtractionError.UNSUPPORTED_LAYOUT,
            )
        return self._extract(document, context)

    def _extract(self, document: SourceDocument, context: ExtractionContext) -> ExtractionResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.system.value}>"
