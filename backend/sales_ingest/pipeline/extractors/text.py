"""
Text-report extraction for PDF exports.

Scalar figures come from the vendor's label patterns applied to whitespace
collapsed text. Line-item tables (destinations, tenders, ...) are read from the
original lines under a known section heading, one row per line:

    Visa            136   $4,273.02   $91.30   $4,364.32   75.97%
    name            qty   payments    tips     total       percent
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal

from ...errors import MissingRequiredField
from ..documents import DocumentKind, SourceDocument
from ..profiles import (
    CASH_MANAGEMENT_FIELDS,
    COMMON_PATTERNS,
    GIFT_CARD_FIELDS,
    PAYMENT_FIELDS,
    SECTION_HEADINGS,
    TEXT_PROFILES,
    PosSystem,
    TextProfile,
    generic_text_profile,
    value_regex,
)
from ..records import (
    CENT,
    ZERO,
    CashManagement,
    DailySales,
    GiftCardActivity,
    LaborSummary,
    LineItem,
    PaymentBreakdown,
    Severity,
    TenderLine,
    to_decimal,
    to_int,
)
from .base import (
    ExtractionContext,
    ExtractionResult,
    ExtractorStrategy,
    complete_record,
    find_date,
    missing,
    weighted_confidence,
)

logger = logging.getLogger(__name__)

_MONEY_TOKEN = re.compile(r"^\(?-?\$?[0-9][0-9,]*\.[0-9]{2}\)?$")
_QTY_TOKEN = re.compile(r"^[0-9][0-9,]*$")
_PCT_TOKEN = re.compile(r"^-?[0-9]+(?:\.[0-9]+)?%$")
_LOCATION = re.compile(r"^\s*(?:Location|Store|Restaurant)\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)

_HEADING_LOOKUP = {
    heading: group for group, headings in SECTION_HEADINGS.items() for heading in headings
}


def find_figures(text: str, patterns: dict[str, tuple[str, ...]]) -> dict[str, str]:
    """Raw captured value per field; the first label that matches wins."""
    found: dict[str, str] = {}
    for name, labels in patterns.items():
        for label in labels:
            match = re.search(value_regex(name, label), text, re.IGNORECASE)
            if match:
                found[name] = match.group(1)
                break
    return found


def _heading(line: str) -> str | None:
    key = " ".join(line.strip().rstrip(":").lower().split())
    return _HEADING_LOOKUP.get(key)


def parse_item_line(line: str, *, tender: bool = False) -> LineItem | None:
    tokens = line.split()
    percent = None
    if tokens and _PCT_TOKEN.match(tokens[-1]):
        percent = to_decimal(tokens.pop())
    amounts: list[Decimal] = []
    while tokens and _MONEY_TOKEN.match(tokens[-1]):
        amounts.insert(0, to_decimal(tokens.pop()))
    if not amounts:
        return None
    quantity = 0
    if tokens and _QTY_TOKEN.match(tokens[-1]):
        quantity = to_int(tokens.pop())
    name = " ".join(tokens).strip()
    if not name:
        return None

    if tender:
        if len(amounts) >= 3:
            payments, tips, total = amounts[-3], amounts[-2], amounts[-1]
        elif len(amounts) == 2:
            payments, tips = amounts
            total = payments + tips
        else:
            payments, tips, total = amounts[0], ZERO, amounts[0]
        return TenderLine(
            name=name,
            quantity=quantity,
            total=total,
            percent=percent or ZERO,
            payments=payments,
            tips=tips,
        )
    return LineItem(name=name, quantity=quantity, total=amounts[-1], percent=percent or ZERO)


def parse_sections(text: str) -> dict[str, list[LineItem]]:
    groups: dict[str, list[LineItem]] = {}
    current = None
    for line in text.splitlines():
        if not line.strip():
            current = None
            continue
        group = _heading(line)
        if group:
            current = group
            groups.setdefault(group, [])
            continue
        if current is None:
            continue
        item = parse_item_line(line, tender=current == "tenders")
        if item is None:
            # Column captions and wrapped text inside a section.
            continue
        if item.name.lower() in {"total", "totals", "grand total"}:
            current = None
            continue
        groups[current].append(item)
    return groups


class TextReportExtractor(ExtractorStrategy):
    supported_kinds = frozenset({DocumentKind.PDF})

    def __init__(self, profile: TextProfile):
        self.profile = profile
        self.system = profile.system

    def _extract(self, document: SourceDocument, context: ExtractionContext) -> ExtractionResult:
        return extract_text_report(document, context, self.profile)


def extract_text_report(
    document: SourceDocument,
    context: ExtractionContext,
    profile: TextProfile,
) -> ExtractionResult:
    flat = document.flat_text
    raw = find_figures(flat, profile.patterns)
    raw.update(find_figures(flat, COMMON_PATTERNS))
    findings = []

    if "gross_sales" not in raw:
        raise MissingRequiredField("gross_sales", "Gross sales total could not be located in the report")

    figures = {name: to_decimal(value) for name, value in raw.items()}
    gross = figures["gross_sales"]
    if "net_sales" in raw:
        net = figures["net_sales"]
    else:
        net = ZERO
        findings.append(missing("net_sales", "Net sales not found", Severity.ERROR, suggested=gross))
    orders = to_int(raw.get("order_count"))
    if "order_count" not in raw:
        findings.append(missing("order_count", "Order count not found", Severity.WARNING))

    extracted_date = find_date(document.text)
    location = context.location
    loc_match = _LOCATION.search(document.text)
    if loc_match:
        location = loc_match.group(1)

    sections = parse_sections(document.text)
    tenders = [t for t in sections.get("tenders", []) if isinstance(t, TenderLine)]

    tips = figures.get("tips", ZERO)
    if any(name in raw for name in PAYMENT_FIELDS):
        total_cash = figures.get("total_cash", ZERO)
        payment_breakdown = PaymentBreakdown(
            non_cash=figures.get("non_cash", ZERO),
            total_cash=total_cash,
            calculated_cash=total_cash - tips,
            tips=tips,
        )
    else:
        # Filled from tenders when the report lists them.
        payment_breakdown = PaymentBreakdown()
        if not tenders:
            findings.append(missing("payment_breakdown", "Cash and non-cash totals not found"))

    labor_cost = figures.get("labor_cost", ZERO)
    labor_hours = figures.get("labor_hours", ZERO)
    labor = LaborSummary(
        cost=labor_cost,
        hours=labor_hours,
        percentage=(labor_cost / net * 100).quantize(CENT) if net and labor_cost else ZERO,
        sales_per_labor_hour=(net / labor_hours).quantize(CENT) if labor_hours and net else ZERO,
    )
    if not labor_cost and not labor_hours:
        findings.append(missing("labor", "No labor figures in report"))

    cash_management = CashManagement(**{name: figures.get(name, ZERO) for name in CASH_MANAGEMENT_FIELDS})
    gift_cards = GiftCardActivity(
        issue_amount=figures.get(GIFT_CARD_FIELDS[0], ZERO),
        issue_count=to_int(raw.get(GIFT_CARD_FIELDS[1])),
        reload_amount=figures.get(GIFT_CARD_FIELDS[2], ZERO),
        reload_count=to_int(raw.get(GIFT_CARD_FIELDS[3])),
    )

    taxes = sections.get("taxes", [])
    if not taxes and figures.get("tax_total"):
        taxes = [LineItem(name="Tax", quantity=1, total=figures["tax_total"])]

    record = DailySales(
        date=extracted_date or context.date,
        team_id=context.team_id,
        location=location,
        gross_sales=gross,
        net_sales=net,
        order_count=orders,
        destinations=sections.get("destinations", []),
        revenue_items=sections.get("revenue_items", []),
        tenders=tenders,
        discounts=sections.get("discounts", []),
        promotions=sections.get("promotions", []),
        taxes=taxes,
        payment_breakdown=payment_breakdown,
        labor=labor,
        cash_management=cash_management,
        gift_cards=gift_cards,
        expenses=figures.get("expenses", ZERO),
        voids=figures.get("voids", ZERO),
        refunds=figures.get("refunds", ZERO),
        surcharges=figures.get("surcharges", ZERO),
    )
    complete_record(record)
    confidence = weighted_confidence(
        record,
        date_found=extracted_date is not None,
        tips=record.payment_breakdown.tips,
        labor_hours=labor_hours,
    )
    logger.debug(
        "Extracted %s report %s: %d figures, %d sections, confidence %d",
        profile.system.value,
        document.file_name,
        len(raw),
        len(sections),
        confidence,
    )
    return ExtractionResult(
        record=record,
        pos_system=profile.system,
        confidence=confidence,
        findings=findings,
        extracted_date=extracted_date,
    )


def vendor_text_extractors() -> dict[PosSystem, TextReportExtractor]:
    return {system: TextReportExtractor(profile) for system, profile in TEXT_PROFILES.items()}


GENERIC_TEXT_PROFILE = generic_text_profile()
