"""
Spreadsheet extraction (CSV / XLSX).

Two layouts:

- Toast "SalesSummary" exports: titled sections ("Revenue summary", "Payments
  summary", ...) each followed by label/value pairs or a small table.
- Generic sheets: label/value rows, a wide header row with one data row, and
  line-item tables (tenders, destinations, ...) introduced by a header row.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal

from ...errors import MissingRequiredField
from ..documents import DocumentKind, SourceDocument
from ..profiles import TEXT_PROFILES, PosSystem
from ..records import (
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
from ...time_utils import parse_iso_date
from .base import (
    ExtractionContext,
    ExtractionResult,
    ExtractorStrategy,
    complete_record,
    find_date,
    missing,
    weighted_confidence,
)
from .text import GENERIC_TEXT_PROFILE, extract_text_report

logger = logging.getLogger(__name__)

LABEL_SCAN_ROWS = 30
TOAST_BANNER_DATE = re.compile(r"SalesSummary_(\d{4}-\d{2}-\d{2})", re.IGNORECASE)

TOAST_SECTIONS = (
    "revenue summary",
    "net sales summary",
    "service mode summary",
    "payments summary",
    "void summary",
    "check discounts",
    "tax summary",
)


def _norm(cell: str) -> str:
    return " ".join(cell.strip().rstrip(":").lower().split())


def _filled(row: list[str]) -> list[str]:
    return [c for c in row if c]


def find_section(rows: list[list[str]], title: str) -> int | None:
    for idx, row in enumerate(rows):
        if any(_norm(cell) == title for cell in row):
            return idx
    return None


def label_value(rows: list[list[str]], start: int, label: str) -> str | None:
    """Value in the cell right of `label`, searching a window below `start`."""
    for row in rows[start:start + LABEL_SCAN_ROWS]:
        for idx, cell in enumerate(row):
            if _norm(cell) == label and idx + 1 < len(row) and row[idx + 1]:
                return row[idx + 1]
    return None


def table_after(rows: list[list[str]], start: int) -> tuple[list[str], list[list[str]]]:
    """Header and data rows of the table under a section title."""
    header_idx = start + 1
    while header_idx < len(rows) and len(_filled(rows[header_idx])) < 2:
        header_idx += 1
    if header_idx >= len(rows):
        return [], []
    header = [_norm(c) for c in rows[header_idx]]
    data = []
    for row in rows[header_idx + 1:]:
        filled = _filled(row)
        if not filled:
            break
        if len(filled) < 3 and any("summary" in c.lower() for c in filled):
            break
        data.append(row)
    return header, data


def column(header: list[str], *names: str, contains: bool = False) -> int | None:
    for name in names:
        for idx, caption in enumerate(header):
            if caption == name or (contains and name in caption):
                return idx
    return None


def _cell(row: list[str], idx: int | None) -> str:
    if idx is None or idx >= len(row):
        return ""
    return row[idx]


class ToastTabularReader:
    """Toast SalesSummary export, section by section."""

    def read(self, document: SourceDocument, context: ExtractionContext) -> ExtractionResult:
        rows = document.rows
        findings = []
        sections_found = 0

        extracted_date = None
        if rows and rows[0]:
            banner = TOAST_BANNER_DATE.search(rows[0][0])
            if banner:
                extracted_date = parse_iso_date(banner.group(1))
        location = context.location
        if len(rows) > 1 and rows[1] and rows[1][0]:
            location = rows[1][0].lstrip("-").strip() or location

        idx = {title: find_section(rows, title) for title in TOAST_SECTIONS}

        net = tax_amount = tips = ZERO
        if idx["revenue summary"] is not None:
            sections_found += 1
            start = idx["revenue summary"]
            net = to_decimal(label_value(rows, start, "net sales"))
            tax_amount = to_decimal(label_value(rows, start, "tax amount"))
            tips = to_decimal(label_value(rows, start, "tips"))

        gross_raw = None
        sales_discounts = sales_refunds = ZERO
        if idx["net sales summary"] is not None:
            sections_found += 1
            start = idx["net sales summary"]
            gross_raw = label_value(rows, start, "gross sales")
            sales_discounts = to_decimal(label_value(rows, start, "sales discounts"))
            sales_refunds = to_decimal(label_value(rows, start, "sales refunds"))
        if gross_raw is None:
            raise MissingRequiredField("gross_sales", "Toast export has no gross sales in its net sales summary")
        gross = to_decimal(gross_raw)

        orders = 0
        destinations: list[LineItem] = []
        if idx["service mode summary"] is not None:
            sections_found += 1
            header, data = table_after(rows, idx["service mode summary"])
            orders_col = column(header, "orders", contains=True)
            amount_col = column(header, "net sales", "amount", "sales", contains=True)
            for row in data:
                name = _cell(row, 0)
                if _norm(name) == "total":
                    orders = to_int(_cell(row, orders_col))
                    continue
                if name:
                    destinations.append(
                        LineItem(
                            name=name,
                            quantity=to_int(_cell(row, orders_col)),
                            total=to_decimal(_cell(row, amount_col)),
                        )
                    )
            if not orders:
                orders = sum(d.quantity for d in destinations)

        tenders: list[TenderLine] = []
        if idx["payments summary"] is not None:
            sections_found += 1
            header, data = table_after(rows, idx["payments summary"])
            type_col = column(header, "payment type", contains=True)
            if type_col is None:
                type_col = 0
            count_col = column(header, "count")
            amount_col = column(header, "amount")
            tips_col = column(header, "tips")
            total_col = column(header, "total")
            for row in data:
                name = _cell(row, type_col)
                if not name or _norm(name) == "total":
                    continue
                payments = to_decimal(_cell(row, amount_col))
                row_tips = to_decimal(_cell(row, tips_col))
                total = to_decimal(_cell(row, total_col), default=payments + row_tips)
                tenders.append(
                    TenderLine(
                        name=name,
                        quantity=to_int(_cell(row, count_col)),
                        total=total,
                        payments=payments,
                        tips=row_tips,
                    )
                )

        voids = ZERO
        if idx["void summary"] is not None:
            sections_found += 1
            voids = to_decimal(label_value(rows, idx["void summary"], "void amount"))

        discounts: list[LineItem] = []
        if idx["check discounts"] is not None:
            sections_found += 1
            header, data = table_after(rows, idx["check discounts"])
            name_col = column(header, "discount", contains=True)
            count_col = column(header, "count")
            amount_col = column(header, "amount", contains=True)
            for row in data:
                name = _cell(row, name_col if name_col is not None else 0)
                amount = abs(to_decimal(_cell(row, amount_col)))
                if name and _norm(name) != "total" and amount > 0:
                    discounts.append(LineItem(name=name, quantity=to_int(_cell(row, count_col)), total=amount))
        if not discounts and sales_discounts:
            discounts.append(LineItem(name="Sales discounts", quantity=1, total=abs(sales_discounts)))

        taxes: list[LineItem] = []
        if idx["tax summary"] is not None:
            sections_found += 1
            header, data = table_after(rows, idx["tax summary"])
            rate_col = column(header, "tax rate", contains=True)
            amount_col = column(header, "tax amount", contains=True)
            for row in data:
                name = _cell(row, rate_col if rate_col is not None else 0)
                amount = to_decimal(_cell(row, amount_col))
                if name and _norm(name) not in {"tax", "total"} and amount > 0:
                    taxes.append(LineItem(name=name, quantity=1, total=amount))
        if not taxes and tax_amount:
            taxes.append(LineItem(name="Tax", quantity=1, total=tax_amount))

        if sections_found < 3:
            findings.append(
                missing("format", f"Only found {sections_found} sections. Some data may be missing.", Severity.WARNING)
            )

        record = DailySales(
            date=extracted_date or context.date,
            team_id=context.team_id,
            location=location,
            gross_sales=gross,
            net_sales=net,
            order_count=orders,
            destinations=destinations,
            tenders=tenders,
            discounts=discounts,
            taxes=taxes,
            voids=voids,
            refunds=abs(sales_refunds),
        )
        if not tenders and tips:
            record.payment_breakdown = PaymentBreakdown(tips=tips)
        complete_record(record)
        return ExtractionResult(
            record=record,
            pos_system=PosSystem.TOAST,
            confidence=min(100, 50 + 8 * sections_found),
            findings=findings,
            extracted_date=extracted_date,
        )


# Label aliases for generic sheets, normalised lowercase.
GENERIC_LABELS: dict[str, tuple[str, ...]] = {
    "date": ("date", "business date", "report date", "sales date"),
    "location": ("location", "store", "restaurant"),
    "gross_sales": ("gross sales", "total sales", "gross revenue", "gross", "sales", "revenue"),
    "net_sales": ("net sales", "net revenue", "net"),
    "order_count": ("orders", "order count", "total orders", "transactions", "check count", "guests"),
    "tips": ("tips", "total tips"),
    "total_cash": ("cash", "total cash", "cash sales"),
    "non_cash": ("non-cash", "non cash", "noncash", "card", "cards", "credit card"),
    "labor_hours": ("labor hours", "total labor hours"),
    "labor_cost": ("labor cost", "total labor cost"),
    "voids": ("voids", "void amount"),
    "refunds": ("refunds", "total refunds"),
    "surcharges": ("surcharges", "service charges"),
    "expenses": ("expenses", "total expenses"),
    "paid_in": ("paid in",),
    "paid_out": ("paid out",),
    "deposits_accepted": ("deposits accepted",),
    "deposits_redeemed": ("deposits redeemed",),
    "gift_card_issue_amount": ("gift cards sold", "gift card sales", "gift cards issued"),
    "gift_card_reload_amount": ("gift card reloads", "gift cards reloaded"),
}
_LABEL_LOOKUP = {alias: name for name, aliases in GENERIC_LABELS.items() for alias in aliases}

# First header caption -> line-item group.
TABLE_CAPTIONS: dict[str, tuple[str, ...]] = {
    "tenders": ("tender", "tenders", "payment type", "payment method", "payment"),
    "destinations": ("destination", "destinations", "service mode", "dining option", "channel"),
    "revenue_items": ("revenue item", "revenue items", "category", "revenue center"),
    "discounts": ("discount", "discounts"),
    "promotions": ("promotion", "promotions"),
    "taxes": ("tax", "taxes", "tax rate"),
}
_CAPTION_LOOKUP = {caption: group for group, captions in TABLE_CAPTIONS.items() for caption in captions}
_COLUMN_WORDS = {"count", "qty", "quantity", "orders", "amount", "payments", "tips", "total", "net sales", "sales", "%", "percent"}


def _table_group(row: list[str]) -> str | None:
    filled = [_norm(c) for c in _filled(row)]
    if len(filled) < 2:
        return None
    group = _CAPTION_LOOKUP.get(filled[0])
    if group and any(c in _COLUMN_WORDS for c in filled[1:]):
        return group
    return None


def _read_table(group: str, header: list[str], data: list[list[str]]) -> list[LineItem]:
    qty_col = column(header, "count", "qty", "quantity", "orders")
    payments_col = column(header, "payments", "amount", "net sales", "sales")
    tips_col = column(header, "tips")
    total_col = column(header, "total")
    pct_col = column(header, "%", "percent")
    items: list[LineItem] = []
    for row in data:
        name = _cell(row, 0)
        if not name or _norm(name) in {"total", "totals"}:
            continue
        quantity = to_int(_cell(row, qty_col))
        percent = to_decimal(_cell(row, pct_col))
        if group == "tenders":
            payments = to_decimal(_cell(row, payments_col))
            tips = to_decimal(_cell(row, tips_col))
            total = to_decimal(_cell(row, total_col), default=payments + tips)
            items.append(
                TenderLine(name=name, quantity=quantity, total=total, percent=percent, payments=payments, tips=tips)
            )
        else:
            amount_col = total_col if total_col is not None else payments_col
            items.append(LineItem(name=name, quantity=quantity, total=to_decimal(_cell(row, amount_col)), percent=percent))
    return items


def _is_number(cell: str) -> bool:
    return to_decimal(cell, default=None) is not None  # type: ignore[arg-type]


class GenericTabularReader:
    """Best-effort reader for sheets with no vendor signature."""

    def read(self, document: SourceDocument, context: ExtractionContext) -> ExtractionResult:
        rows = document.rows
        raw: dict[str, str] = {}
        groups: dict[str, list[LineItem]] = {}
        findings = []

        i = 0
        while i < len(rows):
            row = rows[i]
            group = _table_group(row)
            if group:
                header = [_norm(c) for c in row]
                data = []
                i += 1
                while i < len(rows) and _filled(rows[i]):
                    data.append(rows[i])
                    i += 1
                groups.setdefault(group, []).extend(_read_table(group, header, data))
                continue

            captions = [(_LABEL_LOOKUP.get(_norm(c)), col) for col, c in enumerate(row) if c]
            known = [(name, col) for name, col in captions if name]
            if len(known) >= 2 and i + 1 < len(rows):
                # Wide layout: one header row, values in the row beneath.
                values = rows[i + 1]
                for name, col in known:
                    if name not in raw and col < len(values) and values[col]:
                        raw[name] = values[col]
                i += 2
                continue

            filled = _filled(row)
            if len(filled) >= 2:
                name = _LABEL_LOOKUP.get(_norm(filled[0]))
                if name and name not in raw and (name in {"date", "location"} or _is_number(filled[1])):
                    raw[name] = filled[1]
            i += 1

        tenders = [t for t in groups.get("tenders", []) if isinstance(t, TenderLine)]

        extracted_date = None
        if raw.get("date"):
            extracted_date = find_date(raw["date"])
        if extracted_date is None:
            extracted_date = find_date(" ".join(" ".join(r) for r in rows[:10]))

        if "gross_sales" in raw:
            gross = to_decimal(raw["gross_sales"])
        elif tenders:
            gross = sum((t.payments for t in tenders), ZERO)
            findings.append(
                missing("gross_sales", "Gross sales derived from tender payments", Severity.WARNING, suggested=gross)
            )
        else:
            raise MissingRequiredField("gross_sales", "No gross sales column, label or tender table found")

        if "net_sales" in raw:
            net = to_decimal(raw["net_sales"])
        else:
            net = gross
            findings.append(missing("net_sales", "Net sales not found; using gross sales", Severity.WARNING, suggested=gross))

        orders = to_int(raw.get("order_count"))
        if "order_count" not in raw:
            findings.append(missing("order_count", "Order count not found", Severity.WARNING))

        figures = {name: to_decimal(value) for name, value in raw.items() if name not in {"date", "location"}}
        tips = figures.get("tips", ZERO)
        payment_breakdown = PaymentBreakdown()
        if "total_cash" in raw or "non_cash" in raw:
            total_cash = figures.get("total_cash", ZERO)
            payment_breakdown = PaymentBreakdown(
                non_cash=figures.get("non_cash", ZERO),
                total_cash=total_cash,
                calculated_cash=total_cash - tips,
                tips=tips,
            )
        elif not tenders:
            findings.append(missing("payment_breakdown", "Cash and non-cash totals not found"))

        labor_cost = figures.get("labor_cost", ZERO)
        labor_hours = figures.get("labor_hours", ZERO)
        record = DailySales(
            date=extracted_date or context.date,
            team_id=context.team_id,
            location=raw.get("location") or context.location,
            gross_sales=gross,
            net_sales=net,
            order_count=orders,
            destinations=groups.get("destinations", []),
            revenue_items=groups.get("revenue_items", []),
            tenders=tenders,
            discounts=groups.get("discounts", []),
            promotions=groups.get("promotions", []),
            taxes=groups.get("taxes", []),
            payment_breakdown=payment_breakdown,
            labor=LaborSummary(
                cost=labor_cost,
                hours=labor_hours,
                sales_per_labor_hour=(net / labor_hours).quantize(Decimal("0.01")) if labor_hours else ZERO,
            ),
            cash_management=CashManagement(
                deposits_accepted=figures.get("deposits_accepted", ZERO),
                deposits_redeemed=figures.get("deposits_redeemed", ZERO),
                paid_in=figures.get("paid_in", ZERO),
                paid_out=figures.get("paid_out", ZERO),
            ),
            gift_cards=GiftCardActivity(
                issue_amount=figures.get("gift_card_issue_amount", ZERO),
                reload_amount=figures.get("gift_card_reload_amount", ZERO),
            ),
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
        logger.debug("Generic sheet %s: fields=%s groups=%s", document.file_name, sorted(raw), sorted(groups))
        return ExtractionResult(
            record=record,
            pos_system=PosSystem.GENERIC,
            confidence=confidence,
            findings=findings,
            extracted_date=extracted_date,
        )


class ToastExtractor(ExtractorStrategy):
    """Toast ships both a PDF sales summary and a sectioned CSV export."""

    system = PosSystem.TOAST
    supported_kinds = frozenset({DocumentKind.PDF, DocumentKind.TABULAR})

    def __init__(self):
        self.sheet = ToastTabularReader()

    def _extract(self, document, context):
        if document.kind is DocumentKind.TABULAR:
            return self.sheet.read(document, context)
        return extract_text_report(document, context, TEXT_PROFILES[PosSystem.TOAST])


class GenericExtractor(ExtractorStrategy):
    """Fallback for undetected layouts: every vendor's labels, any file kind."""

    system = PosSystem.GENERIC
    supported_kinds = frozenset({DocumentKind.PDF, DocumentKind.TABULAR})

    def __init__(self):
        self.sheet = GenericTabularReader()

    def _extract(self, document, context):
        if document.kind is DocumentKind.TABULAR:
            return self.sheet.read(document, context)
        return extract_text_report(document, context, GENERIC_TEXT_PROFILE)
