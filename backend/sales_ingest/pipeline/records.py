"""
Canonical daily sales record shared by every extractor.

One DailySales is one business day of sales for one team/location. Money is
Decimal everywhere; JSON forms carry money as strings so stored figures never
pick up float drift.

Optional sections (labor, cash management, gift cards) are None only when a
record was built without them (e.g. from a sparse JSON payload); extractors
populate zeros when a document shows no such activity.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


BLOCKING_SEVERITIES = frozenset({Severity.ERROR, Severity.CRITICAL})

# Audit categories for validation logs.
MISSING_FIELD = "missing_field"
BUSINESS_RULE = "business_rule"
ANOMALY = "anomaly"
FORMAT_ERROR = "format_error"
FINDING_CATEGORIES = (MISSING_FIELD, BUSINESS_RULE, ANOMALY, FORMAT_ERROR)


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Parse a money/number cell: strips $, commas, spaces; (x) is negative.
    NaN and infinities are not amounts and give `default`.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        parsed = Decimal(str(value))
        return parsed if parsed.is_finite() else default
    text = str(value).strip().replace("$", "").replace(",", "").replace(" ", "")
    if not text:
        return default
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    text = text.rstrip("%")
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return default
    if not parsed.is_finite():
        return default
    return -parsed if negative else parsed


def to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    parsed = to_decimal(value, default=None)  # type: ignore[arg-type]
    if parsed is None:
        return default
    return int(parsed)


def _money(value: Decimal) -> str:
    return str(value)


@dataclass(frozen=True)
class ValidationFinding:
    field: str
    message: str
    severity: Severity
    suggested_value: Any = None
    category: str | None = None

    @property
    def blocking(self) -> bool:
        return self.severity in BLOCKING_SEVERITIES

    def to_dict(self) -> dict:
        suggested = self.suggested_value
        if isinstance(suggested, Decimal):
            suggested = _money(suggested)
        elif isinstance(suggested, date):
            suggested = suggested.isoformat()
        return {
            "field": self.field,
            "message": self.message,
            "severity": self.severity.value,
            "suggested_value": suggested,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ValidationFinding":
        return cls(
            field=str(data.get("field") or ""),
            message=str(data.get("message") or ""),
            severity=Severity(data.get("severity") or Severity.INFO.value),
            suggested_value=data.get("suggested_value"),
            category=data.get("category"),
        )


@dataclass
class LineItem:
    name: str
    quantity: int = 0
    total: Decimal = ZERO
    percent: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "total": _money(self.total),
            "percent": _money(self.percent),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            name=str(data.get("name") or ""),
            quantity=to_int(data.get("quantity")),
            total=to_decimal(data.get("total")),
            percent=to_decimal(data.get("percent")),
        )


@dataclass
class TenderLine(LineItem):
    """Tender row: `payments` excludes tips; `total` is payments + tips."""

    payments: Decimal = ZERO
    tips: Decimal = ZERO

    @property
    def is_cash(self) -> bool:
        return "cash" in self.name.lower()

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["payments"] = _money(self.payments)
        data["tips"] = _money(self.tips)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TenderLine":
        payments = to_decimal(data.get("payments"), default=None)  # type: ignore[arg-type]
        tips = to_decimal(data.get("tips"))
        total = to_decimal(data.get("total"), default=None)  # type: ignore[arg-type]
        if payments is None:
            payments = (total - tips) if total is not None else ZERO
        if total is None:
            total = payments + tips
        return cls(
            name=str(data.get("name") or ""),
            quantity=to_int(data.get("quantity")),
            total=total,
            percent=to_decimal(data.get("percent")),
            payments=payments,
            tips=tips,
        )


@dataclass
class PaymentBreakdown:
    non_cash: Decimal = ZERO
    total_cash: Decimal = ZERO
    calculated_cash: Decimal = ZERO
    tips: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        return not any((self.non_cash, self.total_cash, self.calculated_cash, self.tips))


@dataclass
class LaborSummary:
    cost: Decimal = ZERO
    hours: Decimal = ZERO
    percentage: Decimal = ZERO
    sales_per_labor_hour: Decimal = ZERO


@dataclass
class CashManagement:
    deposits_accepted: Decimal = ZERO
    deposits_redeemed: Decimal = ZERO
    paid_in: Decimal = ZERO
    paid_out: Decimal = ZERO


@dataclass
class GiftCardActivity:
    issue_amount: Decimal = ZERO
    issue_count: int = 0
    reload_amount: Decimal = ZERO
    reload_count: int = 0


def _section_to_dict(section) -> dict | None:
    if section is None:
        return None
    out = {}
    for f in fields(section):
        value = getattr(section, f.name)
        out[f.name] = _money(value) if isinstance(value, Decimal) else value
    return out


def _section_from_dict(cls, data: dict | None):
    if data is None:
        return None
    kwargs = {}
    for f in fields(cls):
        raw = data.get(f.name)
        kwargs[f.name] = to_int(raw) if f.type in ("int", int) else to_decimal(raw)
    return cls(**kwargs)


BREAKDOWN_GROUPS = ("destinations", "revenue_items", "tenders", "discounts", "promotions", "taxes")
OPTIONAL_SECTIONS = ("labor", "cash_management", "gift_cards")
OPTIONAL_SCALARS = ("expenses", "voids", "refunds", "surcharges")


@dataclass
class DailySales:
    date: date
    team_id: str
    gross_sales: Decimal = ZERO
    net_sales: Decimal = ZERO
    order_count: int = 0
    order_average: Decimal = ZERO
    id: str | None = None
    location: str | None = None
    destinations: list[LineItem] = field(default_factory=list)
    revenue_items: list[LineItem] = field(default_factory=list)
    tenders: list[TenderLine] = field(default_factory=list)
    discounts: list[LineItem] = field(default_factory=list)
    promotions: list[LineItem] = field(default_factory=list)
    taxes: list[LineItem] = field(default_factory=list)
    payment_breakdown: PaymentBreakdown = field(default_factory=PaymentBreakdown)
    labor: LaborSummary | None = None
    cash_management: CashManagement | None = None
    gift_cards: GiftCardActivity | None = None
    expenses: Decimal = ZERO
    voids: Decimal = ZERO
    refunds: Decimal = ZERO
    surcharges: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "team_id": self.team_id,
            "location": self.location,
            "gross_sales": _money(self.gross_sales),
            "net_sales": _money(self.net_sales),
            "order_count": self.order_count,
            "order_average": _money(self.order_average),
            "destinations": [i.to_dict() for i in self.destinations],
            "revenue_items": [i.to_dict() for i in self.revenue_items],
            "tenders": [t.to_dict() for t in self.tenders],
            "discounts": [i.to_dict() for i in self.discounts],
            "promotions": [i.to_dict() for i in self.promotions],
            "taxes": [i.to_dict() for i in self.taxes],
            "payment_breakdown": _section_to_dict(self.payment_breakdown),
            "labor": _section_to_dict(self.labor),
            "cash_management": _section_to_dict(self.cash_management),
            "gift_cards": _section_to_dict(self.gift_cards),
            "expenses": _money(self.expenses),
            "voids": _money(self.voids),
            "refunds": _money(self.refunds),
            "surcharges": _money(self.surcharges),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailySales":
        raw_date = data.get("date")
        if isinstance(raw_date, date):
            day = raw_date
        else:
            day = date.fromisoformat(str(raw_date)[:10])
        return cls(
            id=data.get("id"),
            date=day,
            team_id=str(data.get("team_id") or ""),
            location=data.get("location"),
            gross_sales=to_decimal(data.get("gross_sales")),
            net_sales=to_decimal(data.get("net_sales")),
            order_count=to_int(data.get("order_count")),
            order_average=to_decimal(data.get("order_average")),
            destinations=[LineItem.from_dict(i) for i in data.get("destinations") or []],
            revenue_items=[LineItem.from_dict(i) for i in data.get("revenue_items") or []],
            tenders=[TenderLine.from_dict(t) for t in data.get("tenders") or []],
            discounts=[LineItem.from_dict(i) for i in data.get("discounts") or []],
            promotions=[LineItem.from_dict(i) for i in data.get("promotions") or []],
            taxes=[LineItem.from_dict(i) for i in data.get("taxes") or []],
            payment_breakdown=_section_from_dict(PaymentBreakdown, data.get("payment_breakdown") or {}),
            labor=_section_from_dict(LaborSummary, data.get("labor")),
            cash_management=_section_from_dict(CashManagement, data.get("cash_management")),
            gift_cards=_section_from_dict(GiftCardActivity, data.get("gift_cards")),
            expenses=to_decimal(data.get("expenses")),
            voids=to_decimal(data.get("voids")),
            refunds=to_decimal(data.get("refunds")),
            surcharges=to_decimal(data.get("surcharges")),
        )

    def groups(self) -> dict[str, list[LineItem]]:
        return {name: getattr(self, name) for name in BREAKDOWN_GROUPS}


def with_group_percents(items: list[LineItem], *, amount=None) -> list[LineItem]:
    """
    Fill `percent` as each item's share of the group total so a group sums to
    ~100. `amount` picks the value to share on (defaults to `total`).
    """
    pick = amount or (lambda item: item.total)
    group_total = sum((pick(i) for i in items), ZERO)
    for item in items:
        if group_total:
            item.percent = (pick(item) / group_total * 100).quantize(CENT)
        else:
            item.percent = ZERO
    return items


def payment_breakdown_from_tenders(tenders: list[TenderLine]) -> PaymentBreakdown:
    """
    Cash tenders feed total_cash, everything else non_cash (payments, tips
    excluded). Card tips are paid out of the drawer, so calculated_cash is
    cash on hand after tip payout.
    """
    total_cash = sum((t.payments for t in tenders if t.is_cash), ZERO)
    non_cash = sum((t.payments for t in tenders if not t.is_cash), ZERO)
    tips = sum((t.tips for t in tenders), ZERO)
    return PaymentBreakdown(
        non_cash=non_cash,
        total_cash=total_cash,
        calculated_cash=total_cash - tips,
        tips=tips,
    )


def order_average(net_sales: Decimal, order_count: int) -> Decimal:
    if order_count <= 0:
        return ZERO
    return (net_sales / order_count).quantize(CENT)
