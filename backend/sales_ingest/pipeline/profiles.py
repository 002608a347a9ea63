"""
POS vendor profiles.

PosSystem is the closed set of layouts the pipeline knows. Text profiles hold
the label regexes used both to score detection and to pull figures out of PDF
text; a profile only lists labels, the value capture is appended here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PosSystem(str, Enum):
    BRINK = "brink"
    SQUARE = "square"
    TOAST = "toast"
    LIGHTSPEED = "lightspeed"
    CLOVER = "clover"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value) -> "PosSystem | None":
        """Accepts enum values, names, and the UI's 'auto'/'' (meaning no override)."""
        if value is None or isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in {"", "auto"}:
            return None
        if text in {"generic_tabular", "tabular", "csv"}:
            return cls.GENERIC
        return cls(text)


MONEY_CAPTURE = r"[\s:$]*(\(?-?[0-9][0-9,]*(?:\.[0-9]+)?\)?)"
COUNT_CAPTURE = r"[\s:#]*([0-9][0-9,]*)"

# Fields whose capture is a count rather than money.
COUNT_FIELDS = frozenset({"order_count", "gift_card_issue_count", "gift_card_reload_count"})

CORE_FIELDS = ("gross_sales", "net_sales", "order_count")
PAYMENT_FIELDS = ("total_cash", "non_cash")

# Labels every vendor's reports use for the secondary figures.
COMMON_PATTERNS: dict[str, tuple[str, ...]] = {
    "tips": (r"Total Tips", r"Tip Total", r"Tips"),
    "labor_hours": (r"Labor Hours", r"Total Labor Hours", r"Total Hours"),
    "labor_cost": (r"Labor Cost", r"Total Labor Cost"),
    "voids": (r"Void Amount", r"Total Voids", r"Voids"),
    "refunds": (r"Total Refunds", r"Refunds"),
    "surcharges": (r"Service Charges?", r"Surcharges?"),
    "expenses": (r"Total Expenses", r"Expenses"),
    "paid_in": (r"Paid In",),
    "paid_out": (r"Paid Out",),
    "deposits_accepted": (r"Deposits Accepted",),
    "deposits_redeemed": (r"Deposits Redeemed",),
    "gift_card_issue_amount": (r"Gift Cards? (?:Issued|Sold) Amount", r"Gift Cards? (?:Issued|Sold)"),
    "gift_card_issue_count": (r"Gift Cards? (?:Issued|Sold) Count",),
    "gift_card_reload_amount": (r"Gift Cards? Reload(?:ed)? Amount", r"Gift Cards? Reload(?:ed)?"),
    "gift_card_reload_count": (r"Gift Cards? Reload(?:ed)? Count",),
    "tax_total": (r"\+\s*Sales?\s*Tax", r"\+\s*Tax", r"Sales?\s*Tax", r"Tax Amount"),
}

LABOR_FIELDS = ("labor_hours", "labor_cost")
CASH_MANAGEMENT_FIELDS = ("paid_in", "paid_out", "deposits_accepted", "deposits_redeemed")
GIFT_CARD_FIELDS = (
    "gift_card_issue_amount",
    "gift_card_issue_count",
    "gift_card_reload_amount",
    "gift_card_reload_count",
)

# Section headings for line-item tables printed in report text.
SECTION_HEADINGS: dict[str, tuple[str, ...]] = {
    "destinations": ("destinations", "destination summary", "order destinations", "dining options"),
    "revenue_items": ("revenue items", "revenue centers", "sales by category", "categories"),
    "tenders": ("tenders", "tender summary", "payment types"),
    "discounts": ("discounts", "discount summary"),
    "promotions": ("promotions", "promotion summary"),
    "taxes": ("taxes", "tax summary"),
}


@dataclass(frozen=True)
class TextProfile:
    system: PosSystem
    patterns: dict[str, tuple[str, ...]]
    keywords: tuple[str, ...] = field(default_factory=tuple)

    @property
    def max_score(self) -> int:
        return sum(len(p) for p in self.patterns.values()) + 2 * len(self.keywords)


TEXT_PROFILES: dict[PosSystem, TextProfile] = {
    PosSystem.BRINK: TextProfile(
        system=PosSystem.BRINK,
        patterns={
            "gross_sales": (r"Gross Sales", r"Total Gross"),
            "net_sales": (r"Net Sales", r"Total Net"),
            "order_count": (r"Order Count", r"Total Orders"),
            "total_cash": (r"Total Cash", r"Cash Total"),
            "non_cash": (r"Non[\-–—‑\s]?Cash\s+Payments?",),
        },
        keywords=("Brink POS", "Brink Software", "brinkpos.com"),
    ),
    PosSystem.SQUARE: TextProfile(
        system=PosSystem.SQUARE,
        patterns={
            "gross_sales": (r"Gross Amount", r"Gross Sales"),
            "net_sales": (r"Net Amount", r"Net Sales"),
            "order_count": (r"Transaction Count", r"Transactions"),
            "total_cash": (r"Cash Payments", r"Cash"),
            "non_cash": (r"Card Payments", r"Card", r"Electronic"),
        },
        keywords=("Square", "squareup.com", "Square Terminal"),
    ),
    PosSystem.TOAST: TextProfile(
        system=PosSystem.TOAST,
        patterns={
            "gross_sales": (r"Gross Sales", r"Total Sales", r"Gross Revenue"),
            "net_sales": (r"Net Sales",),
            "order_count": (r"Total Orders", r"Orders", r"Check Count"),
            "total_cash": (r"Cash Tender", r"Cash"),
            "non_cash": (r"Credit Card", r"Cards"),
        },
        keywords=("Toast POS", "Toast Tab", "toasttab.com"),
    ),
    PosSystem.LIGHTSPEED: TextProfile(
        system=PosSystem.LIGHTSPEED,
        patterns={
            "gross_sales": (r"Total Sales", r"Gross Sales"),
            "net_sales": (r"Net Sales", r"Sales Excl\.? Tax"),
            "order_count": (r"Number of Sales", r"Receipts", r"Sales Count"),
            "total_cash": (r"Cash",),
            "non_cash": (r"Credit Card", r"Card"),
        },
        keywords=("Lightspeed", "lightspeedhq.com"),
    ),
    PosSystem.CLOVER: TextProfile(
        system=PosSystem.CLOVER,
        patterns={
            "gross_sales": (r"Gross Sales", r"Amount Collected"),
            "net_sales": (r"Net Sales",),
            "order_count": (r"Transactions", r"Payments Count", r"Orders"),
            "total_cash": (r"Cash",),
            "non_cash": (r"Credit Card", r"Debit Card", r"Card"),
        },
        keywords=("Clover", "clover.com", "First Data"),
    ),
}


def generic_text_profile() -> TextProfile:
    """Union of every vendor's labels, vendor order preserved, no keywords."""
    merged: dict[str, list[str]] = {}
    for profile in TEXT_PROFILES.values():
        for name, labels in profile.patterns.items():
            bucket = merged.setdefault(name, [])
            for label in labels:
                if label not in bucket:
                    bucket.append(label)
    return TextProfile(
        system=PosSystem.GENERIC,
        patterns={name: tuple(labels) for name, labels in merged.items()},
    )


def value_regex(field_name: str, label: str) -> str:
    capture = COUNT_CAPTURE if field_name in COUNT_FIELDS else MONEY_CAPTURE
    return label + capture
