"""
Vendor-independent record checks.

`validate` is a pure function of its inputs: same record, same day, same
history, same findings in the same order. Nothing is corrected here; a
suggested value is advice for the reviewer.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence

from .records import (
    ANOMALY,
    BREAKDOWN_GROUPS,
    CENT,
    OPTIONAL_SECTIONS,
    ZERO,
    DailySales,
    Severity,
    ValidationFinding,
    order_average,
)
from .settings import ValidationRules

HUNDRED = Decimal("100")
TENTH = Decimal("0.1")


def _finding(field: str, message: str, severity: Severity, suggested=None) -> ValidationFinding:
    return ValidationFinding(field=field, message=message, severity=severity, suggested_value=suggested)


def _anomaly(field: str, message: str) -> ValidationFinding:
    return ValidationFinding(field=field, message=message, severity=Severity.WARNING, category=ANOMALY)


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year - years, day=28)


def _outside_tolerance(actual: Decimal, expected: Decimal, rules: ValidationRules) -> bool:
    diff = abs(actual - expected)
    relative = diff / expected if expected else (Decimal(1) if diff else ZERO)
    return diff > rules.tender_abs_tolerance and relative > rules.tender_rel_tolerance


def _critical(record: DailySales) -> list[ValidationFinding]:
    findings = []
    if record.gross_sales < 0:
        findings.append(_finding("gross_sales", "Gross sales cannot be negative", Severity.CRITICAL))
    if record.net_sales < 0:
        findings.append(_finding("net_sales", "Net sales cannot be negative", Severity.CRITICAL))
    if record.order_count == 0 and (record.gross_sales or record.net_sales):
        findings.append(_finding("order_count", "Order count is zero but sales were recorded", Severity.CRITICAL))
    return findings


def _errors(record: DailySales, today: date, rules: ValidationRules) -> list[ValidationFinding]:
    findings = []
    if record.tenders:
        tender_sum = sum((t.payments for t in record.tenders), ZERO)
        if _outside_tolerance(tender_sum, record.gross_sales, rules):
            findings.append(
                _finding(
                    "tenders",
                    f"Tender payments ({tender_sum}) do not match gross sales ({record.gross_sales})",
                    Severity.ERROR,
                    suggested=tender_sum,
                )
            )
    breakdown = record.payment_breakdown
    if breakdown is not None and not breakdown.is_empty:
        paid = breakdown.non_cash + breakdown.total_cash
        if _outside_tolerance(paid, record.gross_sales, rules):
            findings.append(
                _finding(
                    "payment_breakdown",
                    f"Cash plus non-cash ({paid}) does not match gross sales ({record.gross_sales})",
                    Severity.ERROR,
                )
            )
    if record.net_sales > record.gross_sales:
        findings.append(
            _finding(
                "net_sales",
                "Net sales cannot be greater than gross sales",
                Severity.ERROR,
                suggested=record.gross_sales,
            )
        )
    if record.date > today:
        findings.append(_finding("date", f"Sales date {record.date.isoformat()} is in the future", Severity.ERROR))
    elif record.date < _years_before(today, rules.max_age_years):
        findings.append(
            _finding(
                "date",
                f"Sales date {record.date.isoformat()} is more than {rules.max_age_years} years old",
                Severity.ERROR,
            )
        )
    for group in BREAKDOWN_GROUPS:
        for idx, item in enumerate(getattr(record, group)):
            if item.quantity < 0:
                findings.append(
                    _finding(f"{group}.{idx}.quantity", f"{item.name}: quantity cannot be negative", Severity.ERROR)
                )
    return findings


def _warnings(record: DailySales, rules: ValidationRules) -> list[ValidationFinding]:
    findings = []
    for group in BREAKDOWN_GROUPS:
        items = getattr(record, group)
        if not items or not any(item.total for item in items):
            continue
        total_pct = sum((item.percent for item in items), ZERO)
        if abs(total_pct - HUNDRED) > rules.percent_tolerance:
            findings.append(
                _finding(group, f"{group} percentages sum to {total_pct}, not 100", Severity.WARNING)
            )
    if record.order_count > 0:
        expected = order_average(record.net_sales, record.order_count)
        if abs(record.order_average - expected) > CENT:
            findings.append(
                _finding(
                    "order_average",
                    "Order average does not equal net sales / order count",
                    Severity.WARNING,
                    suggested=expected,
                )
            )
    return findings


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return (part / whole * HUNDRED).quantize(TENTH)


def _sales_anomaly(gross: Decimal, history: Sequence[Decimal], rules: ValidationRules) -> ValidationFinding | None:
    """Gross sales more than `sales_anomaly_z` standard deviations from the trailing days."""
    if len(history) < rules.min_history_days:
        return None
    mean = sum(history, ZERO) / len(history)
    spread = (sum(((day - mean) ** 2 for day in history), ZERO) / len(history)).sqrt()
    if not spread or mean <= 0:
        return None
    z = (gross - mean) / spread
    if abs(z) <= rules.sales_anomaly_z:
        return None
    kind, direction = ("spike", "above") if z > 0 else ("drop", "below")
    return _anomaly(
        "gross_sales",
        f"Sales {kind}: gross sales ({gross}) are {_percent(abs(gross - mean), mean)}% {direction} "
        f"the {len(history)}-day average of {mean.quantize(CENT)}",
    )


def _anomalies(
    record: DailySales,
    rules: ValidationRules,
    baseline: Decimal | None,
    history: Sequence[Decimal],
) -> list[ValidationFinding]:
    findings = []
    if record.order_count > rules.max_order_count:
        findings.append(
            _anomaly(
                "order_count",
                f"Order count ({record.order_count}) exceeds the expected maximum ({rules.max_order_count})",
            )
        )
    if record.order_count > 0 and baseline and baseline > 0:
        expected = order_average(record.net_sales, record.order_count)
        if expected > baseline * rules.order_average_factor:
            findings.append(
                _anomaly(
                    "order_average",
                    f"Average order {expected} is unusually high against the recent average of {baseline.quantize(CENT)}",
                )
            )
    labor = record.labor
    if labor is not None and labor.cost > 0 and record.gross_sales > 0:
        labor_pct = _percent(labor.cost, record.gross_sales)
        if labor_pct > rules.max_labor_percent:
            findings.append(
                _anomaly(
                    "labor",
                    f"Labor cost ({labor_pct}% of gross sales) exceeds the {rules.max_labor_percent}% limit",
                )
            )
    breakdown = record.payment_breakdown
    if breakdown is not None and not breakdown.is_empty and record.gross_sales > 0:
        paid = breakdown.non_cash + breakdown.total_cash
        gap = abs(paid - record.gross_sales)
        if gap > record.gross_sales * rules.payment_anomaly_tolerance:
            findings.append(
                _anomaly(
                    "payment_breakdown",
                    f"Payment total ({paid}) is {_percent(gap, record.gross_sales)}% away from "
                    f"gross sales ({record.gross_sales})",
                )
            )
    spike = _sales_anomaly(record.gross_sales, history, rules)
    if spike is not None:
        findings.append(spike)
    return findings


def _info(record: DailySales) -> list[ValidationFinding]:
    findings = []
    for section in OPTIONAL_SECTIONS:
        value = getattr(record, section)
        if value is None or not any(vars(value).values()):
            findings.append(_finding(section, f"No {section.replace('_', ' ')} data in report", Severity.INFO))
    if record.payment_breakdown is None or record.payment_breakdown.is_empty:
        findings.append(_finding("payment_breakdown", "No payment breakdown in report", Severity.INFO))
    return findings


def validate(
    record: DailySales,
    *,
    today: date | None = None,
    rules: ValidationRules | None = None,
    order_average_baseline: Decimal | None = None,
    gross_history: Sequence[Decimal] = (),
) -> list[ValidationFinding]:
    """
    History-backed checks are skipped without history: no baseline, no
    average-order check; fewer than `min_history_days` days, no spike/drop check.
    """
    today = today or date.today()
    rules = rules or ValidationRules()
    return (
        _critical(record)
        + _errors(record, today, rules)
        + _warnings(record, rules)
        + _anomalies(record, rules, order_average_baseline, gross_history)
        + _info(record)
    )


def is_approval_eligible(findings) -> bool:
    return not any(f.blocking for f in findings)


def initial_status(findings, confidence: int, review_confidence: int) -> str:
    """needs_review for any critical, more than two errors, or low confidence."""
    criticals = sum(1 for f in findings if f.severity is Severity.CRITICAL)
    errors = sum(1 for f in findings if f.severity is Severity.ERROR)
    if criticals or errors > 2 or confidence < review_confidence:
        return "needs_review"
    return "pending"
