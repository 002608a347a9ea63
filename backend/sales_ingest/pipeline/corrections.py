"""
Reviewer corrections as sparse dotted-path patches.

A patch maps paths to replacement values:

    {"gross_sales": "5744.76", "payment_breakdown.tips": "91.30",
     "tenders.0.payments": "4273.02", "date": "2025-10-01"}

Paths are checked against the canonical shape before anything is applied, and
two paths in one patch may not overlap ("labor" with "labor.cost"), so a
conflicting edit is rejected instead of silently resolved. Corrections are kept
apart from the extracted data; `apply_corrections` produces the merged view.
"""

from __future__ import annotations

import copy
from dataclasses import fields
from datetime import date

from ..errors import CorrectionError
from .records import (
    BREAKDOWN_GROUPS,
    CashManagement,
    DailySales,
    GiftCardActivity,
    LaborSummary,
    PaymentBreakdown,
    to_decimal,
)

MONEY = "money"
INT = "int"
TEXT = "text"
DATE = "date"

SCALARS = {
    "date": DATE,
    "location": TEXT,
    "gross_sales": MONEY,
    "net_sales": MONEY,
    "order_count": INT,
    "order_average": MONEY,
    "expenses": MONEY,
    "voids": MONEY,
    "refunds": MONEY,
    "surcharges": MONEY,
}


def _kinds(cls) -> dict[str, str]:
    return {f.name: INT if f.type in ("int", int) else MONEY for f in fields(cls)}


SECTIONS = {
    "payment_breakdown": _kinds(PaymentBreakdown),
    "labor": _kinds(LaborSummary),
    "cash_management": _kinds(CashManagement),
    "gift_cards": _kinds(GiftCardActivity),
}

ITEM_FIELDS = {"name": TEXT, "quantity": INT, "total": MONEY, "percent": MONEY}
TENDER_FIELDS = {**ITEM_FIELDS, "payments": MONEY, "tips": MONEY}


def _check_value(path: str, kind: str, value) -> None:
    if value is None:
        raise CorrectionError(f"{path}: a value is required")
    if kind == MONEY and to_decimal(value, default=None) is None:  # type: ignore[arg-type]
        raise CorrectionError(f"{path}: '{value}' is not an amount")
    if kind == INT:
        parsed = to_decimal(value, default=None)  # type: ignore[arg-type]
        if parsed is None or parsed != parsed.to_integral_value():
            raise CorrectionError(f"{path}: '{value}' is not a whole number")
    if kind == DATE and not isinstance(value, date):
        try:
            date.fromisoformat(str(value)[:10])
        except ValueError as exc:
            raise CorrectionError(f"{path}: '{value}' is not a YYYY-MM-DD date") from exc


def _check_mapping(path: str, schema: dict[str, str], value) -> None:
    if not isinstance(value, dict):
        raise CorrectionError(f"{path}: expected an object")
    for key, inner in value.items():
        if key not in schema:
            raise CorrectionError(f"{path}.{key}: unknown field")
        _check_value(f"{path}.{key}", schema[key], inner)


def check_path(path: str, value, record: dict | None = None) -> None:
    """Raise CorrectionError unless `path` names a correctable part of a record."""
    parts = path.split(".")
    head = parts[0]
    if head in SCALARS:
        if len(parts) != 1:
            raise CorrectionError(f"{path}: '{head}' has no sub-fields")
        _check_value(path, SCALARS[head], value)
        return
    if head in SECTIONS:
        schema = SECTIONS[head]
        if len(parts) == 1:
            _check_mapping(path, schema, value)
        elif len(parts) == 2 and parts[1] in schema:
            _check_value(path, schema[parts[1]], value)
        else:
            raise CorrectionError(f"{path}: unknown field")
        return
    if head in BREAKDOWN_GROUPS:
        schema = TENDER_FIELDS if head == "tenders" else ITEM_FIELDS
        if len(parts) == 1:
            if not isinstance(value, list):
                raise CorrectionError(f"{path}: expected a list")
            for idx, item in enumerate(value):
                _check_mapping(f"{path}.{idx}", schema, item)
            return
        if not parts[1].isdigit():
            raise CorrectionError(f"{path}: '{parts[1]}' is not a list index")
        index = int(parts[1])
        if record is not None and index >= len(record.get(head) or []):
            raise CorrectionError(f"{path}: {head} has no item {index}")
        if len(parts) == 2:
            _check_mapping(path, schema, value)
        elif len(parts) == 3 and parts[2] in schema:
            _check_value(path, schema[parts[2]], value)
        else:
            raise CorrectionError(f"{path}: unknown field")
        return
    raise CorrectionError(f"{path}: unknown field")


def _overlaps(a: str, b: str) -> bool:
    return a == b or a.startswith(b + ".") or b.startswith(a + ".")


def normalize_patch(patch, record: dict | None = None) -> dict:
    if not isinstance(patch, dict):
        raise CorrectionError("corrections must be an object of path -> value")
    paths = sorted(str(p).strip() for p in patch)
    for i, path in enumerate(paths):
        for other in paths[i + 1:]:
            if _overlaps(path, other):
                raise CorrectionError(f"Corrections '{path}' and '{other}' overlap")
    normalized = {}
    for raw_path, value in patch.items():
        path = str(raw_path).strip()
        check_path(path, value, record)
        normalized[path] = value.isoformat() if isinstance(value, date) else value
    return normalized


def merge_corrections(existing: dict | None, patch: dict) -> dict:
    """
    Later edits win. A parent path replaces earlier child paths; a child path
    under an earlier parent edits inside that parent's value.
    """
    merged = dict(existing or {})
    for path, value in patch.items():
        for old in [p for p in merged if p.startswith(path + ".")]:
            del merged[old]
        parent = next((p for p in merged if path.startswith(p + ".")), None)
        if parent is None:
            merged[path] = value
            continue
        container = copy.deepcopy(merged[parent])
        _set(container, path[len(parent) + 1:].split("."), value)
        merged[parent] = container
    return merged


def _set(target, parts: list[str], value) -> None:
    for idx, part in enumerate(parts):
        last = idx == len(parts) - 1
        if isinstance(target, list):
            key = int(part)
            if last:
                target[key] = value
            else:
                target = target[key]
        else:
            if last:
                target[part] = value
            else:
                if target.get(part) is None:
                    target[part] = {}
                target = target[part]


def apply_corrections(extracted: dict, corrections: dict | None) -> DailySales:
    """Merged view of an extracted record (its to_dict form) and a patch."""
    data = copy.deepcopy(extracted)
    for path in sorted(corrections or {}, key=lambda p: p.count(".")):
        parts = path.split(".")
        if parts[0] in BREAKDOWN_GROUPS and len(parts) > 1 and int(parts[1]) >= len(data.get(parts[0]) or []):
            raise CorrectionError(f"{path}: {parts[0]} has no item {parts[1]}")
        _set(data, parts, copy.deepcopy(corrections[path]))
    for group in BREAKDOWN_GROUPS:
        data[group] = [dict(item) for item in data.get(group) or []]
    if "tenders" in data:
        # Re-derive totals when payments/tips were edited without a total.
        for item, original in zip(data["tenders"], extracted.get("tenders") or []):
            edited = any(item.get(k) != original.get(k) for k in ("payments", "tips"))
            if edited and item.get("total") == original.get("total"):
                item.pop("total", None)
    try:
        record = DailySales.from_dict(data)
    except (TypeError, ValueError) as exc:
        raise CorrectionError(f"Corrections produce an invalid record: {exc}") from exc
    return record
