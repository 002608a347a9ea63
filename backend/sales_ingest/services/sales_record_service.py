# Overview: Service-layer operations for committed sales records; duplicate checks and history baselines.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..errors import SalesRecordNotFound
from ..extensions import db
from ..models import SalesRecord
from ..pipeline.records import CENT, DailySales
from ..time_utils import utcnow

BASELINE_DAYS = 30


@dataclass
class ExistingCheck:
    exists: bool
    existing_record: SalesRecord | None = None

    def to_dict(self) -> dict:
        return {
            "exists": self.exists,
            "existing_record": self.existing_record.to_dict() if self.existing_record else None,
        }


def get_existing(org_id: int, team_id: str, business_date: date) -> SalesRecord | None:
    return (
        db.session.query(SalesRecord)
        .filter_by(org_id=org_id, team_id=team_id, business_date=business_date)
        .first()
    )


def check_existing(org_id: int, business_date: date, team_id: str) -> ExistingCheck:
    record = get_existing(org_id, team_id, business_date)
    return ExistingCheck(exists=record is not None, existing_record=record)


def get_record(record_id: int, org_id: int) -> SalesRecord:
    record = db.session.query(SalesRecord).filter_by(id=record_id, org_id=org_id).first()
    if not record:
        raise SalesRecordNotFound("Sales record not found")
    return record


def order_average_baseline(org_id: int, team_id: str, before: date, days: int = BASELINE_DAYS) -> Decimal | None:
    """Net sales per order over the trailing window, or None without history."""
    start = before - timedelta(days=days)
    totals = (
        db.session.query(
            func.sum(SalesRecord.net_sales).label("net"),
            func.sum(SalesRecord.order_count).label("orders"),
        )
        .filter(
            SalesRecord.org_id == org_id,
            SalesRecord.team_id == team_id,
            SalesRecord.business_date >= start,
            SalesRecord.business_date < before,
        )
        .one()
    )
    if not totals.orders:
        return None
    return (Decimal(str(totals.net or 0)) / int(totals.orders)).quantize(CENT)


def gross_sales_history(org_id: int, team_id: str, before: date, days: int = BASELINE_DAYS) -> list[Decimal]:
    """Committed gross sales for the trailing window, oldest day first."""
    start = before - timedelta(days=days)
    rows = (
        db.session.query(SalesRecord.gross_sales)
        .filter(
            SalesRecord.org_id == org_id,
            SalesRecord.team_id == team_id,
            SalesRecord.business_date >= start,
            SalesRecord.business_date < before,
        )
        .order_by(SalesRecord.business_date)
        .all()
    )
    return [Decimal(str(row.gross_sales)) for row in rows]


def fill_record(
    target: SalesRecord,
    record: DailySales,
    *,
    pos_system: str | None,
    source_file_name: str | None,
    source_batch_id: int | None,
    confidence_score: int | None,
) -> SalesRecord:
    target.location = record.location
    target.gross_sales = record.gross_sales
    target.net_sales = record.net_sales
    target.order_count = record.order_count
    target.order_average = record.order_average
    target.pos_system = pos_system
    target.source_file_name = source_file_name
    target.source_batch_id = source_batch_id
    target.confidence_score = confidence_score
    data = record.to_dict()
    data["id"] = target.id
    target.data = data
    if target.id is not None:
        target.updated_at = utcnow()
    return target


def new_record(org_id: int, record: DailySales, *, actor: str | None) -> SalesRecord:
    return SalesRecord(
        org_id=org_id,
        team_id=record.team_id,
        business_date=record.date,
        created_by=actor,
        created_at=utcnow(),
    )
