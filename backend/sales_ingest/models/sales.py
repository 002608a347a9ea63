from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SalesRecord(db.Model):
    """
    Committed daily sales for one team (the permanent canonical store).

    One row per (org, team, business day). Headline figures are columns so
    reports and constraints can use them; the full canonical record, including
    every breakdown, lives in `data`.
    """
    __tablename__ = "sales_records"
    __table_args__ = (
        db.UniqueConstraint("org_id", "team_id", "business_date", name="uq_sales_records_org_team_date"),
        db.CheckConstraint("gross_sales >= 0", name="ck_sales_records_gross_nonneg"),
        db.CheckConstraint("net_sales >= 0", name="ck_sales_records_net_nonneg"),
        db.CheckConstraint("order_count >= 0", name="ck_sales_records_orders_nonneg"),
        db.Index("ix_sales_records_team_date", "org_id", "team_id", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    team_id = db.Column(db.String(64), nullable=False)
    business_date = db.Column(db.Date, nullable=False)
    location = db.Column(db.String(255), nullable=True)

    gross_sales = db.Column(db.Numeric(14, 2), nullable=False)
    net_sales = db.Column(db.Numeric(14, 2), nullable=False)
    order_count = db.Column(db.Integer, nullable=False, default=0)
    order_average = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    data = db.Column(db.JSON, nullable=False)

    # Provenance
    pos_system = db.Column(db.String(32), nullable=True)
    source_file_name = db.Column(db.String(255), nullable=True)
    source_batch_id = db.Column(db.Integer, nullable=True)
    confidence_score = db.Column(db.Integer, nullable=True)

    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "team_id": self.team_id,
            "date": self.business_date.isoformat(),
            "location": self.location,
            "gross_sales": str(self.gross_sales),
            "net_sales": str(self.net_sales),
            "order_count": self.order_count,
            "order_average": str(self.order_average),
            "data": self.data,
            "pos_system": self.pos_system,
            "source_file_name": self.source_file_name,
            "source_batch_id": self.source_batch_id,
            "confidence_score": self.confidence_score,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
