from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SalesChannel(db.Model):
    """
    Third-party ordering channel (DoorDash, Uber Eats, ...) and its commission.

    commission_type is "percentage" (commission_rate is a fraction, 0.20 = 20%)
    or "flat_fee" (flat_fee_amount per day of sales). Aliases are the
    destination names POS reports use for the channel.
    """
    __tablename__ = "sales_channels"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_sales_channels_org_name"),
        db.CheckConstraint("commission_type IN ('percentage', 'flat_fee')", name="ck_sales_channels_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    commission_type = db.Column(db.String(16), nullable=False, default="percentage")
    commission_rate = db.Column(db.Numeric(6, 4), nullable=False, default=0)
    flat_fee_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    aliases = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "commission_type": self.commission_type,
            "commission_rate": str(self.commission_rate),
            "flat_fee_amount": str(self.flat_fee_amount),
            "aliases": list(self.aliases or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
