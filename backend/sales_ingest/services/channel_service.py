# Overview: Service-layer operations for the sales channel registry and per-record channel breakdowns.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import IngestError
from ..extensions import db
from ..models import SalesChannel
from ..pipeline.channels import (
    COMMISSION_TYPES,
    PERCENTAGE,
    ChannelBreakdown,
    ChannelDefinition,
    attribute,
)
from ..pipeline.records import ZERO, DailySales, to_decimal
from ..pipeline.settings import IngestSettings
from . import sales_record_service


class ChannelError(IngestError):
    """Raised when a channel definition is invalid."""


def list_channels(org_id: int, *, active_only: bool = True) -> list[SalesChannel]:
    query = db.session.query(SalesChannel).filter_by(org_id=org_id)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(SalesChannel.name.asc()).all()


def create_channel(
    *,
    org_id: int,
    name: str,
    commission_type: str = PERCENTAGE,
    commission_rate=None,
    flat_fee_amount=None,
    aliases=None,
) -> SalesChannel:
    name = (name or "").strip()
    if not name:
        raise ChannelError("name is required")
    if commission_type not in COMMISSION_TYPES:
        raise ChannelError(f"commission_type must be one of {', '.join(COMMISSION_TYPES)}")

    rate = to_decimal(commission_rate, default=None)  # type: ignore[arg-type]
    fee = to_decimal(flat_fee_amount, default=None)  # type: ignore[arg-type]
    if commission_type == PERCENTAGE:
        if rate is None or not (ZERO < rate <= 1):
            raise ChannelError("commission_rate must be a fraction between 0 and 1 (0.20 = 20%)")
        fee = ZERO
    else:
        if fee is None or fee <= 0:
            raise ChannelError("flat_fee_amount must be greater than 0")
        rate = ZERO

    cleaned_aliases = []
    for alias in aliases or []:
        alias = str(alias).strip()
        if alias and alias not in cleaned_aliases:
            cleaned_aliases.append(alias)

    channel = SalesChannel(
        org_id=org_id,
        name=name,
        commission_type=commission_type,
        commission_rate=rate,
        flat_fee_amount=fee,
        aliases=cleaned_aliases,
        is_active=True,
    )
    db.session.add(channel)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ChannelError(f"Channel '{name}' already exists") from exc
    return channel


def definitions(org_id: int) -> list[ChannelDefinition]:
    return [
        ChannelDefinition(
            id=channel.id,
            name=channel.name,
            commission_type=channel.commission_type,
            commission_rate=Decimal(str(channel.commission_rate or 0)),
            flat_fee=Decimal(str(channel.flat_fee_amount or 0)),
            aliases=tuple(channel.aliases or ()),
        )
        for channel in list_channels(org_id)
    ]


def attribute_record(org_id: int, record: DailySales, settings: IngestSettings) -> list[ChannelBreakdown]:
    return attribute(
        record,
        definitions(org_id),
        prefixes=settings.channel_prefixes,
        fuzzy_threshold=settings.channel_fuzzy_threshold,
    )


def channel_breakdown(record_id: int, org_id: int, settings: IngestSettings) -> list[ChannelBreakdown]:
    """Recomputed on demand from the committed record; never stored."""
    stored = sales_record_service.get_record(record_id, org_id)
    return attribute_record(org_id, DailySales.from_dict(stored.data), settings)


