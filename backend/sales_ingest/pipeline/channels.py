"""
Third-party channel attribution.

Destination names on POS reports rarely match the channel registry verbatim
("EXT DoorDash", "Uber Eats - Delivery"). Matching runs in order: exact name,
configured alias, token containment, then a difflib similarity ratio. The
result is a derived breakdown; the record itself is never modified.
"""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field
from decimal import Decimal

from .records import ZERO, DailySales

PERCENTAGE = "percentage"
FLAT_FEE = "flat_fee"
COMMISSION_TYPES = (PERCENTAGE, FLAT_FEE)

_NON_WORD = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ChannelDefinition:
    id: int | None
    name: str
    commission_type: str = PERCENTAGE
    commission_rate: Decimal = ZERO
    flat_fee: Decimal = ZERO
    aliases: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ChannelBreakdown:
    channel_id: int | None
    channel_name: str
    destination_name: str
    gross_sales: Decimal
    commission_rate: Decimal
    commission_fees: Decimal
    net_sales: Decimal
    order_count: int
    percentage_of_total: Decimal

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "channel_name": self.channel_name,
            "destination_name": self.destination_name,
            "gross_sales": str(self.gross_sales),
            "commission_rate": str(self.commission_rate),
            "commission_fees": str(self.commission_fees),
            "net_sales": str(self.net_sales),
            "order_count": self.order_count,
            "percentage_of_total": str(self.percentage_of_total),
        }


def normalize_name(name: str, prefixes=()) -> str:
    text = " ".join(_NON_WORD.sub(" ", (name or "").lower()).split())
    changed = True
    while changed:
        changed = False
        for prefix in prefixes:
            p = " ".join(_NON_WORD.sub(" ", prefix.lower()).split())
            if p and text.startswith(p + " "):
                text = text[len(p) + 1:]
                changed = True
    return text


def _compact(text: str) -> str:
    return text.replace(" ", "")


class ChannelMatcher:
    def __init__(self, channels, *, prefixes=(), fuzzy_threshold: float = 0.85):
        self.channels = list(channels)
        self.prefixes = tuple(prefixes)
        self.fuzzy_threshold = fuzzy_threshold
        self._names = []
        for channel in self.channels:
            keys = {normalize_name(channel.name, self.prefixes)}
            keys.update(normalize_name(a, self.prefixes) for a in channel.aliases)
            self._names.append((channel, {k for k in keys if k}))

    def match(self, destination: str) -> ChannelDefinition | None:
        key = normalize_name(destination, self.prefixes)
        if not key:
            return None
        for channel, keys in self._names:
            if key in keys or _compact(key) in {_compact(k) for k in keys}:
                return channel
        padded = f" {key} "
        for channel, keys in self._names:
            if any(f" {k} " in padded for k in keys):
                return channel
        best, best_ratio = None, 0.0
        for channel, keys in self._names:
            for k in keys:
                ratio = difflib.SequenceMatcher(None, _compact(key), _compact(k)).ratio()
                if ratio > best_ratio:
                    best, best_ratio = channel, ratio
        if best is not None and best_ratio >= self.fuzzy_threshold:
            return best
        return None


def commission_for(channel: ChannelDefinition, gross: Decimal) -> Decimal:
    if channel.commission_type == FLAT_FEE:
        return channel.flat_fee
    return gross * channel.commission_rate


def attribute(
    record: DailySales,
    channels,
    *,
    prefixes=(),
    fuzzy_threshold: float = 0.85,
) -> list[ChannelBreakdown]:
    """One breakdown per destination matched to a channel, in destination order."""
    matcher = ChannelMatcher(channels, prefixes=prefixes, fuzzy_threshold=fuzzy_threshold)
    out = []
    for item in record.destinations:
        channel = matcher.match(item.name)
        if channel is None:
            continue
        gross = item.total
        fees = commission_for(channel, gross)
        share = (gross / record.gross_sales * 100) if record.gross_sales else ZERO
        out.append(
            ChannelBreakdown(
                channel_id=channel.id,
                channel_name=channel.name,
                destination_name=item.name,
                gross_sales=gross,
                commission_rate=channel.commission_rate if channel.commission_type == PERCENTAGE else ZERO,
                commission_fees=fees,
                net_sales=gross - fees,
                order_count=item.quantity,
                percentage_of_total=share.quantize(Decimal("0.01")),
            )
        )
    return out
