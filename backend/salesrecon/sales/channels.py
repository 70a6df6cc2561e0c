"""
Per-channel configuration.

Each sales channel has its own table, its own spreadsheet header conventions
and its own notion of which columns identify a row for de-duplication. Those
differences live here as data so that extraction, hashing and aggregation code
stays channel-agnostic.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Tuple, Type

from salesrecon.core.errors import UnknownChannelError
from salesrecon.models.sale import (
    LokEventSale,
    OfflineSale,
    OnlineSale,
    RajRadhaEventSale,
    SaleRecordMixin,
)
from salesrecon.services.fields import DEFAULT_ALIASES, FieldAliases

# order_no, product code, date, amount, customer, title
DEFAULT_KEY_FIELDS: Tuple[str, ...] = ("order_no", "isbn", "date", "amount", "customer_name", "title")


@dataclass(frozen=True)
class ChannelConfig:
    key: str
    label: str
    model: Type[SaleRecordMixin]
    aliases: FieldAliases = DEFAULT_ALIASES
    key_fields: Tuple[str, ...] = DEFAULT_KEY_FIELDS
    # Appended to the hash input only; they never appear in the canonical key.
    discriminators: Tuple[str, ...] = ()
    sheet_prefixes: Tuple[str, ...] = ()

    @property
    def table_name(self) -> str:
        return self.model.__tablename__


_OFFLINE_ALIASES = DEFAULT_ALIASES.extend(
    amount=("BOOKRATE",),
    rate=("BOOKRATE",),
    qty=("OUT",),
    date=("Trnsdocdate",),
)

_EVENT_ALIASES = DEFAULT_ALIASES.extend(
    item_code=("Item_Code",),
    title=("Item Name",),
)

CHANNELS: Dict[str, ChannelConfig] = {
    cfg.key: cfg
    for cfg in (
        ChannelConfig(
            key="online",
            label="Online store",
            model=OnlineSale,
            sheet_prefixes=("online",),
        ),
        ChannelConfig(
            key="offline",
            label="Offline counter (cash/UPI/card)",
            model=OfflineSale,
            aliases=_OFFLINE_ALIASES,
            # Counter exports have no order numbers or customers; the line
            # itself (item, period, qty, rate) is what tells rows apart.
            key_fields=("item_code", "isbn", "title", "date", "period", "amount", "rate", "qty"),
            sheet_prefixes=("offline",),
        ),
        ChannelConfig(
            key="rajradha",
            label="RajRadha event",
            model=RajRadhaEventSale,
            aliases=_EVENT_ALIASES,
            key_fields=("item_code", "title", "publisher", "rate"),
            # Same item at the same rate, different qty: distinct rows.
            discriminators=("qty",),
            sheet_prefixes=("rajradha", "raj radha"),
        ),
        ChannelConfig(
            key="lok",
            label="Lok event",
            model=LokEventSale,
            aliases=_EVENT_ALIASES,
            sheet_prefixes=("lok",),
        ),
    )
}


def get_channel(key: str) -> ChannelConfig:
    try:
        return CHANNELS[(key or "").strip().lower()]
    except KeyError:
        raise UnknownChannelError(key) from None


def iter_channels() -> Iterator[ChannelConfig]:
    return iter(CHANNELS.values())


def channel_for_sheet(sheet_name: str) -> ChannelConfig | None:
    """Map a workbook sheet name (``"Offline-CashUPICC Sales"``) to its channel."""
    name = (sheet_name or "").strip().lower()
    for cfg in CHANNELS.values():
        if any(name.startswith(p) for p in cfg.sheet_prefixes):
            return cfg
    return None


__all__ = [
    "CHANNELS",
    "ChannelConfig",
    "DEFAULT_KEY_FIELDS",
    "channel_for_sheet",
    "get_channel",
    "iter_channels",
]
