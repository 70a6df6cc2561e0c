"""
Row identity for repeated spreadsheet imports.

The same workbooks are re-imported periodically. Each row gets a ``row_hash``
derived only from its identity-bearing cells so that a re-run produces the
same hash and the table's unique constraint turns the insert into a no-op.
"""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from salesrecon.sales.channels import DEFAULT_KEY_FIELDS, ChannelConfig
from salesrecon.services.dates import raw_date
from salesrecon.services.fields import (
    DEFAULT_ALIASES,
    MISSING,
    FieldAliases,
    as_decimal,
    map_order_status,
    map_payment_mode,
    normalize_string,
    to_int,
    to_number,
)

KEY_SEPARATOR = "|"
_CENTS = Decimal("0.01")


def _text(value: Any) -> str:
    if value is None or value is MISSING:
        return ""
    return str(value).strip().lower()


def key_part(raw_row: Any, field_name: str, aliases: FieldAliases = DEFAULT_ALIASES) -> str:
    """Normalized text of one identity field of a raw row."""
    if field_name == "date":
        found = raw_date(raw_row, aliases)
        return found.strftime("%Y-%m-%d") if found else ""
    if field_name == "period":
        month = _text(aliases.pick(raw_row, "month"))
        year = _text(aliases.pick(raw_row, "year"))
        return f"{month}-{year}" if (month or year) else ""
    return _text(aliases.pick(raw_row, field_name))


def canonical_key(
    raw_row: Any,
    fields: Sequence[str] = DEFAULT_KEY_FIELDS,
    aliases: FieldAliases = DEFAULT_ALIASES,
) -> str:
    """``|``-joined, lower-cased identity fields of ``raw_row`` in ``fields`` order."""
    return KEY_SEPARATOR.join(key_part(raw_row, f, aliases) for f in fields)


def content_hash(key: str, discriminators: Iterable[str] = ()) -> str:
    """SHA-256 hex digest of ``key`` plus any discriminator values."""
    parts = list(discriminators)
    payload = key if not parts else KEY_SEPARATOR.join([key, *parts])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def row_hash(raw_row: Any, channel: ChannelConfig) -> str:
    key = canonical_key(raw_row, channel.key_fields, channel.aliases)
    extra = [key_part(raw_row, d, channel.aliases) for d in channel.discriminators]
    return content_hash(key, extra)


def json_safe(value: Any) -> Any:
    """Convert pandas/numpy/datetime cells into JSON-storable Python values."""
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        value = value.tz_convert("UTC") if value.tzinfo else value.tz_localize("UTC")
        return value.to_pydatetime().isoformat()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        value = float(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, dict, str, bool, int)) or value is None:
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _money(value: Any) -> Optional[Decimal]:
    dec = as_decimal(value)
    return None if dec is None else dec.quantize(_CENTS, rounding=ROUND_HALF_UP)


def map_row(raw_row: Mapping[str, Any], channel: ChannelConfig) -> Dict[str, Any]:
    """
    Structured column values for one raw import row.

    Missing or unparseable cells map to ``None``. When the amount is absent or
    zero but both quantity and rate are present, the amount is their product.
    """
    a = channel.aliases
    raw = {str(k): json_safe(v) for k, v in raw_row.items()}

    rate = _money(a.pick(raw, "rate"))
    qty = to_int(a.pick(raw, "qty"))
    amount = _money(a.pick(raw, "amount"))
    if (amount is None or amount == 0) and qty is not None and rate is not None:
        amount = (rate * qty).quantize(_CENTS, rounding=ROUND_HALF_UP)

    year = to_number(a.pick(raw, "year"))

    return {
        "order_no": normalize_string(a.pick(raw, "order_no")),
        "order_status": map_order_status(a.pick(raw, "status")),
        "month": normalize_string(a.pick(raw, "month")),
        "year": int(year) if year is not None and float(year).is_integer() else None,
        "isbn": normalize_string(a.pick(raw, "isbn")),
        "item_code": normalize_string(a.pick(raw, "item_code")),
        "title": normalize_string(a.pick(raw, "title")),
        "author": normalize_string(a.pick(raw, "author")),
        "publisher": normalize_string(a.pick(raw, "publisher")),
        "publisher_code": normalize_string(a.pick(raw, "publisher_code")),
        "category": normalize_string(a.pick(raw, "category")),
        "description": normalize_string(a.pick(raw, "description")),
        "qty": qty,
        "rate": rate,
        "amount": amount,
        "discount": _money(a.pick(raw, "discount")),
        "tax": _money(a.pick(raw, "tax")),
        "shipping": _money(a.pick(raw, "shipping")),
        "payment_mode": map_payment_mode(a.pick(raw, "payment_mode")),
        "customer_name": normalize_string(a.pick(raw, "customer_name")),
        "mobile": normalize_string(a.pick(raw, "mobile")),
        "email": normalize_string(a.pick(raw, "email")),
        "date": raw_date(raw, a),
        "row_hash": row_hash(raw, channel),
        "raw_json": raw,
    }


__all__ = [
    "KEY_SEPARATOR",
    "canonical_key",
    "content_hash",
    "json_safe",
    "key_part",
    "map_row",
    "row_hash",
]
