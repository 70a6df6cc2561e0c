"""
Loose field extraction for spreadsheet-sourced sales rows.

Import rows arrive as ``{header: cell}`` mappings whose headers differ in case,
spacing and wording between channels and between exports of the same channel.
Everything here is tolerant: a missing header or a cell that does not coerce is
an ordinary outcome and yields ``MISSING``/``None``, never an exception.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

Number = Union[int, float]


class _Missing:
    """Sentinel for "no matching key", distinct from a present ``None`` cell."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

_NUM_NOISE = re.compile(r"[\s,]")
_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _norm_key(name: Any) -> str:
    return str(name).strip().casefold()


def pick(record: Any, names: Iterable[str]) -> Any:
    """
    Return the value of the first key in ``record`` matching any of ``names``.

    Matching trims and case-folds both sides. Keys are scanned in the mapping's
    own order. Returns ``MISSING`` when nothing matches or ``record`` is not a
    mapping at all (e.g. a malformed ``raw_json`` column).
    """
    if not isinstance(record, Mapping):
        return MISSING
    wanted = {_norm_key(n) for n in names}
    for key, value in record.items():
        if _norm_key(key) in wanted:
            return value
    return MISSING


def to_number(value: Any) -> Optional[Number]:
    """
    Best-effort numeric coercion.

    ``"1,234.50"`` -> 1234.5, ``""`` -> None, ``"abc"`` -> None. Non-finite
    results (``"nan"``, ``"inf"``) are treated as unparseable.
    """
    if value is None or value is MISSING or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        value = float(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = _NUM_NOISE.sub("", value)
        if not _NUMERIC.match(text):
            return None
        try:
            num = float(text)
        except ValueError:
            return None
        return num if math.isfinite(num) else None
    # numpy scalars and other number-likes
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def to_decimal(num: Optional[Number]) -> Optional[Decimal]:
    """Exact decimal from the *string* form of ``num`` (``0.1`` stays ``0.1``)."""
    if num is None:
        return None
    try:
        return Decimal(str(num))
    except InvalidOperation:
        return None


def as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    return to_decimal(to_number(value))


def to_int(value: Any) -> Optional[int]:
    """Integral quantities only; ``"2"``/``2.0`` -> 2, ``1.5`` -> None."""
    num = to_number(value)
    if num is None:
        return None
    if isinstance(num, int):
        return num
    return int(num) if num.is_integer() else None


def normalize_string(value: Any) -> Optional[str]:
    if value is None or value is MISSING:
        return None
    text = str(value).strip()
    return text or None


_PAYMENT_MODES = {
    "cash": "Cash",
    "upi": "UPI",
    "card": "Card",
    "cc": "Card",
    "creditcard": "Card",
    "credit card": "Card",
    "debitcard": "Card",
    "debit card": "Card",
    "netbanking": "NetBanking",
    "net banking": "NetBanking",
    "wallet": "Wallet",
    "cheque": "Cheque",
    "banktransfer": "BankTransfer",
    "bank transfer": "BankTransfer",
    "cash/upi": "UPI",
    "upi/cash": "UPI",
    "cashupi": "UPI",
}

_ORDER_STATUSES = {
    "complete": "complete",
    "completed": "complete",
    "pending": "pending",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "refunded": "refunded",
    "unknown": "unknown",
}


def map_payment_mode(value: Any) -> Optional[str]:
    text = (normalize_string(value) or "").lower()
    if not text:
        return None
    return _PAYMENT_MODES.get(text, "Other")


def map_order_status(value: Any) -> Optional[str]:
    text = (normalize_string(value) or "").lower()
    if not text:
        return None
    return _ORDER_STATUSES.get(text, "unknown")


# ---------------------------------------------------------------------------
# Alias tables
# ---------------------------------------------------------------------------

_BASE_ALIASES: Dict[str, Tuple[str, ...]] = {
    "amount": ("Selling Price", "Amount", "Total", "Net Amount", "Total Amount"),
    "rate": ("Rate", "Price", "MRP"),
    "qty": ("Qty", "Quantity"),
    "date": ("Date", "Txn Date", "Transaction Date"),
    "status": ("Order Status", "Status"),
    "order_no": ("Order No", "Order", "Order Number", "OrderNo"),
    "isbn": ("ISBN",),
    "item_code": ("Item Code", "ItemCode", "Code"),
    "title": ("Title", "Book Title", "BookName", "Book", "Product", "Item", "Description"),
    "author": ("Author",),
    "publisher": ("Publisher",),
    "publisher_code": ("Publisher Code", "Pub Code"),
    "category": ("Category",),
    "description": ("Description",),
    "discount": ("Discount",),
    "tax": ("Tax", "GST"),
    "shipping": ("Shipping", "Freight"),
    "payment_mode": ("Payment Mode", "Mode", "Payment"),
    "customer_name": ("Customer Name", "Customer", "Name"),
    "mobile": ("Mobile", "Phone", "Contact"),
    "email": ("Email", "E-mail"),
    "month": ("Month",),
    "year": ("Year",),
}


@dataclass(frozen=True)
class FieldAliases:
    """Ordered candidate headers per logical field."""

    fields: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(_BASE_ALIASES))

    def names(self, field_name: str) -> Tuple[str, ...]:
        return tuple(self.fields.get(field_name, ()))

    def pick(self, record: Any, field_name: str) -> Any:
        return pick(record, self.names(field_name))

    def extend(self, **extra: Iterable[str]) -> "FieldAliases":
        """Copy with extra candidates appended after the existing ones."""
        merged = {k: tuple(v) for k, v in self.fields.items()}
        for name, candidates in extra.items():
            current = merged.get(name, ())
            merged[name] = current + tuple(c for c in candidates if c not in current)
        return FieldAliases(merged)


DEFAULT_ALIASES = FieldAliases()


def resolve_field(record: Any, field_name: str, aliases: FieldAliases = DEFAULT_ALIASES) -> Any:
    return aliases.pick(record, field_name)


__all__ = [
    "MISSING",
    "FieldAliases",
    "DEFAULT_ALIASES",
    "pick",
    "resolve_field",
    "to_number",
    "to_decimal",
    "as_decimal",
    "to_int",
    "normalize_string",
    "map_payment_mode",
    "map_order_status",
]
