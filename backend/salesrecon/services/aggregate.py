"""
Report aggregation over resolved sale rows.

Rows are streamed through the date resolver and summed with exact decimals.
Bad rows are absorbed: a row without a usable amount contributes zero, a row
without a date is kept, a malformed ``raw_json`` behaves like an empty one.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from salesrecon.core.errors import InvalidDateRangeError
from salesrecon.services.dates import resolve_date
from salesrecon.services.fields import DEFAULT_ALIASES, FieldAliases, as_decimal, normalize_string
from salesrecon.services.records import raw_of, record_value

ZERO = Decimal("0")
CENTS = Decimal("0.01")
UNTITLED = "Untitled Item"
UNKNOWN_PAYMENT = "Unknown"


def round_money(value: Decimal) -> Decimal:
    """Currency rounding: half away from zero, two places."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _plain_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


@dataclass(frozen=True)
class DateRange:
    """Inclusive ``[start, end]``; either bound may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "start", _utc(self.start))
        object.__setattr__(self, "end", _utc(self.end))
        if self.start and self.end and self.start > self.end:
            raise InvalidDateRangeError("startDate must not be after endDate")

    def contains(self, when: datetime) -> bool:
        if self.start is not None and when < self.start:
            return False
        if self.end is not None and when > self.end:
            return False
        return True

    def admits(self, when: Optional[datetime]) -> bool:
        """Undated rows are always admitted; dated rows must fall inside."""
        return when is None or self.contains(when)

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None


def _utc(d: Optional[datetime]) -> Optional[datetime]:
    if d is None:
        return None
    return d.replace(tzinfo=timezone.utc) if d.tzinfo is None else d.astimezone(timezone.utc)


def _days_back(now: datetime, days: int) -> datetime:
    try:
        return now - timedelta(days=days)
    except OverflowError:
        raise InvalidDateRangeError("days is out of range") from None


def resolve_date_range(
    days: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> DateRange:
    """
    Turn counts-style query params into a range.

    ``days`` only applies when neither explicit bound was given, and then means
    ``[now - days, now]``.
    """
    if days is not None and days < 0:
        raise InvalidDateRangeError("days must be a non-negative integer")
    start, end = _utc(start), _utc(end)
    if days is not None and start is None and end is None:
        now = _utc(now) or datetime.now(timezone.utc)
        return DateRange(_days_back(now, days), now)
    return DateRange(start, end)


def summary_date_range(
    days: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
    default_days: int = 90,
) -> DateRange:
    """Summary windows always have a lower bound: ``start`` or ``now - days``."""
    if days is not None and days < 0:
        raise InvalidDateRangeError("days must be a non-negative integer")
    start, end = _utc(start), _utc(end)
    if start is None:
        now = _utc(now) or datetime.now(timezone.utc)
        start = _days_back(now, default_days if days is None else days)
    return DateRange(start, end)


# ---------------------------------------------------------------------------
# Per-row resolution
# ---------------------------------------------------------------------------

def resolve_amount(record: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> Decimal:
    """
    Monetary value of one row.

    Structured non-zero ``amount``, else a raw amount header, else
    ``rate * qty`` with each side taken from the column or the raw row and
    defaulting to zero.
    """
    amount = as_decimal(record_value(record, "amount"))
    if amount:
        return amount
    raw = raw_of(record)
    from_raw = as_decimal(aliases.pick(raw, "amount"))
    if from_raw is not None:
        return from_raw
    rate = as_decimal(record_value(record, "rate")) or as_decimal(aliases.pick(raw, "rate")) or ZERO
    qty = as_decimal(record_value(record, "qty")) or as_decimal(aliases.pick(raw, "qty")) or ZERO
    return rate * qty


def resolve_qty(record: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> Decimal:
    return (
        as_decimal(record_value(record, "qty"))
        or as_decimal(aliases.pick(raw_of(record), "qty"))
        or ZERO
    )


def resolve_status(record: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> str:
    status = normalize_string(record_value(record, "order_status"))
    if status is None:
        status = normalize_string(aliases.pick(raw_of(record), "status"))
    return status or ""


def is_refund(record: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> bool:
    return resolve_status(record, aliases).lower() == "refunded"


def customer_key(record: Any) -> str:
    """
    ``email|mobile|name`` from the non-empty components, lower-cased.

    Two rows are the same customer only when the whole key matches; an empty
    key means the row cannot be attributed.
    """
    parts = []
    for name in ("email", "mobile", "customer_name"):
        text = (normalize_string(record_value(record, name)) or "").lower()
        if text:
            parts.append(text)
    return "|".join(parts)


def resolve_title(record: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> str:
    title = normalize_string(record_value(record, "title"))
    if title is None:
        candidate = aliases.pick(raw_of(record), "title")
        title = normalize_string(candidate) if isinstance(candidate, str) else None
    return title or UNTITLED


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

@dataclass
class SalesCounts:
    total_count: int = 0
    total_amount: Decimal = ZERO
    unique_customers: int = 0
    refund_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCount": self.total_count,
            "totalAmount": float(self.total_amount),
            "uniqueCustomers": self.unique_customers,
            "refundCount": self.refund_count,
        }


def aggregate(
    records: Iterable[Any],
    date_range: Optional[DateRange] = None,
    aliases: FieldAliases = DEFAULT_ALIASES,
) -> SalesCounts:
    total = ZERO
    count = 0
    refunds = 0
    customers: set[str] = set()

    for record in records:
        if date_range is not None and not date_range.is_open:
            if not date_range.admits(resolve_date(record, aliases)):
                continue
        count += 1
        total += resolve_amount(record, aliases)
        if is_refund(record, aliases):
            refunds += 1
        key = customer_key(record)
        if key:
            customers.add(key)

    return SalesCounts(
        total_count=count,
        total_amount=round_money(total),
        unique_customers=len(customers),
        refund_count=refunds,
    )


@dataclass
class SalesSummary:
    time_series: List[Dict[str, Any]] = field(default_factory=list)
    top_items: List[Dict[str, Any]] = field(default_factory=list)
    payment_modes: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeSeries": self.time_series,
            "topItems": self.top_items,
            "paymentModes": self.payment_modes,
        }


def summarize(
    records: Iterable[Any],
    date_range: Optional[DateRange] = None,
    aliases: FieldAliases = DEFAULT_ALIASES,
    top_n: int = 10,
) -> SalesSummary:
    """
    Daily totals, best-selling titles and payment-mode split.

    Undated rows count toward items and payment modes but have no day to land
    on in the time series.
    """
    by_day: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    by_title: Dict[str, List[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
    by_payment: Dict[str, Decimal] = defaultdict(lambda: ZERO)

    for record in records:
        when = resolve_date(record, aliases)
        if date_range is not None and not date_range.admits(when):
            continue
        amount = resolve_amount(record, aliases)
        if when is not None:
            by_day[when.strftime("%Y-%m-%d")] += amount
        bucket = by_title[resolve_title(record, aliases)]
        bucket[0] += amount
        bucket[1] += resolve_qty(record, aliases)
        mode = normalize_string(record_value(record, "payment_mode")) or UNKNOWN_PAYMENT
        by_payment[mode] += amount

    time_series = [
        {"date": day, "total": float(round_money(total))}
        for day, total in sorted(by_day.items())
    ]
    items = [
        (title, total, qty)
        for title, (total, qty) in by_title.items()
        if total > 0 or qty > 0
    ]
    items.sort(key=lambda item: item[1], reverse=True)
    top_items = [
        {"title": title, "total": float(round_money(total)), "qty": _plain_number(qty)}
        for title, total, qty in items[:top_n]
    ]
    payment_modes = [
        {"paymentMode": mode, "total": float(round_money(total))}
        for mode, total in sorted(by_payment.items(), key=lambda kv: kv[1], reverse=True)
    ]
    return SalesSummary(time_series=time_series, top_items=top_items, payment_modes=payment_modes)


__all__ = [
    "DateRange",
    "SalesCounts",
    "SalesSummary",
    "aggregate",
    "customer_key",
    "is_refund",
    "resolve_amount",
    "resolve_date_range",
    "resolve_qty",
    "resolve_status",
    "resolve_title",
    "round_money",
    "summarize",
    "summary_date_range",
]
