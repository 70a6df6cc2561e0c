"""
Transaction date resolution.

Channels disagree on how dates are stored: some exports have a clean date
column, some only a free-text date buried in the raw row, some only a coarse
Month/Year pair. ``resolve_date`` walks those representations in order of
precision and returns the first that parses, or ``None`` when a row is
genuinely undated.
"""
from __future__ import annotations

import calendar
import numbers
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

import pandas as pd

from salesrecon.services.fields import DEFAULT_ALIASES, MISSING, FieldAliases, to_number
from salesrecon.services.records import raw_of, record_value

_ISO_LIKE = re.compile(r"^\s*\d{4}-\d{2}-\d{2}T")

# Excel stores dates as days since 1899-12-30.
_EXCEL_EPOCH = pd.Timestamp("1899-12-30", tz="UTC")
# Serials outside this window are numbers that merely sit in a date column.
_EXCEL_SERIAL_RANGE = (1, 2958465)

_MONTHS = {abbr.lower(): i for i, abbr in enumerate(calendar.month_abbr) if abbr}
_MONTHS.update({name.lower(): i for i, name in enumerate(calendar.month_name) if name})
_MONTHS["sept"] = 9


def _as_utc(d: datetime) -> datetime:
    if d.tzinfo is None:
        return d.replace(tzinfo=timezone.utc)
    return d.astimezone(timezone.utc)


def to_date(value: Any) -> Optional[datetime]:
    """Coerce a cell to an aware UTC datetime, or ``None`` if it is not a date."""
    if value is None or value is MISSING or value is pd.NaT or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else _as_utc(value.to_pydatetime())
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, numbers.Real):
        lo, hi = _EXCEL_SERIAL_RANGE
        if not (lo <= value <= hi):
            return None
        return (_EXCEL_EPOCH + pd.to_timedelta(float(value), unit="D")).to_pydatetime()
    if isinstance(value, str):
        text = value.strip()
        if not text or to_number(text) is not None:
            # bare numbers in text cells are not dates
            return None
        try:
            ts = pd.to_datetime(text, errors="coerce", utc=True)
        except (ValueError, TypeError, OverflowError):
            return None
        if ts is None or pd.isna(ts):
            return None
        return ts.to_pydatetime()
    return None


def month_index(name: Any) -> Optional[int]:
    """1-based month for ``"Jan"``, ``"sept"``, ``"September"``; else ``None``."""
    if not isinstance(name, str):
        return None
    return _MONTHS.get(name.strip().lower())


def raw_date(raw: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> Optional[datetime]:
    """
    Date derivable from the raw import row alone.

    Looks at the channel's date headers first, then falls back to the first
    value shaped like an ISO-8601 timestamp.
    """
    if not isinstance(raw, Mapping):
        return None
    found = to_date(aliases.pick(raw, "date"))
    if found is not None:
        return found
    for value in raw.values():
        if isinstance(value, str) and _ISO_LIKE.match(value):
            found = to_date(value)
            if found is not None:
                return found
    return None


def period_date(month: Any, year: Any) -> Optional[datetime]:
    idx = month_index(month)
    yr = to_number(year)
    if idx is None or yr is None or yr <= 0 or not float(yr).is_integer():
        return None
    try:
        return datetime(int(yr), idx, 1, tzinfo=timezone.utc)
    except ValueError:
        return None


def resolve_date(record: Any, aliases: FieldAliases = DEFAULT_ALIASES) -> Optional[datetime]:
    """
    Authoritative transaction date for a sale row.

    Order: structured ``date`` column, raw date headers, ISO-looking raw value,
    first day of ``month``/``year``. Returns ``None`` when none apply; callers
    must treat that row as undated rather than invent a date.
    """
    found = to_date(record_value(record, "date"))
    if found is not None:
        return found
    found = raw_date(raw_of(record), aliases)
    if found is not None:
        return found
    return period_date(record_value(record, "month"), record_value(record, "year"))


__all__ = ["to_date", "month_index", "raw_date", "period_date", "resolve_date"]
