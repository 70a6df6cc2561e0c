from __future__ import annotations

from decimal import Decimal

import numpy as np
import pytest

from salesrecon.services.fields import (
    DEFAULT_ALIASES,
    MISSING,
    as_decimal,
    map_order_status,
    map_payment_mode,
    pick,
    to_decimal,
    to_int,
    to_number,
)


def test_pick_is_case_and_space_insensitive():
    row = {"  selling PRICE ": "120", "Qty": 2}
    assert pick(row, ["Selling Price"]) == "120"
    assert pick(row, ["quantity", "qty"]) == 2


def test_pick_uses_record_key_order():
    row = {"Total": "5", "Amount": "7"}
    assert pick(row, ["Amount", "Total"]) == "5"


def test_pick_missing_and_non_mapping():
    assert pick({"a": 1}, ["b"]) is MISSING
    assert pick(None, ["a"]) is MISSING
    assert pick("garbage", ["a"]) is MISSING
    assert not MISSING


def test_pick_keeps_present_none_distinct_from_missing():
    assert pick({"Amount": None}, ["amount"]) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("1,234.50", 1234.5),
        (" 42 ", 42.0),
        (7, 7),
        (2.5, 2.5),
        (Decimal("3.10"), 3.1),
        (np.float64(1.25), 1.25),
        ("", None),
        ("abc", None),
        (None, None),
        (MISSING, None),
        (True, None),
        ("nan", None),
        ("1_000", None),
        ("0x10", None),
        ("1e3", 1000.0),
        ("-.5", -0.5),
        (float("inf"), None),
    ],
)
def test_to_number(value, expected):
    assert to_number(value) == expected


def test_to_decimal_goes_through_string_form():
    assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")
    assert to_decimal(None) is None


def test_as_decimal_passes_decimals_through():
    d = Decimal("19.99")
    assert as_decimal(d) is d
    assert as_decimal("1,000") == Decimal("1000.0")
    assert as_decimal("n/a") is None


def test_to_int_accepts_integral_values_only():
    assert to_int("2") == 2
    assert to_int(3.0) == 3
    assert to_int(1.5) is None
    assert to_int("") is None


def test_alias_table_extend_appends_candidates():
    extended = DEFAULT_ALIASES.extend(qty=("OUT",))
    assert extended.names("qty")[-1] == "OUT"
    assert "OUT" not in DEFAULT_ALIASES.names("qty")
    assert extended.pick({"out": "4"}, "qty") == "4"


def test_payment_mode_and_status_vocabulary():
    assert map_payment_mode(" upi ") == "UPI"
    assert map_payment_mode("CC") == "Card"
    assert map_payment_mode("barter") == "Other"
    assert map_payment_mode("") is None
    assert map_order_status("Completed") == "complete"
    assert map_order_status("Canceled") == "cancelled"
    assert map_order_status("weird") == "unknown"
    assert map_order_status(None) is None
