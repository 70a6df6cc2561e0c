"""Uniform read access to sale rows, whether ORM objects or plain dicts."""
from __future__ import annotations

from typing import Any, Mapping

_CAMEL = {
    "raw_json": "rawJson",
    "order_status": "orderStatus",
    "order_no": "orderNo",
    "customer_name": "customerName",
    "payment_mode": "paymentMode",
    "item_code": "itemCode",
    "row_hash": "rowHash",
}


def record_value(record: Any, name: str) -> Any:
    """
    Read column ``name`` from an ORM row or a mapping.

    Mappings may use either the snake_case column name or its camelCase API
    spelling. Absent attributes read as ``None``.
    """
    if isinstance(record, Mapping):
        if name in record:
            return record[name]
        camel = _CAMEL.get(name)
        return record.get(camel) if camel else None
    return getattr(record, name, None)


def raw_of(record: Any) -> Any:
    return record_value(record, "raw_json")
