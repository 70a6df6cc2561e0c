# backend/salesrecon/schemas/sales.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class SaleItemOut(_CamelModel):
    id: str
    order_no: Optional[str] = None
    order_status: Optional[str] = None
    isbn: Optional[str] = None
    item_code: Optional[str] = None
    title: Optional[str] = None
    customer_name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    qty: Optional[int] = None
    rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    payment_mode: Optional[str] = None
    date: Optional[datetime] = None
    month: Optional[str] = None
    year: Optional[int] = None
    raw_json: Any = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Any) -> "SaleItemOut":
        data = {name: getattr(row, name, None) for name in cls.model_fields if name != "id"}
        return cls(id=str(row.id), **data)

    @field_serializer("rate", "amount")
    def _money(self, value: Optional[Decimal]) -> Optional[float]:
        return None if value is None else round(float(value), 2)


class SalesPage(_CamelModel):
    items: List[SaleItemOut] = Field(default_factory=list)
    next_cursor_id: Optional[str] = None


class ImportStats(_CamelModel):
    channel: str
    rows_seen: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0
    warnings: List[str] = Field(default_factory=list)


class ChannelOut(_CamelModel):
    key: str
    label: str
    table: str
    key_fields: List[str]
    discriminators: List[str]


__all__ = ["SaleItemOut", "SalesPage", "ImportStats", "ChannelOut"]
