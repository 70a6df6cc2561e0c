from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func

from salesrecon.db.base import Base
from salesrecon.db.types import BIG_ID, JSON_PAYLOAD

MONEY = Numeric(14, 2)


class SaleRecordMixin:
    """
    Columns shared by every channel table.

    One commercial transaction per row. ``raw_json`` keeps the import row exactly
    as read from the spreadsheet and is never rewritten; the structured columns
    may start out null and get filled later by the backfill job.
    """

    id = Column(BIG_ID, primary_key=True, autoincrement=True)

    # identity
    order_no = Column(String, nullable=True)
    order_status = Column(String, nullable=True)
    isbn = Column(String, nullable=True)
    item_code = Column(String, nullable=True)
    title = Column(String, nullable=True)
    author = Column(String, nullable=True)
    publisher = Column(String, nullable=True)
    publisher_code = Column(String, nullable=True)
    category = Column(String, nullable=True)
    description = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    mobile = Column(String, nullable=True)
    email = Column(String, nullable=True)

    # commercial
    qty = Column(Integer, nullable=True)
    rate = Column(MONEY, nullable=True)
    amount = Column(MONEY, nullable=True)
    discount = Column(MONEY, nullable=True)
    tax = Column(MONEY, nullable=True)
    shipping = Column(MONEY, nullable=True)
    payment_mode = Column(String, nullable=True)

    # dates: `date` is authoritative, month/year are the coarse fallback
    date = Column(DateTime(timezone=True), nullable=True)
    month = Column(String, nullable=True)
    year = Column(Integer, nullable=True)

    raw_json = Column(JSON_PAYLOAD, nullable=False)
    row_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @declared_attr.directive
    def __table_args__(cls):
        table = cls.__tablename__
        return (
            UniqueConstraint("row_hash", name=f"uq_{table}_row_hash"),
            Index(f"ix_{table}_date", "date"),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} order_no={self.order_no!r} amount={self.amount}>"


class OnlineSale(SaleRecordMixin, Base):
    __tablename__ = "online_sales"


class OfflineSale(SaleRecordMixin, Base):
    """Counter sales paid by cash, UPI or card."""

    __tablename__ = "offline_sales"


class RajRadhaEventSale(SaleRecordMixin, Base):
    __tablename__ = "rajradha_event_sales"


class LokEventSale(SaleRecordMixin, Base):
    __tablename__ = "lok_event_sales"


SALE_MODELS = (OnlineSale, OfflineSale, RajRadhaEventSale, LokEventSale)
