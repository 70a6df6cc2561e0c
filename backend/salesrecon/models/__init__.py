from .sale import (
    SALE_MODELS,
    LokEventSale,
    OfflineSale,
    OnlineSale,
    RajRadhaEventSale,
    SaleRecordMixin,
)
from .user import User

__all__ = [
    "SALE_MODELS",
    "LokEventSale",
    "OfflineSale",
    "OnlineSale",
    "RajRadhaEventSale",
    "SaleRecordMixin",
    "User",
]
