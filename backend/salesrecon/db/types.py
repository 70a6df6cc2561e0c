from __future__ import annotations

from sqlalchemy import BigInteger, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON


JSON_PAYLOAD = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
BIG_ID = BigInteger().with_variant(Integer(), "sqlite")
