from typing import Any

from sqlalchemy import BigInteger
from sqlalchemy import JSON
from sqlalchemy import String
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column

from ghdash.db import Base


class CacheRecord(Base):
    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payload: Mapped[Any] = mapped_column(JSON, nullable=True)
