"""
ToolHire Backend: Currency and Exchange Rate Models
=====================================================

What:  ORM models for the `currencies` and `exchange_rates` tables.
Why:   Tools are priced in their owner's currency and shown to renters in
       theirs; stored rates are the second-to-last tier of the fallback chain.
Who:   ExchangeRateService reads and upserts these; admins manage currencies.

Table Design:
    - currencies.code is the ISO 4217 code and the primary key.
    - exchange_rates is unique on (from_currency_code, to_currency_code);
      the live-rate upsert relies on that constraint.
    - rate is NUMERIC(15, 8): rates between dinars and riyals span four
      orders of magnitude, and eight decimals keep inverse rates stable.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from toolhire.database import Base, utcnow


class Currency(Base):
    __tablename__ = "currencies"

    code: Mapped[str] = mapped_column(String(3), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Currency(code='{self.code}', active={self.is_active})>"


class ExchangeRate(Base):
    """
    One directed rate: 1 unit of from_currency = `rate` units of to_currency.

    The inverse direction is a separate row (or is derived as 1/rate when
    only one direction is stored).
    """

    __tablename__ = "exchange_rates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    from_currency_code: Mapped[str] = mapped_column(
        String(3), ForeignKey("currencies.code"), nullable=False
    )
    to_currency_code: Mapped[str] = mapped_column(
        String(3), ForeignKey("currencies.code"), nullable=False
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(15, 8), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "from_currency_code", "to_currency_code", name="uq_exchange_rates_pair"
        ),
        Index("idx_exchange_rates_last_updated", "last_updated"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate({self.from_currency_code}->{self.to_currency_code} "
            f"rate={self.rate})>"
        )
