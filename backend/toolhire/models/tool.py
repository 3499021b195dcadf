"""
ToolHire Backend: Tool Model
==============================

A rentable item listed by its owner. Prices are stored in the tool's
base currency (GBP unless the owner chose otherwise); the catalogue
converts them on the way out.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from toolhire.database import Base, utcnow


class ToolStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    MAINTENANCE = "maintenance"


class ModerationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class Tool(Base):
    __tablename__ = "tools"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    condition: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pickup_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    base_currency_code: Mapped[str] = mapped_column(
        String(3), ForeignKey("currencies.code"), nullable=False, default="GBP"
    )
    tool_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ToolStatus.DRAFT.value
    )
    availability_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AvailabilityStatus.AVAILABLE.value
    )
    moderation_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ModerationStatus.PENDING.value
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_tools_owner_id", "owner_id"),
        Index("idx_tools_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Tool(id={self.id}, title='{self.title}')>"
