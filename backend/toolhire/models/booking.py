"""
ToolHire Backend: Booking and Deposit Capture Models
======================================================

What:  `bookings` and `deposit_capture_jobs` tables.
Why:   A booking carries the renter's saved payment method and the deposit
       state; the capture job tracks when and how charging the deposit went.
Who:   DepositCaptureService drives jobs; the dashboard counts bookings;
       the deletion cascade removes both.

Job Lifecycle:
    scheduled → notification_sent → capturing → success
                                            └─→ failed → capturing (retry)
    Any non-terminal job → cancelled (booking cancelled or rejected)
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from toolhire.database import Base, utcnow


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ONGOING = "ongoing"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class DepositCaptureStatus(str, enum.Enum):
    NONE = "none"
    SCHEDULED = "scheduled"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DepositJobStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    NOTIFICATION_SENT = "notification_sent"
    CAPTURING = "capturing"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tool_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tools.id"), nullable=False)
    renter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    fees: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    deposit_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value
    )
    validation_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    has_active_claim: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ── Deposit ───────────────────────────────────────────────────────────
    deposit_capture_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DepositCaptureStatus.NONE.value
    )
    deposit_payment_method_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    deposit_notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deposit_captured_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deposit_failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_bookings_tool_id", "tool_id"),
        Index("idx_bookings_renter_id", "renter_id"),
        Index("idx_bookings_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status='{self.status}')>"


class DepositCaptureJob(Base):
    __tablename__ = "deposit_capture_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    capture_attempted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DepositJobStatus.SCHEDULED.value
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    job_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_deposit_jobs_status_scheduled", "status", "scheduled_at"),
        Index("idx_deposit_jobs_booking_id", "booking_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<DepositCaptureJob(id={self.id}, booking={self.booking_id}, "
            f"status='{self.status}', retries={self.retry_count})>"
        )
