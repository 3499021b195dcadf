"""
ToolHire Backend: ORM Models
==============================

Importing this package registers every table on Base.metadata, which is
what Alembic autogenerate and the test fixtures' create_all rely on.
"""

from toolhire.models.booking import (
    Booking,
    BookingStatus,
    DepositCaptureJob,
    DepositCaptureStatus,
    DepositJobStatus,
)
from toolhire.models.currency import Currency, ExchangeRate
from toolhire.models.dispute import Dispute, DisputeStatus
from toolhire.models.review import Review
from toolhire.models.tool import AvailabilityStatus, ModerationStatus, Tool, ToolStatus
from toolhire.models.transaction import Transaction, TransactionStatus, TransactionType
from toolhire.models.user import Notification, User, UserActivity, UserSession, Wallet

__all__ = [
    "AvailabilityStatus",
    "Booking",
    "BookingStatus",
    "Currency",
    "DepositCaptureJob",
    "DepositCaptureStatus",
    "DepositJobStatus",
    "Dispute",
    "DisputeStatus",
    "ExchangeRate",
    "ModerationStatus",
    "Notification",
    "Review",
    "Tool",
    "ToolStatus",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserActivity",
    "UserSession",
    "Wallet",
]
