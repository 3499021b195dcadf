"""Initial marketplace schema

Revision ID: 001
Revises: None
Create Date: 2025-01-15 00:00:00.000000+00:00

Creates every table the backend reads or writes and seeds the supported
currencies. Tables are created parents first so each foreign key has its
target; downgrade() drops them in reverse.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CURRENCIES = [
    ("GBP", "British Pound Sterling", "£", True),
    ("KWD", "Kuwaiti Dinar", "د.ك", False),
    ("SAR", "Saudi Riyal", "﷼", False),
    ("BHD", "Bahraini Dinar", ".د.ب", False),
    ("OMR", "Omani Rial", "﷼", False),
    ("QAR", "Qatari Riyal", "﷼", False),
    ("AED", "United Arab Emirates Dirham", "د.إ", False),
    ("EUR", "Euro", "€", False),
    ("USD", "US Dollar", "$", False),
]


def _timestamps(updated: bool = True):
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            )
        )
    return columns


def upgrade() -> None:
    currencies = op.create_table(
        "currencies",
        sa.Column("code", sa.String(3), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("symbol", sa.String(10), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "exchange_rates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "from_currency_code", sa.String(3), sa.ForeignKey("currencies.code"), nullable=False
        ),
        sa.Column(
            "to_currency_code", sa.String(3), sa.ForeignKey("currencies.code"), nullable=False
        ),
        sa.Column("rate", sa.Numeric(15, 8), nullable=False),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint(
            "from_currency_code", "to_currency_code", name="uq_exchange_rates_pair"
        ),
    )
    op.create_index("idx_exchange_rates_last_updated", "exchange_rates", ["last_updated"])

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("display_name", sa.String(150), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_suspended", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rating_as_owner", sa.Numeric(3, 2), nullable=False, server_default="0"),
        sa.Column("rating_as_renter", sa.Numeric(3, 2), nullable=False, server_default="0"),
        sa.Column("completed_rentals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cancelled_rentals", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])
    op.create_index("idx_users_last_login_at", "users", ["last_login_at"])

    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        "user_activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_user_activities_created_at", "user_activities", ["created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("related_id", sa.String(64), nullable=True),
        sa.Column("related_type", sa.String(50), nullable=True),
        sa.Column("link", sa.String(255), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )

    op.create_table(
        "wallets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("pending_balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("available_balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "tools",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("condition", sa.String(50), nullable=True),
        sa.Column("pickup_address", sa.String(255), nullable=True),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column(
            "base_currency_code",
            sa.String(3),
            sa.ForeignKey("currencies.code"),
            nullable=False,
            server_default="GBP",
        ),
        sa.Column("tool_status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column(
            "availability_status", sa.String(20), nullable=False, server_default="available"
        ),
        sa.Column("moderation_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_tools_owner_id", "tools", ["owner_id"])
    op.create_index("idx_tools_created_at", "tools", ["created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tool_id", sa.Uuid(), sa.ForeignKey("tools.id"), nullable=False),
        sa.Column("renter_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("fees", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("deposit_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("currency_code", sa.String(3), nullable=False, server_default="GBP"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("validation_code", sa.String(10), nullable=True),
        sa.Column("has_active_claim", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "deposit_capture_status", sa.String(20), nullable=False, server_default="none"
        ),
        sa.Column("deposit_payment_method_id", sa.String(255), nullable=True),
        sa.Column("payment_customer_id", sa.String(255), nullable=True),
        sa.Column("deposit_notification_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deposit_captured_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deposit_failure_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_bookings_tool_id", "bookings", ["tool_id"])
    op.create_index("idx_bookings_renter_id", "bookings", ["renter_id"])
    op.create_index("idx_bookings_created_at", "bookings", ["created_at"])

    op.create_table(
        "deposit_capture_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("booking_id", sa.Uuid(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notification_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("capture_attempted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="scheduled"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_deposit_jobs_status_scheduled", "deposit_capture_jobs", ["status", "scheduled_at"]
    )
    op.create_index("idx_deposit_jobs_booking_id", "deposit_capture_jobs", ["booking_id"])

    op.create_table(
        "disputes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("reason", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("initiator_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("respondent_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tool_id", sa.Uuid(), sa.ForeignKey("tools.id"), nullable=True),
        sa.Column("booking_id", sa.Uuid(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("moderator_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_disputes_status_created", "disputes", ["status", "created_at"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reviewee_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tool_id", sa.Uuid(), sa.ForeignKey("tools.id"), nullable=True),
        sa.Column("booking_id", sa.Uuid(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_reported", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("sender_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("recipient_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("wallet_id", sa.Uuid(), sa.ForeignKey("wallets.id"), nullable=True),
        sa.Column("booking_id", sa.Uuid(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("dispute_id", sa.Uuid(), sa.ForeignKey("disputes.id"), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("fee_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("external_reference", sa.String(255), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_transactions_type_status_created", "transactions", ["type", "status", "created_at"]
    )
    op.create_index("idx_transactions_booking_id", "transactions", ["booking_id"])

    op.bulk_insert(
        currencies,
        [
            {"code": code, "name": name, "symbol": symbol, "is_default": is_default, "is_active": True}
            for code, name, symbol, is_default in CURRENCIES
        ],
    )


def downgrade() -> None:
    for table in (
        "transactions",
        "reviews",
        "disputes",
        "deposit_capture_jobs",
        "bookings",
        "tools",
        "wallets",
        "notifications",
        "user_activities",
        "user_sessions",
        "users",
        "exchange_rates",
        "currencies",
    ):
        op.drop_table(table)
