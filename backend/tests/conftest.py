"""
ToolHire Backend: Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment overrides are applied before any toolhire import so the
       settings singleton never sees production values.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: AsyncMock session for pure unit tests
    ├── db_engine:       in-memory SQLite with every table, foreign keys ON
    │   └── db_session:  session bound to that engine
    │       └── factory: builds users, tools, bookings, ... and flushes them
    ├── test_client:     HTTPX AsyncClient over the ASGI app, sharing db_engine
    └── admin_headers:   X-Admin-Token header accepted by admin routes
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["EXCHANGE_RATE_API_KEY"] = ""
os.environ["EXCHANGE_RATE_REFRESH_DELAY"] = "0"
os.environ["PAYMENT_SECRET_KEY"] = ""

from datetime import date, datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import toolhire.models  # noqa: E402,F401
from toolhire.database import Base, get_db_session  # noqa: E402
from toolhire.models import (  # noqa: E402
    Booking,
    BookingStatus,
    Currency,
    Dispute,
    ModerationStatus,
    Review,
    Tool,
    ToolStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserActivity,
    Wallet,
)

ADMIN_TOKEN = "test-admin-token"

SEED_CURRENCIES = [
    ("GBP", "British Pound Sterling", "£", True),
    ("USD", "US Dollar", "$", False),
    ("SAR", "Saudi Riyal", "﷼", False),
    ("EUR", "Euro", "€", False),
]


@pytest.fixture
def mock_db_session():
    """
    AsyncMock standing in for AsyncSession.

    Usage:
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception())
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.get = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_sessionmaker(engine, expire_on_commit=False)() as session:
        session.add_all(
            Currency(code=code, name=name, symbol=symbol, is_default=is_default, is_active=True)
            for code, name, symbol, is_default in SEED_CURRENCIES
        )
        await session.commit()

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async with async_sessionmaker(db_engine, expire_on_commit=False)() as session:
        yield session


class Factory:
    """Creates persisted rows with sensible defaults; keyword args override them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def user(self, **kwargs) -> User:
        n = uuid4().hex[:8]
        fields = {"email": f"user-{n}@example.com", "first_name": "Test", "last_name": n}
        fields.update(kwargs)
        return await self._save(User(**fields))

    async def wallet(self, user: User, **kwargs) -> Wallet:
        return await self._save(Wallet(user_id=user.id, **kwargs))

    async def tool(self, owner: User, **kwargs) -> Tool:
        fields = {
            "owner_id": owner.id,
            "title": "Cordless Drill",
            "description": "18V drill with two batteries",
            "base_price": Decimal("10.00"),
            "deposit_amount": Decimal("50.00"),
            "base_currency_code": "GBP",
            "tool_status": ToolStatus.PUBLISHED.value,
            "moderation_status": ModerationStatus.CONFIRMED.value,
        }
        fields.update(kwargs)
        return await self._save(Tool(**fields))

    async def booking(self, tool: Tool, renter: User, **kwargs) -> Booking:
        today = date.today()
        fields = {
            "tool_id": tool.id,
            "renter_id": renter.id,
            "owner_id": tool.owner_id,
            "start_date": today,
            "end_date": today + timedelta(days=3),
            "total_price": Decimal("30.00"),
            "deposit_amount": Decimal("50.00"),
            "currency_code": "GBP",
            "status": BookingStatus.ACCEPTED.value,
            "payment_customer_id": "cus_test",
            "deposit_payment_method_id": "pm_test",
        }
        fields.update(kwargs)
        return await self._save(Booking(**fields))

    async def transaction(self, **kwargs) -> Transaction:
        fields = {
            "amount": Decimal("30.00"),
            "type": TransactionType.PAYMENT.value,
            "status": TransactionStatus.COMPLETED.value,
        }
        fields.update(kwargs)
        return await self._save(Transaction(**fields))

    async def review(self, reviewer: User, reviewee: User, rating: int = 5, **kwargs) -> Review:
        return await self._save(
            Review(reviewer_id=reviewer.id, reviewee_id=reviewee.id, rating=rating, **kwargs)
        )

    async def dispute(self, initiator: User, respondent: User, **kwargs) -> Dispute:
        fields = {"reason": "damaged", "initiator_id": initiator.id, "respondent_id": respondent.id}
        fields.update(kwargs)
        return await self._save(Dispute(**fields))

    async def activity(self, user: User, **kwargs) -> UserActivity:
        fields = {"user_id": user.id, "activity_type": "login", "description": "Logged in"}
        fields.update(kwargs)
        return await self._save(UserActivity(**fields))


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest_asyncio.fixture
async def test_client(db_engine):
    """
    HTTPX AsyncClient routed straight into the ASGI app.

    get_db_session is overridden so requests use the test database with
    the same commit/rollback behaviour as production.
    """
    from toolhire.main import app

    factory = async_sessionmaker(db_engine, expire_on_commit=False)

    async def override_get_db_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
