"""
ToolHire Backend: Dashboard Service Tests
===========================================

What:  Period windows, growth maths and every dashboard aggregate.
How:   Rows are seeded with explicit created_at values around the fixed
       `now` fixture (2025-06-15 12:00 UTC), so windows are deterministic.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from toolhire.exceptions import DatabaseError
from toolhire.models import BookingStatus, DisputeStatus, TransactionStatus, TransactionType
from toolhire.services.dashboard_service import (
    DashboardService,
    growth_rate,
    resolve_period,
)


def at(day: int, month: int = 6, year: int = 2025, hour: int = 10) -> datetime:
    return datetime(year, month, day, hour, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def marketplace(factory):
    """
    7d window for `now`: [06-08 12:00, 06-15 12:00]; previous: [06-01 12:00, 06-08 12:00).
    """
    owner = await factory.user(first_name="Olive", last_name="Owner", created_at=at(1, 1))
    renter = await factory.user(
        first_name="Rita", last_name="Renter", created_at=at(10), last_login_at=at(14)
    )
    await factory.user(created_at=at(12))
    await factory.user(created_at=at(3))

    drill = await factory.tool(owner, title="Drill")
    saw = await factory.tool(owner, title="Saw")
    await factory.booking(drill, renter, created_at=at(11))
    await factory.booking(drill, renter, created_at=at(11), status=BookingStatus.CANCELLED.value)
    await factory.booking(saw, renter, created_at=at(13))

    payment = TransactionType.PAYMENT.value
    await factory.transaction(amount=Decimal("30.00"), type=payment, created_at=at(11))
    await factory.transaction(amount=Decimal("20.00"), type=payment, created_at=at(13))
    await factory.transaction(amount=Decimal("40.00"), type=payment, created_at=at(5))
    await factory.transaction(
        amount=Decimal("100.00"),
        type=payment,
        status=TransactionStatus.PENDING.value,
        created_at=at(12),
    )
    await factory.transaction(
        amount=Decimal("50.00"), type=TransactionType.DEPOSIT.value, created_at=at(12)
    )

    await factory.review(renter, owner, rating=4)
    await factory.review(owner, renter, rating=5)
    await factory.dispute(renter, owner, created_at=at(9))
    return {"owner": owner, "renter": renter, "drill": drill, "saw": saw}


class TestPeriods:
    def test_growth_rate(self):
        assert growth_rate(50, 40) == 25.0
        assert growth_rate(1, 3) == -66.67
        assert growth_rate(5, 0) == 100.0
        assert growth_rate(0, 0) == 0.0

    def test_unknown_period_falls_back_to_30d(self, now):
        window = resolve_period("2w", now)
        assert window.period == "30d"
        assert window.end == now
        assert window.start == now - timedelta(days=30)

    def test_previous_window_is_adjacent(self, now):
        window = resolve_period("7d", now)
        previous = window.previous()
        assert previous.end == window.start
        assert previous.length == timedelta(days=7)


class TestAggregates:
    def setup_method(self):
        self.service = DashboardService()

    @pytest.mark.asyncio
    async def test_overview(self, db_session, marketplace, now):
        overview = await self.service.get_overview(db_session, "7d", now)

        assert overview.period == "7d"
        assert overview.total_users == 4
        assert overview.active_users == 1
        assert overview.total_tools == 2
        assert overview.total_bookings == 3
        assert overview.total_revenue == 50.0
        assert overview.pending_disputes == 1

    @pytest.mark.asyncio
    async def test_kpis(self, db_session, marketplace, now):
        kpis = await self.service.get_kpis(db_session, "7d", now)

        assert kpis.user_growth == 100.0
        assert kpis.booking_growth == 100.0
        assert kpis.revenue_growth == 25.0
        assert kpis.average_rating == 4.5

    @pytest.mark.asyncio
    async def test_revenue_chart_counts_completed_payments_only(self, db_session, marketplace, now):
        points = await self.service.get_revenue_chart(db_session, "7d", now)

        assert [(p.date, p.revenue) for p in points] == [("2025-06-11", 30.0), ("2025-06-13", 20.0)]

    @pytest.mark.asyncio
    async def test_user_growth_and_booking_stats(self, db_session, marketplace, now):
        growth = await self.service.get_user_growth(db_session, "7d", now)
        stats = await self.service.get_booking_stats(db_session, "7d", now)

        assert [(p.date, p.users) for p in growth] == [("2025-06-10", 1), ("2025-06-12", 1)]
        assert {s.status: s.count for s in stats} == {"accepted": 2, "cancelled": 1}

    @pytest.mark.asyncio
    async def test_top_tools(self, db_session, marketplace):
        top = await self.service.get_top_tools(db_session, limit=5)

        assert [(t.title, t.booking_count) for t in top] == [("Drill", 2), ("Saw", 1)]

    @pytest.mark.asyncio
    async def test_dashboard_data_merges_series(self, db_session, marketplace, now):
        data = await self.service.get_dashboard_data(db_session, "7d", now)

        assert data.stats.online_listings == 2
        assert data.stats.active_reservations == 3
        assert data.stats.monthly_revenue == 50.0
        assert data.stats.growth_percentage == 100.0
        chart = {p.date: p for p in data.chart_data}
        assert sorted(chart) == ["2025-06-10", "2025-06-11", "2025-06-12", "2025-06-13"]
        assert chart["2025-06-11"].reservations == 2
        assert chart["2025-06-11"].revenue == 30.0
        assert chart["2025-06-12"].users == 1
        assert chart["2025-06-12"].revenue == 0.0

    @pytest.mark.asyncio
    async def test_database_failure(self, mock_db_session, now):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DatabaseError) as exc_info:
            await self.service.get_kpis(mock_db_session, "7d", now)
        assert exc_info.value.context["operation"] == "get_kpis"


class TestDisputesAndActivity:
    def setup_method(self):
        self.service = DashboardService()

    @pytest.mark.asyncio
    async def test_dispute_overview(self, db_session, factory, now):
        a = await factory.user()
        b = await factory.user()
        await factory.dispute(a, b, created_at=at(1))
        await factory.dispute(
            a,
            b,
            status=DisputeStatus.RESOLVED.value,
            created_at=at(10, month=4),
            resolved_at=at(13, month=4),
        )
        await factory.dispute(a, b, status=DisputeStatus.CLOSED.value, created_at=at(1, 1, 2023))

        overview = await self.service.get_dispute_overview(db_session, now)

        assert overview.total_disputes == 3
        assert overview.open_disputes == 1
        assert overview.resolved_disputes == 1
        assert overview.closed_disputes == 1
        assert overview.average_resolution_days == 3
        monthly = {m.month: m.count for m in overview.monthly_disputes}
        assert len(monthly) == 12
        assert list(monthly)[0] == "2024-07"
        assert monthly["2025-06"] == 1
        assert monthly["2025-05"] == 0
        assert monthly["2025-04"] == 1

    @pytest.mark.asyncio
    async def test_recent_activities_newest_first(self, db_session, factory):
        user = await factory.user(first_name="Ada", last_name="Lovelace")
        await factory.activity(user, description="Listed a drill", created_at=at(10))
        await factory.activity(
            user,
            activity_type="booking",
            description="Booked a saw",
            created_at=at(12),
            activity_metadata={"tool": "saw"},
        )

        activities = await self.service.get_recent_activities(db_session, limit=10)

        assert [a.type for a in activities] == ["booking", "login"]
        assert activities[0].user.name == "Ada Lovelace"
        assert activities[0].metadata == {"tool": "saw"}
        assert activities[0].timestamp == at(12)
