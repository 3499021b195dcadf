"""
ToolHire Backend: Admin Dashboard Aggregation Service
=======================================================

What:  Platform statistics for the admin dashboard: headline counts,
       period-over-period growth, daily chart series, booking and dispute
       breakdowns, top tools and the recent activity feed.
How:   Every figure is one aggregate SQL query (COUNT / SUM / AVG with
       GROUP BY date(created_at) for series). Dispute month bucketing is
       done in Python so the same code runs on PostgreSQL and SQLite.

Periods:
    "7d", "30d", "90d", "1y"; anything else falls back to "30d".
    Current window  = [now - length, now]
    Previous window = [start - length, start)

Growth:
    (current - previous) / previous * 100
    previous == 0 → 100 when current > 0, else 0
"""

import functools
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.database import as_utc, utcnow
from toolhire.exceptions import DatabaseError
from toolhire.models.booking import Booking
from toolhire.models.dispute import Dispute, DisputeStatus
from toolhire.models.review import Review
from toolhire.models.tool import Tool
from toolhire.models.transaction import Transaction, TransactionStatus, TransactionType
from toolhire.models.user import User, UserActivity
from toolhire.schemas.dashboard import (
    ActivityUser,
    ChartPoint,
    DashboardData,
    DashboardKPIs,
    DashboardOverview,
    DashboardStats,
    DisputeOverview,
    MonthlyCount,
    RecentActivity,
    RevenuePoint,
    StatusCount,
    TopTool,
    UserGrowthPoint,
)

logger = logging.getLogger(__name__)

PERIOD_DAYS: Dict[str, int] = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_PERIOD = "30d"


@dataclass(frozen=True)
class DateWindow:
    period: str
    start: datetime
    end: datetime

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    def previous(self) -> "DateWindow":
        return DateWindow(self.period, self.start - self.length, self.start)


def resolve_period(period: Optional[str], now: Optional[datetime] = None) -> DateWindow:
    key = period if period in PERIOD_DAYS else DEFAULT_PERIOD
    end = now or utcnow()
    return DateWindow(key, end - timedelta(days=PERIOD_DAYS[key]), end)


def growth_rate(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def _translate_db_errors(method):
    @functools.wraps(method)
    async def wrapper(*args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error("Dashboard query %s failed: %s", method.__name__, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load dashboard statistics. Please try again.",
                context={"operation": method.__name__},
            ) from e

    return wrapper


def _day_key(value) -> str:
    # date(...) is a date on PostgreSQL and a 'YYYY-MM-DD' string on SQLite
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


class DashboardService:
    @_translate_db_errors
    async def get_overview(
        self, db: AsyncSession, period: Optional[str] = None, now: Optional[datetime] = None
    ) -> DashboardOverview:
        window = resolve_period(period, now)

        total_users = await self._scalar(db, select(func.count(User.id)))
        active_users = await self._scalar(
            db,
            select(func.count(User.id)).where(
                User.last_login_at >= window.start, User.last_login_at <= window.end
            ),
        )
        total_tools = await self._scalar(db, select(func.count(Tool.id)))
        total_bookings = await self._count_created(db, Booking, window, inclusive_end=True)
        total_revenue = await self._revenue(db, window, inclusive_end=True)
        pending_disputes = await self._scalar(
            db,
            select(func.count(Dispute.id)).where(Dispute.status == DisputeStatus.PENDING.value),
        )

        return DashboardOverview(
            period=window.period,
            total_users=int(total_users or 0),
            active_users=int(active_users or 0),
            total_tools=int(total_tools or 0),
            total_bookings=total_bookings,
            total_revenue=total_revenue,
            pending_disputes=int(pending_disputes or 0),
        )

    @_translate_db_errors
    async def get_kpis(
        self, db: AsyncSession, period: Optional[str] = None, now: Optional[datetime] = None
    ) -> DashboardKPIs:
        window = resolve_period(period, now)
        previous = window.previous()

        users_now = await self._count_created(db, User, window, inclusive_end=True)
        users_before = await self._count_created(db, User, previous)
        bookings_now = await self._count_created(db, Booking, window, inclusive_end=True)
        bookings_before = await self._count_created(db, Booking, previous)
        revenue_now = await self._revenue(db, window, inclusive_end=True)
        revenue_before = await self._revenue(db, previous)
        average = await self._scalar(db, select(func.avg(Review.rating)))

        return DashboardKPIs(
            period=window.period,
            user_growth=growth_rate(users_now, users_before),
            booking_growth=growth_rate(bookings_now, bookings_before),
            revenue_growth=growth_rate(revenue_now, revenue_before),
            average_rating=round(float(average or 0), 2),
        )

    @_translate_db_errors
    async def get_revenue_chart(
        self, db: AsyncSession, period: Optional[str] = None, now: Optional[datetime] = None
    ) -> List[RevenuePoint]:
        window = resolve_period(period, now)
        day = func.date(Transaction.created_at)
        result = await db.execute(
            select(day.label("day"), func.sum(Transaction.amount).label("revenue"))
            .where(
                Transaction.type == TransactionType.PAYMENT.value,
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.created_at >= window.start,
                Transaction.created_at <= window.end,
            )
            .group_by(day)
            .order_by(day)
        )
        return [
            RevenuePoint(date=_day_key(row.day), revenue=round(float(row.revenue or 0), 2))
            for row in result.all()
        ]

    @_translate_db_errors
    async def get_user_growth(
        self, db: AsyncSession, period: Optional[str] = None, now: Optional[datetime] = None
    ) -> List[UserGrowthPoint]:
        window = resolve_period(period, now)
        return [
            UserGrowthPoint(date=day, users=count)
            for day, count in (await self._daily_counts(db, User, window)).items()
        ]

    @_translate_db_errors
    async def get_booking_stats(
        self, db: AsyncSession, period: Optional[str] = None, now: Optional[datetime] = None
    ) -> List[StatusCount]:
        window = resolve_period(period, now)
        result = await db.execute(
            select(Booking.status, func.count(Booking.id))
            .where(Booking.created_at >= window.start, Booking.created_at <= window.end)
            .group_by(Booking.status)
            .order_by(Booking.status)
        )
        return [StatusCount(status=status, count=int(count)) for status, count in result.all()]

    @_translate_db_errors
    async def get_top_tools(self, db: AsyncSession, limit: int = 10) -> List[TopTool]:
        booking_count = func.count(Booking.id).label("booking_count")
        result = await db.execute(
            select(Tool.id, Tool.title, booking_count)
            .outerjoin(Booking, Booking.tool_id == Tool.id)
            .group_by(Tool.id, Tool.title)
            .order_by(booking_count.desc(), Tool.title)
            .limit(limit)
        )
        return [
            TopTool(id=row.id, title=row.title, booking_count=int(row.booking_count))
            for row in result.all()
        ]

    @_translate_db_errors
    async def get_dispute_overview(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> DisputeOverview:
        now = now or utcnow()

        status_rows = await db.execute(
            select(Dispute.status, func.count(Dispute.id))
            .group_by(Dispute.status)
            .order_by(Dispute.status)
        )
        by_status = [StatusCount(status=s, count=int(c)) for s, c in status_rows.all()]
        counts = {item.status: item.count for item in by_status}

        resolved = await db.execute(
            select(Dispute.created_at, Dispute.resolved_at).where(
                Dispute.status == DisputeStatus.RESOLVED.value,
                Dispute.resolved_at.is_not(None),
            )
        )
        durations = [
            (as_utc(resolved_at) - as_utc(created_at)).total_seconds()
            for created_at, resolved_at in resolved.all()
        ]
        average_days = round(sum(durations) / len(durations) / 86400) if durations else 0

        months = self._last_twelve_months(now)
        first_month = datetime(int(months[0][:4]), int(months[0][5:]), 1, tzinfo=now.tzinfo)
        recent = await db.execute(
            select(Dispute.created_at).where(Dispute.created_at >= first_month)
        )
        monthly = {month: 0 for month in months}
        for (created_at,) in recent.all():
            key = as_utc(created_at).strftime("%Y-%m")
            if key in monthly:
                monthly[key] += 1

        return DisputeOverview(
            total_disputes=sum(counts.values()),
            open_disputes=counts.get(DisputeStatus.PENDING.value, 0),
            resolved_disputes=counts.get(DisputeStatus.RESOLVED.value, 0),
            closed_disputes=counts.get(DisputeStatus.CLOSED.value, 0),
            average_resolution_days=average_days,
            disputes_by_status=by_status,
            monthly_disputes=[MonthlyCount(month=m, count=c) for m, c in monthly.items()],
        )

    @_translate_db_errors
    async def get_recent_activities(self, db: AsyncSession, limit: int = 10) -> List[RecentActivity]:
        result = await db.execute(
            select(UserActivity, User)
            .outerjoin(User, User.id == UserActivity.user_id)
            .order_by(UserActivity.created_at.desc())
            .limit(limit)
        )
        return [
            RecentActivity(
                id=activity.id,
                type=activity.activity_type,
                description=activity.description or "",
                user=ActivityUser(id=user.id, name=user.full_name) if user is not None else None,
                timestamp=as_utc(activity.created_at),
                metadata=activity.activity_metadata,
            )
            for activity, user in result.all()
        ]

    @_translate_db_errors
    async def get_dashboard_data(
        self, db: AsyncSession, period: Optional[str] = None, now: Optional[datetime] = None
    ) -> DashboardData:
        """Overview, KPIs, merged daily chart series and the activity feed in one payload."""
        window = resolve_period(period, now)
        overview = await self.get_overview(db, window.period, window.end)
        kpis = await self.get_kpis(db, window.period, window.end)
        revenue = await self.get_revenue_chart(db, window.period, window.end)
        users = await self.get_user_growth(db, window.period, window.end)
        bookings = await self._daily_counts(db, Booking, window)
        activities = await self.get_recent_activities(db, limit=10)

        revenue_by_day = {p.date: p.revenue for p in revenue}
        users_by_day = {p.date: p.users for p in users}
        days = sorted(set(revenue_by_day) | set(users_by_day) | set(bookings))
        chart = [
            ChartPoint(
                date=day,
                revenue=revenue_by_day.get(day, 0.0),
                reservations=bookings.get(day, 0),
                users=users_by_day.get(day, 0),
            )
            for day in days
        ]

        return DashboardData(
            period=window.period,
            stats=DashboardStats(
                active_users=overview.active_users,
                online_listings=overview.total_tools,
                active_reservations=overview.total_bookings,
                pending_disputes=overview.pending_disputes,
                monthly_revenue=overview.total_revenue,
                growth_percentage=kpis.user_growth,
            ),
            kpis=kpis,
            chart_data=chart,
            recent_activities=activities,
        )

    # ── Query Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _scalar(db: AsyncSession, stmt):
        result = await db.execute(stmt)
        return result.scalar()

    async def _count_created(
        self, db: AsyncSession, model, window: DateWindow, inclusive_end: bool = False
    ) -> int:
        upper = model.created_at <= window.end if inclusive_end else model.created_at < window.end
        value = await self._scalar(
            db, select(func.count(model.id)).where(model.created_at >= window.start, upper)
        )
        return int(value or 0)

    async def _revenue(
        self, db: AsyncSession, window: DateWindow, inclusive_end: bool = False
    ) -> float:
        upper = (
            Transaction.created_at <= window.end
            if inclusive_end
            else Transaction.created_at < window.end
        )
        value = await self._scalar(
            db,
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.type == TransactionType.PAYMENT.value,
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.created_at >= window.start,
                upper,
            ),
        )
        return round(float(value or 0), 2)

    @staticmethod
    async def _daily_counts(db: AsyncSession, model, window: DateWindow) -> Dict[str, int]:
        day = func.date(model.created_at)
        result = await db.execute(
            select(day.label("day"), func.count(model.id).label("total"))
            .where(model.created_at >= window.start, model.created_at <= window.end)
            .group_by(day)
            .order_by(day)
        )
        return {_day_key(row.day): int(row.total) for row in result.all()}

    @staticmethod
    def _last_twelve_months(now: datetime) -> List[str]:
        year, month = now.year, now.month
        months = []
        for _ in range(12):
            months.append(f"{year:04d}-{month:02d}")
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        return list(reversed(months))


dashboard_service = DashboardService()
