"""Admin dashboard response models."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DashboardOverview(BaseModel):
    period: str
    total_users: int
    active_users: int = Field(description="Users who logged in during the period")
    total_tools: int
    total_bookings: int = Field(description="Bookings created during the period")
    total_revenue: float = Field(description="Completed payments during the period")
    pending_disputes: int


class DashboardKPIs(BaseModel):
    period: str
    user_growth: float = Field(description="Percent change in new users vs. the previous period")
    booking_growth: float
    revenue_growth: float
    average_rating: float


class RevenuePoint(BaseModel):
    date: str
    revenue: float


class UserGrowthPoint(BaseModel):
    date: str
    users: int


class StatusCount(BaseModel):
    status: str
    count: int


class TopTool(BaseModel):
    id: uuid.UUID
    title: str
    booking_count: int


class MonthlyCount(BaseModel):
    month: str = Field(description="YYYY-MM")
    count: int


class DisputeOverview(BaseModel):
    total_disputes: int
    open_disputes: int
    resolved_disputes: int
    closed_disputes: int
    average_resolution_days: int
    disputes_by_status: List[StatusCount]
    monthly_disputes: List[MonthlyCount]


class ActivityUser(BaseModel):
    id: uuid.UUID
    name: str


class RecentActivity(BaseModel):
    id: uuid.UUID
    type: str
    description: str
    user: Optional[ActivityUser] = None
    timestamp: datetime
    metadata: Optional[dict] = None


class DashboardStats(BaseModel):
    active_users: int
    online_listings: int
    active_reservations: int
    pending_disputes: int
    monthly_revenue: float
    growth_percentage: float


class ChartPoint(BaseModel):
    date: str
    revenue: float
    reservations: int
    users: int


class DashboardData(BaseModel):
    period: str
    stats: DashboardStats
    kpis: DashboardKPIs
    chart_data: List[ChartPoint]
    recent_activities: List[RecentActivity]
