"""
ToolHire Backend: Admin Dashboard Routes
==========================================

Read-only statistics for the admin console. Every route takes an optional
`period` (7d, 30d, 90d, 1y); unknown values fall back to 30d.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.database import get_db_session
from toolhire.routes.dependencies import require_admin
from toolhire.schemas.common import DataResponse
from toolhire.schemas.dashboard import (
    DashboardData,
    DashboardKPIs,
    DashboardOverview,
    DisputeOverview,
    RecentActivity,
    RevenuePoint,
    StatusCount,
    TopTool,
    UserGrowthPoint,
)
from toolhire.services.dashboard_service import dashboard_service

router = APIRouter(
    prefix="/api/admin/dashboard",
    tags=["Admin Dashboard"],
    dependencies=[Depends(require_admin)],
)

PeriodQuery = Query(default=None, description="7d, 30d, 90d or 1y")


@router.get("", response_model=DataResponse[DashboardData], summary="Dashboard in one payload")
async def get_dashboard(
    period: Optional[str] = PeriodQuery,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[DashboardData]:
    return DataResponse(data=await dashboard_service.get_dashboard_data(db, period))


@router.get("/overview", response_model=DataResponse[DashboardOverview])
async def get_overview(
    period: Optional[str] = PeriodQuery,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[DashboardOverview]:
    return DataResponse(data=await dashboard_service.get_overview(db, period))


@router.get("/kpis", response_model=DataResponse[DashboardKPIs])
async def get_kpis(
    period: Optional[str] = PeriodQuery,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[DashboardKPIs]:
    return DataResponse(data=await dashboard_service.get_kpis(db, period))


@router.get("/revenue", response_model=DataResponse[List[RevenuePoint]])
async def get_revenue_chart(
    period: Optional[str] = PeriodQuery,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[RevenuePoint]]:
    return DataResponse(data=await dashboard_service.get_revenue_chart(db, period))


@router.get("/user-growth", response_model=DataResponse[List[UserGrowthPoint]])
async def get_user_growth(
    period: Optional[str] = PeriodQuery,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[UserGrowthPoint]]:
    return DataResponse(data=await dashboard_service.get_user_growth(db, period))


@router.get("/bookings", response_model=DataResponse[List[StatusCount]])
async def get_booking_stats(
    period: Optional[str] = PeriodQuery,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[StatusCount]]:
    return DataResponse(data=await dashboard_service.get_booking_stats(db, period))


@router.get("/top-tools", response_model=DataResponse[List[TopTool]])
async def get_top_tools(
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[TopTool]]:
    return DataResponse(data=await dashboard_service.get_top_tools(db, limit=limit))


@router.get("/disputes", response_model=DataResponse[DisputeOverview])
async def get_dispute_overview(
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[DisputeOverview]:
    return DataResponse(data=await dashboard_service.get_dispute_overview(db))


@router.get("/activities", response_model=DataResponse[List[RecentActivity]])
async def get_recent_activities(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[RecentActivity]]:
    return DataResponse(data=await dashboard_service.get_recent_activities(db, limit=limit))
