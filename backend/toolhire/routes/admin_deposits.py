"""
ToolHire Backend: Admin Deposit Capture Routes
================================================

GET  /api/admin/deposit-jobs?status=          list jobs, newest capture time first
POST /api/admin/deposit-jobs/run              run reminders and captures now
POST /api/admin/bookings/{id}/deposit-job     schedule the job for a booking
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.database import get_db_session
from toolhire.routes.dependencies import require_admin
from toolhire.schemas.common import DataResponse, ErrorResponse
from toolhire.schemas.deposit import DepositJobResponse, DepositRunResponse
from toolhire.services.deposit_service import deposit_capture_service

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin Deposits"],
    dependencies=[Depends(require_admin)],
)


@router.get("/deposit-jobs", response_model=DataResponse[List[DepositJobResponse]])
async def list_deposit_jobs(
    job_status: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[DepositJobResponse]]:
    jobs = await deposit_capture_service.list_jobs(db, status=job_status, limit=limit)
    return DataResponse(data=jobs)


@router.post("/deposit-jobs/run", response_model=DataResponse[DepositRunResponse])
async def run_deposit_jobs(
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[DepositRunResponse]:
    reminders = await deposit_capture_service.process_deposit_reminders(db)
    captures = await deposit_capture_service.process_deposit_captures(db)
    return DataResponse(
        data=DepositRunResponse(reminders=reminders, captures=captures),
        message=f"{captures.succeeded} deposit(s) captured",
    )


@router.post(
    "/bookings/{booking_id}/deposit-job",
    response_model=DataResponse[DepositJobResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Booking not found", "model": ErrorResponse},
        409: {"description": "Booking already has a live job", "model": ErrorResponse},
    },
)
async def schedule_deposit_job(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[DepositJobResponse]:
    job = await deposit_capture_service.schedule_deposit_capture(db, booking_id)
    return DataResponse(data=job, message="Deposit capture scheduled")
