"""
ToolHire Backend: Deposit Capture Service
===========================================

What:  Schedules, reminds, charges, retries and cleans up security-deposit
       capture jobs.
Why:   The deposit is charged from the renter's saved card once the rental
       period is over; the job row keeps a durable record of every attempt.
How:   Stateless service over an AsyncSession; the charge itself goes
       through a PaymentGateway (Stripe by default).
Who:   Admin deposit-job routes and the scheduler (hourly reminders and
       captures, daily cleanup).

Timeline for a booking ending on day D:
    D 23:59:59 UTC - reminder_lead_hours   reminder notification recorded
    D 23:59:59 UTC                         capture attempted
    then every run while failed and retry_count < deposit_max_retries

Jobs for bookings that were cancelled or rejected are cancelled instead
of charged. `success` and `cancelled` are terminal; a terminal job is
never selected again, which is what prevents double charges.
"""

import logging
import uuid
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.config import settings
from toolhire.database import utcnow
from toolhire.exceptions import (
    CircuitBreakerOpenError,
    ConflictError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from toolhire.models.booking import (
    Booking,
    BookingStatus,
    DepositCaptureJob,
    DepositCaptureStatus,
    DepositJobStatus,
)
from toolhire.models.tool import Tool
from toolhire.models.transaction import Transaction, TransactionStatus, TransactionType
from toolhire.models.user import Notification
from toolhire.schemas.deposit import (
    CaptureRunSummary,
    CleanupSummary,
    DepositJobResponse,
    ReminderRunSummary,
)
from toolhire.services.payment_base import DepositCaptureRequest, PaymentGateway
from toolhire.services.stripe_gateway import payment_gateway

logger = logging.getLogger(__name__)

TERMINAL_JOB_STATUSES = (DepositJobStatus.SUCCESS.value, DepositJobStatus.CANCELLED.value)
INACTIVE_BOOKING_STATUSES = (BookingStatus.CANCELLED.value, BookingStatus.REJECTED.value)


def capture_time_for(booking: Booking) -> datetime:
    """End of the booking's last rental day, in UTC."""
    return datetime.combine(booking.end_date, time(23, 59, 59), tzinfo=timezone.utc)


class DepositCaptureService:
    def __init__(self, gateway: Optional[PaymentGateway] = None):
        self.gateway = gateway or payment_gateway

    async def schedule_deposit_capture(
        self, db: AsyncSession, booking_id: uuid.UUID
    ) -> DepositJobResponse:
        """
        Creates the capture job for a booking.

        Raises:
            NotFoundError: unknown booking
            ValidationError: booking cancelled/rejected, or no positive deposit
            ConflictError: the booking already has a live job
        """
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(resource="booking", resource_id=str(booking_id))
        if booking.status in INACTIVE_BOOKING_STATUSES:
            raise ValidationError(
                message=f"Cannot schedule a deposit capture for a {booking.status} booking",
                field="booking_id",
            )

        if not booking.deposit_amount or booking.deposit_amount <= 0:
            tool = await db.get(Tool, booking.tool_id)
            if tool is not None:
                booking.deposit_amount = tool.deposit_amount
        if not booking.deposit_amount or Decimal(booking.deposit_amount) <= 0:
            raise ValidationError(
                message="Booking has no security deposit to capture",
                field="deposit_amount",
            )

        existing = await db.execute(
            select(DepositCaptureJob.id).where(
                DepositCaptureJob.booking_id == booking.id,
                DepositCaptureJob.status.not_in(TERMINAL_JOB_STATUSES),
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                message="A deposit capture job already exists for this booking",
                context={"booking_id": str(booking.id)},
            )

        scheduled_at = capture_time_for(booking)
        reminder_at = scheduled_at - timedelta(hours=settings.deposit_reminder_lead_hours)
        job = DepositCaptureJob(
            booking_id=booking.id,
            scheduled_at=scheduled_at,
            status=DepositJobStatus.SCHEDULED.value,
            retry_count=0,
            job_metadata={
                "deposit_amount": str(booking.deposit_amount),
                "currency": booking.currency_code,
                "reminder_at": reminder_at.isoformat(),
            },
        )
        db.add(job)
        booking.deposit_capture_status = DepositCaptureStatus.SCHEDULED.value
        await db.flush()

        logger.info(
            "Deposit capture scheduled for booking %s at %s (%s %s)",
            booking.id,
            scheduled_at.isoformat(),
            booking.deposit_amount,
            booking.currency_code,
        )
        return DepositJobResponse.model_validate(job)

    async def process_deposit_reminders(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> ReminderRunSummary:
        """Records an in-app reminder for every scheduled job entering its lead window."""
        now = now or utcnow()
        horizon = now + timedelta(hours=settings.deposit_reminder_lead_hours)
        result = await db.execute(
            select(DepositCaptureJob, Booking)
            .join(Booking, Booking.id == DepositCaptureJob.booking_id)
            .where(
                DepositCaptureJob.status == DepositJobStatus.SCHEDULED.value,
                DepositCaptureJob.scheduled_at <= horizon,
            )
            .order_by(DepositCaptureJob.scheduled_at)
        )

        summary = ReminderRunSummary()
        for job, booking in result.all():
            if booking.status in INACTIVE_BOOKING_STATUSES:
                self._cancel(job, booking, f"Booking {booking.status}")
                summary.cancelled += 1
                continue

            db.add(
                Notification(
                    user_id=booking.renter_id,
                    type="deposit_reminder",
                    title="Security deposit reminder",
                    message=(
                        f"Your security deposit of {booking.deposit_amount} "
                        f"{booking.currency_code} will be charged on "
                        f"{job.scheduled_at:%Y-%m-%d}."
                    ),
                    related_id=str(booking.id),
                    related_type="booking",
                    link=f"/bookings/{booking.id}",
                    is_system=True,
                )
            )
            job.status = DepositJobStatus.NOTIFICATION_SENT.value
            job.notification_sent_at = now
            booking.deposit_notification_sent_at = now
            summary.reminded += 1

        await db.flush()
        if summary.reminded or summary.cancelled:
            logger.info(
                "Deposit reminders: %d sent, %d jobs cancelled",
                summary.reminded,
                summary.cancelled,
            )
        return summary

    async def process_deposit_captures(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> CaptureRunSummary:
        """Charges every due job, including failed jobs that still have retries left."""
        now = now or utcnow()
        result = await db.execute(
            select(DepositCaptureJob, Booking)
            .join(Booking, Booking.id == DepositCaptureJob.booking_id)
            .where(
                DepositCaptureJob.scheduled_at <= now,
                or_(
                    DepositCaptureJob.status.in_(
                        [DepositJobStatus.SCHEDULED.value, DepositJobStatus.NOTIFICATION_SENT.value]
                    ),
                    and_(
                        DepositCaptureJob.status == DepositJobStatus.FAILED.value,
                        DepositCaptureJob.retry_count < settings.deposit_max_retries,
                    ),
                ),
            )
            .order_by(DepositCaptureJob.scheduled_at)
        )

        summary = CaptureRunSummary()
        for job, booking in result.all():
            summary.processed += 1
            if booking.status in INACTIVE_BOOKING_STATUSES:
                self._cancel(job, booking, f"Booking {booking.status}")
                summary.cancelled += 1
                continue

            if await self._capture(db, job, booking, now):
                summary.succeeded += 1
            else:
                summary.failed += 1
            await db.flush()

        await db.flush()
        if summary.processed:
            logger.info(
                "Deposit captures: %d processed, %d succeeded, %d failed, %d cancelled",
                summary.processed,
                summary.succeeded,
                summary.failed,
                summary.cancelled,
            )
        return summary

    async def cancel_jobs_for_booking(self, db: AsyncSession, booking_id: uuid.UUID) -> int:
        result = await db.execute(
            update(DepositCaptureJob)
            .where(
                DepositCaptureJob.booking_id == booking_id,
                DepositCaptureJob.status.not_in(TERMINAL_JOB_STATUSES),
            )
            .values(status=DepositJobStatus.CANCELLED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            await db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(deposit_capture_status=DepositCaptureStatus.CANCELLED.value)
                .execution_options(synchronize_session=False)
            )
            logger.info("Cancelled %d deposit job(s) for booking %s", result.rowcount, booking_id)
        return result.rowcount or 0

    async def cleanup_old_jobs(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> CleanupSummary:
        now = now or utcnow()
        cutoff = now - timedelta(days=settings.deposit_cleanup_age_days)
        result = await db.execute(
            delete(DepositCaptureJob)
            .where(
                DepositCaptureJob.status.in_(TERMINAL_JOB_STATUSES),
                DepositCaptureJob.updated_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0
        logger.info("Deposit job cleanup removed %d job(s) older than %s", deleted, cutoff.date())
        return CleanupSummary(deleted=deleted)

    async def list_jobs(
        self, db: AsyncSession, status: Optional[str] = None, limit: int = 100
    ) -> List[DepositJobResponse]:
        query = select(DepositCaptureJob).order_by(DepositCaptureJob.scheduled_at.desc()).limit(limit)
        if status is not None:
            valid = {s.value for s in DepositJobStatus}
            if status not in valid:
                raise ValidationError(
                    message=f"Invalid status '{status}'. Must be one of: {sorted(valid)}",
                    field="status",
                )
            query = query.where(DepositCaptureJob.status == status)
        result = await db.execute(query)
        return [DepositJobResponse.model_validate(job) for job in result.scalars().all()]

    # ── Internals ─────────────────────────────────────────────────────────

    async def _capture(
        self, db: AsyncSession, job: DepositCaptureJob, booking: Booking, now: datetime
    ) -> bool:
        if not booking.payment_customer_id or not booking.deposit_payment_method_id:
            self._mark_failed(job, booking, "Missing saved payment method for deposit capture")
            return False

        job.status = DepositJobStatus.CAPTURING.value
        job.capture_attempted_at = now
        await db.flush()

        request = DepositCaptureRequest(
            booking_id=str(booking.id),
            amount=Decimal(booking.deposit_amount),
            currency=booking.currency_code,
            customer_id=booking.payment_customer_id,
            payment_method_id=booking.deposit_payment_method_id,
            attempt=job.retry_count,
            metadata={"job_id": str(job.id)},
        )
        try:
            result = await self.gateway.capture_deposit(request)
        except (PaymentGatewayError, CircuitBreakerOpenError) as e:
            self._mark_failed(job, booking, e.message)
            return False
        except Exception as e:
            # Fail this job only; the rest of the run still gets charged
            logger.error(
                "Unexpected gateway error for booking %s: %s", booking.id, e, exc_info=True
            )
            self._mark_failed(job, booking, f"Unexpected gateway error: {type(e).__name__}")
            return False

        if not result.success:
            self._mark_failed(job, booking, result.error or "Deposit capture declined")
            return False

        job.status = DepositJobStatus.SUCCESS.value
        job.last_error = None
        job.job_metadata = {**(job.job_metadata or {}), "payment_intent_id": result.payment_intent_id}
        booking.deposit_capture_status = DepositCaptureStatus.SUCCESS.value
        booking.deposit_captured_at = now
        booking.deposit_failure_reason = None
        db.add(
            Transaction(
                amount=booking.deposit_amount,
                type=TransactionType.DEPOSIT.value,
                status=TransactionStatus.COMPLETED.value,
                sender_id=booking.renter_id,
                recipient_id=booking.owner_id,
                booking_id=booking.id,
                description=f"Security deposit captured for booking {booking.id}",
                external_reference=result.payment_intent_id,
                processed_at=now,
            )
        )
        logger.info("Deposit captured for booking %s (%s)", booking.id, result.payment_intent_id)
        return True

    @staticmethod
    def _mark_failed(job: DepositCaptureJob, booking: Booking, reason: str) -> None:
        job.status = DepositJobStatus.FAILED.value
        job.retry_count = (job.retry_count or 0) + 1
        job.last_error = reason
        booking.deposit_capture_status = DepositCaptureStatus.FAILED.value
        booking.deposit_failure_reason = reason
        level = logging.ERROR if job.retry_count >= settings.deposit_max_retries else logging.WARNING
        logger.log(
            level,
            "Deposit capture failed for booking %s (attempt %d/%d): %s",
            booking.id,
            job.retry_count,
            settings.deposit_max_retries,
            reason,
        )

    @staticmethod
    def _cancel(job: DepositCaptureJob, booking: Booking, reason: str) -> None:
        job.status = DepositJobStatus.CANCELLED.value
        job.last_error = reason
        booking.deposit_capture_status = DepositCaptureStatus.CANCELLED.value


deposit_capture_service = DepositCaptureService()
