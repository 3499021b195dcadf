"""
ToolHire Backend: Background Job Scheduler
============================================

What:  APScheduler setup for the platform's recurring jobs.
How:   AsyncIOScheduler on the application's event loop. Each job opens
       its own session_scope, so one run commits or rolls back as a unit.
Who:   Started and stopped by the FastAPI lifespan in main.py.

Jobs:
    exchange_rate_refresh   hourly at :MM       re-resolve every active pair
    deposit_reminders       every N minutes     in-app reminder before capture
    deposit_captures        every N minutes     charge due deposits, retry failures
    deposit_job_cleanup     daily at HH:00      drop old success/cancelled jobs
"""

import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from toolhire.config import settings
from toolhire.database import session_scope
from toolhire.services.deposit_service import deposit_capture_service
from toolhire.services.exchange_rate_service import exchange_rate_service

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None


async def refresh_exchange_rates() -> None:
    await exchange_rate_service.refresh_all_rates()


async def send_deposit_reminders() -> None:
    async with session_scope() as db:
        await deposit_capture_service.process_deposit_reminders(db)


async def capture_due_deposits() -> None:
    async with session_scope() as db:
        await deposit_capture_service.process_deposit_captures(db)


async def cleanup_deposit_jobs() -> None:
    async with session_scope() as db:
        await deposit_capture_service.cleanup_old_jobs(db)


def job_listener(event) -> None:
    if event.exception:
        logger.error("Scheduled job '%s' failed: %s", event.job_id, event.exception)
    else:
        logger.debug("Scheduled job '%s' completed", event.job_id)


def create_scheduler() -> AsyncIOScheduler:
    new_scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
    new_scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    new_scheduler.add_job(
        refresh_exchange_rates,
        CronTrigger(minute=settings.exchange_rate_refresh_minute),
        id="exchange_rate_refresh",
        name="Exchange Rate Refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    new_scheduler.add_job(
        send_deposit_reminders,
        IntervalTrigger(minutes=settings.deposit_job_interval_minutes),
        id="deposit_reminders",
        name="Deposit Reminders",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    new_scheduler.add_job(
        capture_due_deposits,
        IntervalTrigger(minutes=settings.deposit_job_interval_minutes),
        id="deposit_captures",
        name="Deposit Captures",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    new_scheduler.add_job(
        cleanup_deposit_jobs,
        CronTrigger(hour=settings.deposit_cleanup_hour, minute=0),
        id="deposit_job_cleanup",
        name="Deposit Job Cleanup",
        replace_existing=True,
    )
    return new_scheduler


def start_scheduler() -> AsyncIOScheduler:
    global scheduler
    if scheduler is None:
        scheduler = create_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info(
            "Scheduler started with jobs: %s",
            ", ".join(job.id for job in scheduler.get_jobs()),
        )
    return scheduler


def stop_scheduler() -> None:
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None


def is_running() -> bool:
    return scheduler is not None and scheduler.running
