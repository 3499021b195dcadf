"""
ToolHire Backend: Health Check Route
======================================

What:  Liveness/readiness probe for Docker and load balancers.
How:   SELECT 1 against the database, plus the in-process state of the
       circuit breakers and the scheduler. No outbound HTTP calls, so a
       probe every few seconds costs nothing upstream.

Status levels:
    healthy    database reachable, breakers closed, scheduler as configured
    degraded   an outbound breaker is open or the scheduler is not running;
               cached and stored rates still serve requests
    unhealthy  database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from toolhire import __version__, scheduler
from toolhire.config import settings
from toolhire.database import engine
from toolhire.schemas.common import HealthResponse
from toolhire.services.circuit_breaker import CircuitBreaker
from toolhire.services.exchange_rate_service import exchange_rate_service
from toolhire.services.stripe_gateway import payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    overall = "healthy"

    db_status = "connected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    rates_state = exchange_rate_service.circuit_breaker.state
    payments_state = payment_gateway.circuit_breaker.state
    scheduler_state = "running" if scheduler.is_running() else "stopped"

    degraded = (
        rates_state == CircuitBreaker.OPEN
        or payments_state == CircuitBreaker.OPEN
        or (settings.scheduler_enabled and scheduler_state != "running")
    )
    if degraded and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        exchange_rates=rates_state,
        payments=payments_state,
        scheduler=scheduler_state,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
