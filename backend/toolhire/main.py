"""
ToolHire Backend: FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       lifespan() starts logging and the job scheduler, and releases the
       HTTP clients and database pool on shutdown.
Who:   uvicorn (`uvicorn toolhire.main:app`) and the test client.

Application Layout:
    Middleware (execution order):
        RateLimit → RequestID → Logging → GZip → CORS
    Routers:
        /health                         service health
        /api/exchange-rates             rates, bulk, conversion, cache admin
        /api/currencies                 currency catalogue
        /api/tools                      catalogue with display prices
        /api/admin/dashboard            platform statistics
        /api/admin/users                user admin and account deletion
        /api/admin/deposit-jobs         deposit capture jobs
    Errors:
        ToolHireError subclasses → {"error", "message", "details", "request_id"}
        anything else            → generic 500, traceback logged

Lifecycle:
    Startup:  logging → configuration report → scheduler (if enabled)
    Shutdown: scheduler → outbound HTTP clients → database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from toolhire import __version__
from toolhire.config import settings
from toolhire.database import dispose_engine
from toolhire.exceptions import (
    CircuitBreakerOpenError,
    DatabaseError,
    ExternalServiceError,
    RateLimitExceededError,
    ToolHireError,
    ValidationError,
)
from toolhire.middleware.logging import RequestLoggingMiddleware
from toolhire.middleware.rate_limit import RateLimitMiddleware
from toolhire.middleware.request_id import RequestIDMiddleware, request_id_var
from toolhire.routes import (
    admin_dashboard,
    admin_deposits,
    admin_users,
    currencies,
    exchange_rates,
    health,
    tools,
)
from toolhire.scheduler import start_scheduler, stop_scheduler
from toolhire.services.exchange_rate_service import exchange_rate_service
from toolhire.services.stripe_gateway import payment_gateway

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: 2025-01-15T12:00:00 [INFO] toolhire.services.deposit_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every request or statement at INFO/DEBUG
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("ToolHire Backend %s starting up...", __version__)

    # Missing keys degrade features (live rates, deposit capture, admin API)
    # but the service still answers health checks and cached rates
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    if settings.scheduler_enabled:
        start_scheduler()
    else:
        logger.info("Scheduler disabled; background jobs will not run")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("ToolHire Backend shutting down...")
    stop_scheduler()
    await exchange_rate_service.aclose()
    await payment_gateway.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(exc: ToolHireError, message: str = None, details: bool = True) -> dict:
    body = {
        "error": exc.error_code,
        "message": message or exc.message,
        "request_id": request_id_var.get(""),
    }
    if details and exc.context:
        body["details"] = exc.context
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy onto HTTP responses.

        ValidationError          → 400
        AuthorizationError       → 403
        NotFoundError            → 404
        ConflictError            → 409
        RateLimitExceededError   → 429 + Retry-After
        PaymentGatewayError      → 502 (+ Retry-After when known)
        ExternalServiceError     → 503 (+ Retry-After when known)
        CircuitBreakerOpenError  → 503 + Retry-After
        DatabaseError            → 500, generic message
        Exception                → 500, generic message

    Internal details (SQL, stack traces) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(ExternalServiceError)
    async def handle_external_service(request: Request, exc: ExternalServiceError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else {}
        return JSONResponse(
            status_code=exc.status_code, content=_error_body(exc), headers=headers
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                exc, message="An internal error occurred. Please try again later.", details=False
            ),
        )

    @app.exception_handler(ToolHireError)
    async def handle_application_error(request: Request, exc: ToolHireError):
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="ToolHire API",
        description=(
            "Tool rental marketplace backend: multi-currency pricing, admin "
            "dashboard, account administration and security-deposit capture."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware runs in reverse order of addition: RateLimit executes first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(exchange_rates.router)
    app.include_router(currencies.router)
    app.include_router(tools.router)
    app.include_router(admin_dashboard.router)
    app.include_router(admin_users.router)
    app.include_router(admin_deposits.router)

    return app


app = create_app()
