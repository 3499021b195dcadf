"""
ToolHire Backend: Shared Pydantic Schemas
===========================================

What:  Response models shared by every router: the success envelope,
       the error body and the health report.
Why:   One definition of each contract keeps the OpenAPI docs and the
       global exception handlers in agreement.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """
    Success envelope: `{"data": ..., "message": ...}`.

    The marketplace frontend reads `data` from every JSON response, so
    routes wrap their payloads in this rather than returning them bare.
    """
    data: T
    message: Optional[str] = Field(default=None, description="Human-readable summary")


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "exchange_rate_unavailable",
            "message": "Exchange rate from GBP to XYZ is currently unavailable",
            "details": {"from_currency": "GBP", "to_currency": "XYZ"},
            "request_id": "1f2e3d4c"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    exchange_rates: str = Field(description="Exchange-rate API circuit: closed, open, half_open")
    payments: str = Field(description="Payment gateway circuit: closed, open, half_open")
    scheduler: str = Field(description="Background scheduler: running, stopped")
    uptime_seconds: float = Field(description="Seconds since service started")
