"""
ToolHire Backend: Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for the different failure scenarios.
Why:   Each exception maps to one HTTP status code and a stable error code,
       so services never deal with HTTP and clients get a consistent body.
How:   Each exception carries a user-facing message and a context dict.
       Global handlers in main.py turn them into JSON error responses.
Who:   Raised by services, middleware and route dependencies.

Exception Hierarchy:
    ToolHireError (base)                   → 500
    ├── ValidationError                    → 400 Bad Request
    ├── AuthorizationError                 → 403 Forbidden
    ├── NotFoundError                      → 404 Not Found
    ├── ConflictError                      → 409 Conflict
    ├── RateLimitExceededError             → 429 Too Many Requests
    ├── ExternalServiceError               → 503 Service Unavailable
    │   ├── ExchangeRateUnavailableError   → 503
    │   └── PaymentGatewayError            → 502 Bad Gateway
    ├── CircuitBreakerOpenError            → 503 Service Unavailable
    └── DatabaseError                      → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class ToolHireError(Exception):
    """
    Base exception for all ToolHire application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info; returned only by handlers that opt in
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ToolHireError):
    """
    Raised when client input fails a business rule.

    Pydantic schema failures stay FastAPI's 422; this is for rules the
    services check themselves (currency code shape, non-positive deposit).
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthorizationError(ToolHireError):
    """Raised when an admin route is called without a valid admin token."""

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "Admin access is required for this operation",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(ToolHireError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that None
    into this exception so the handler can answer 404.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(ToolHireError):
    """Raised when a write would duplicate an existing record."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExternalServiceError(ToolHireError):
    """
    Raised when an upstream HTTP service fails after all retries.

    Response includes retry_after (seconds) when the caller knows how long
    the upstream needs, typically the circuit breaker recovery window.
    """

    status_code = 503
    error_code = "external_service_error"

    def __init__(
        self,
        message: str = "An external service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class ExchangeRateUnavailableError(ExternalServiceError):
    """
    Raised when no source in the fallback chain can supply a rate.

    Live API, USD cross-rate, stored rates and the default table all came
    up empty for the pair.
    """

    error_code = "exchange_rate_unavailable"

    def __init__(
        self,
        from_currency: str,
        to_currency: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx.update(from_currency=from_currency, to_currency=to_currency)
        super().__init__(
            message=(
                f"Exchange rate from {from_currency} to {to_currency} "
                f"is currently unavailable"
            ),
            context=ctx,
        )
        self.from_currency = from_currency
        self.to_currency = to_currency


class PaymentGatewayError(ExternalServiceError):
    """Raised when the payment provider rejects or fails a charge."""

    status_code = 502
    error_code = "payment_gateway_error"

    def __init__(
        self,
        message: str = "The payment provider could not process the request",
        decline_code: Optional[str] = None,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if decline_code:
            ctx["decline_code"] = decline_code
        super().__init__(message=message, retry_after=retry_after, context=ctx)
        self.decline_code = decline_code


class CircuitBreakerOpenError(ToolHireError):
    """
    Raised when a circuit breaker is in OPEN state.

    How the circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After threshold failures → OPEN (reject calls for recovery window)
        → After the window → HALF-OPEN (allow one test call)
        → Test succeeds → CLOSED; test fails → OPEN again
    """

    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        recovery_time: int = 60,
        service: str = "external service",
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"The {service} is temporarily unavailable due to repeated failures. "
            f"Calls resume in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
        self.service = service


class DatabaseError(ToolHireError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the original
    exception type goes into context and the server log only.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(ToolHireError):
    """Raised when a client exceeds the per-IP request rate limit."""

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
