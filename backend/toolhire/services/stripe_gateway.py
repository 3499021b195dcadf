"""
ToolHire Backend: Stripe Payment Gateway
==========================================

What:  PaymentGateway implementation that charges deposits through the
       Stripe REST API.
Why:   Renters save a card when they book; the deposit is charged later
       with no user present, as a confirmed off-session PaymentIntent.
How:   Form-encoded POST /payment_intents via httpx, with tenacity retries
       for transport errors and a circuit breaker around the whole call.
Who:   Module singleton used by DepositCaptureService.

Error Handling Chain:
    Transport error / 5xx → tenacity retries (idempotency key keeps the
    retries from double-charging) → all retries fail → circuit breaker
    failure → PaymentGatewayError.
    4xx card errors are provider answers, not outages: they come back as
    DepositCaptureResult(success=False) and do not touch the breaker.
"""

import logging
import time
from typing import Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from toolhire.config import settings
from toolhire.exceptions import PaymentGatewayError
from toolhire.services.circuit_breaker import CircuitBreaker
from toolhire.services.payment_base import (
    DepositCaptureRequest,
    DepositCaptureResult,
    PaymentGateway,
)

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500 or exc.response.status_code == 429
    return False


class StripePaymentGateway(PaymentGateway):
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        secret_key: Optional[str] = None,
    ):
        self._client = client
        self.secret_key = settings.payment_secret_key if secret_key is None else secret_key
        self.circuit_breaker = CircuitBreaker(
            name="payment gateway",
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    async def capture_deposit(self, request: DepositCaptureRequest) -> DepositCaptureResult:
        """
        Charges the deposit immediately against the saved payment method.

        Raises:
            CircuitBreakerOpenError: provider marked down
            PaymentGatewayError: no secret key, or the request failed after retries
        """
        if not self.secret_key:
            raise PaymentGatewayError(
                message="Payment gateway is not configured",
                context={"booking_id": request.booking_id},
            )

        self.circuit_breaker.can_execute()

        form = {
            "amount": str(request.amount_minor_units),
            "currency": request.currency.lower(),
            "customer": request.customer_id,
            "payment_method": request.payment_method_id,
            "confirm": "true",
            "off_session": "true",
            "description": f"Security deposit for booking {request.booking_id}",
            "metadata[booking_id]": request.booking_id,
            "metadata[type]": "deposit_capture",
        }
        for key, value in request.metadata.items():
            form[f"metadata[{key}]"] = value

        start_time = time.perf_counter()
        try:
            response = await self._post_payment_intent(
                form, idempotency_key=f"deposit-{request.booking_id}-{request.attempt}"
            )
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "Deposit capture for booking %s failed after retries: %s",
                request.booking_id,
                type(e).__name__,
            )
            raise PaymentGatewayError(
                message="Payment provider is unreachable",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"booking_id": request.booking_id, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        duration_ms = (time.perf_counter() - start_time) * 1000
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            error = payload.get("error", {}) if isinstance(payload, dict) else {}
            message = error.get("message") or f"HTTP {response.status_code}"
            logger.warning(
                "Deposit capture for booking %s declined in %.0fms: %s",
                request.booking_id,
                duration_ms,
                message,
            )
            return DepositCaptureResult(
                success=False,
                payment_intent_id=(error.get("payment_intent") or {}).get("id"),
                status=error.get("decline_code") or error.get("code"),
                error=message,
            )

        status = payload.get("status")
        logger.info(
            "Deposit capture for booking %s returned %s in %.0fms",
            request.booking_id,
            status,
            duration_ms,
        )
        if status != "succeeded":
            return DepositCaptureResult(
                success=False,
                payment_intent_id=payload.get("id"),
                status=status,
                error=f"Payment not completed. Status: {status}",
            )
        return DepositCaptureResult(success=True, payment_intent_id=payload.get("id"), status=status)

    async def health_check(self) -> bool:
        if not self.secret_key:
            return False
        try:
            response = await self._get_client().get(
                f"{settings.payment_api_url.rstrip('/')}/balance",
                auth=(self.secret_key, ""),
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Payment gateway health check failed: %s", type(e).__name__)
            return False

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=settings.retry_max_wait / 4,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _post_payment_intent(self, form: dict, idempotency_key: str) -> httpx.Response:
        response = await self._get_client().post(
            f"{settings.payment_api_url.rstrip('/')}/payment_intents",
            data=form,
            auth=(self.secret_key, ""),
            headers={"Idempotency-Key": idempotency_key},
        )
        if response.status_code >= 500 or response.status_code == 429:
            response.raise_for_status()
        return response

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.payment_timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


payment_gateway = StripePaymentGateway()
