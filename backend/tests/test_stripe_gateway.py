"""
ToolHire Backend: Stripe Gateway Tests (Mocked Transport)
===========================================================

What:  Request shape, declines, retries and breaker accounting of
       StripePaymentGateway.
How:   httpx.MockTransport answers instead of the real API; no money moves.

What we test:
    ✅ Off-session PaymentIntent form with minor units and idempotency key
    ✅ Zero- and three-decimal currencies use their own minor unit
    ✅ Card declines come back as unsuccessful results, breaker untouched
    ✅ Server errors are retried, then raise PaymentGatewayError
    ✅ Missing secret key and open circuit short-circuit the call
"""

from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from toolhire.exceptions import CircuitBreakerOpenError, PaymentGatewayError
from toolhire.services.payment_base import DepositCaptureRequest
from toolhire.services.stripe_gateway import StripePaymentGateway


def capture_request(**overrides) -> DepositCaptureRequest:
    fields = {
        "booking_id": "b-123",
        "amount": Decimal("50.00"),
        "currency": "GBP",
        "customer_id": "cus_1",
        "payment_method_id": "pm_1",
        "attempt": 0,
        "metadata": {"job_id": "j-1"},
    }
    fields.update(overrides)
    return DepositCaptureRequest(**fields)


def gateway_with(handler, secret_key="sk_test") -> StripePaymentGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StripePaymentGateway(client=client, secret_key=secret_key)


class TestCaptureDeposit:
    @pytest.mark.asyncio
    async def test_success_sends_off_session_intent(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "pi_1", "status": "succeeded"})

        gateway = gateway_with(handler)
        result = await gateway.capture_deposit(capture_request(attempt=2))

        assert result.success is True
        assert result.payment_intent_id == "pi_1"
        request = seen[0]
        assert request.url.path.endswith("/payment_intents")
        assert request.headers["Idempotency-Key"] == "deposit-b-123-2"
        form = parse_qs(request.content.decode())
        assert form["amount"] == ["5000"]
        assert form["currency"] == ["gbp"]
        assert form["off_session"] == ["true"]
        assert form["metadata[job_id]"] == ["j-1"]

    @pytest.mark.asyncio
    async def test_three_decimal_currency_amount(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "pi_kw", "status": "succeeded"})

        result = await gateway_with(handler).capture_deposit(
            capture_request(amount=Decimal("10.000"), currency="KWD")
        )

        assert result.success is True
        form = parse_qs(seen[0].content.decode())
        assert form["amount"] == ["10000"]
        assert form["currency"] == ["kwd"]

    @pytest.mark.asyncio
    async def test_card_decline_is_a_result(self):
        def handler(request):
            return httpx.Response(
                402,
                json={
                    "error": {
                        "message": "Your card was declined.",
                        "decline_code": "insufficient_funds",
                        "payment_intent": {"id": "pi_2"},
                    }
                },
            )

        gateway = gateway_with(handler)
        result = await gateway.capture_deposit(capture_request())

        assert result.success is False
        assert result.error == "Your card was declined."
        assert result.status == "insufficient_funds"
        assert result.payment_intent_id == "pi_2"
        assert gateway.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_incomplete_intent_is_unsuccessful(self):
        def handler(request):
            return httpx.Response(200, json={"id": "pi_3", "status": "requires_action"})

        result = await gateway_with(handler).capture_deposit(capture_request())

        assert result.success is False
        assert "requires_action" in result.error

    @pytest.mark.asyncio
    async def test_server_errors_retry_then_raise(self):
        calls = []

        def handler(request):
            calls.append(request.headers["Idempotency-Key"])
            return httpx.Response(500, json={"error": {"message": "boom"}})

        gateway = gateway_with(handler)
        with pytest.raises(PaymentGatewayError):
            await gateway.capture_deposit(capture_request())

        assert len(calls) == 3
        assert len(set(calls)) == 1
        assert gateway.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_missing_secret_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(PaymentGatewayError) as exc_info:
            await gateway_with(handler, secret_key="").capture_deposit(capture_request())
        assert "not configured" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_open_circuit_rejects(self):
        def handler(request):
            raise AssertionError("no request expected")

        gateway = gateway_with(handler)
        for _ in range(gateway.circuit_breaker.failure_threshold):
            gateway.circuit_breaker.record_failure()

        with pytest.raises(CircuitBreakerOpenError):
            await gateway.capture_deposit(capture_request())


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_balance_endpoint_ok(self):
        def handler(request):
            return httpx.Response(200, json={"object": "balance"})

        assert await gateway_with(handler).health_check() is True

    @pytest.mark.asyncio
    async def test_without_key_is_unhealthy(self):
        def handler(request):
            return httpx.Response(200)

        assert await gateway_with(handler, secret_key="").health_check() is False


class TestMinorUnits:
    def test_two_decimal_currency(self):
        assert capture_request(amount=Decimal("12.345"), currency="GBP").amount_minor_units == 1235

    def test_three_decimal_currencies_end_in_zero(self):
        assert capture_request(amount=Decimal("10.000"), currency="KWD").amount_minor_units == 10000
        assert capture_request(amount=Decimal("2.505"), currency="bhd").amount_minor_units == 2510
        assert capture_request(amount=Decimal("7.123"), currency="OMR").amount_minor_units == 7120

    def test_zero_decimal_currency(self):
        assert capture_request(amount=Decimal("5000"), currency="JPY").amount_minor_units == 5000
