"""
ToolHire Backend: Exchange Rate Service Tests
===============================================

What:  Cache, resolution chain, fallbacks and refresh of ExchangeRateService.
How:   Real in-memory SQLite for stored rates; httpx.MockTransport stands in
       for the rate provider, so no network calls are made.

What we test:
    ✅ Identity pairs and malformed codes
    ✅ Live rates are cached and upserted; cache expiry re-resolves
    ✅ USD cross-rate, stored (direct and inverse), default table
    ✅ Last stored rate as the final fallback; unavailable pairs raise
    ✅ Database outages fall back to the default table
    ✅ Provider outages fall through after retries and trip the breaker
    ✅ Zero rates are ignored; unstorable live rates are still served
    ✅ Conversion rounding, bulk rates, cache stats, scheduled refresh
"""

import time
from contextlib import asynccontextmanager
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from toolhire.exceptions import DatabaseError, ExchangeRateUnavailableError, ValidationError
from toolhire.models import Currency, ExchangeRate
from toolhire.services.exchange_rate_service import DEFAULT_RATES, ExchangeRateService


def provider(rates_by_base, status_code=200, calls=None):
    """MockTransport handler answering /latest/{BASE} like the rate provider."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        if status_code != 200:
            return httpx.Response(status_code, json={"result": "error"})
        base = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(
            200,
            json={"result": "success", "base_code": base, "conversion_rates": rates_by_base.get(base, {})},
        )

    return handler


def live_service(handler, **kwargs) -> ExchangeRateService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExchangeRateService(client=client, api_key="test-key", **kwargs)


class TestRateLookup:
    @pytest.mark.asyncio
    async def test_same_currency_is_identity(self, db_session):
        result = await ExchangeRateService(api_key="").get_exchange_rate(db_session, "gbp", "GBP")

        assert result.rate == 1.0
        assert result.source == "identity"

    @pytest.mark.asyncio
    async def test_malformed_code_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await ExchangeRateService(api_key="").get_exchange_rate(db_session, "GB", "USD")
        assert exc_info.value.field == "from"

    @pytest.mark.asyncio
    async def test_live_rate_cached_and_stored(self, db_session):
        calls = []
        service = live_service(provider({"GBP": {"SAR": 4.71}}, calls=calls))

        first = await service.get_exchange_rate(db_session, "GBP", "SAR")
        second = await service.get_exchange_rate(db_session, "GBP", "SAR")

        assert first.source == "live"
        assert first.rate == 4.71
        assert second.source == "cache"
        assert second.rate == 4.71
        assert len(calls) == 1

        stored = (
            await db_session.execute(
                select(ExchangeRate).where(
                    ExchangeRate.from_currency_code == "GBP",
                    ExchangeRate.to_currency_code == "SAR",
                )
            )
        ).scalar_one()
        assert stored.rate == Decimal("4.71")

    @pytest.mark.asyncio
    async def test_live_rate_updates_existing_row(self, db_session):
        db_session.add(ExchangeRate(from_currency_code="GBP", to_currency_code="EUR", rate=Decimal("1.1")))
        await db_session.flush()
        service = live_service(provider({"GBP": {"EUR": 1.17}}))

        await service.get_exchange_rate(db_session, "GBP", "EUR")

        rows = (await db_session.execute(select(ExchangeRate))).scalars().all()
        assert len(rows) == 1
        assert rows[0].rate == Decimal("1.17")

    @pytest.mark.asyncio
    async def test_expired_cache_is_not_served(self, db_session):
        calls = []
        service = live_service(provider({"GBP": {"USD": 1.27}}, calls=calls), cache_ttl=0)

        await service.get_exchange_rate(db_session, "GBP", "USD")
        result = await service.get_exchange_rate(db_session, "GBP", "USD")

        assert result.source == "live"
        assert len(calls) == 2


class TestFallbackChain:
    def setup_method(self):
        self.service = ExchangeRateService(api_key="")

    @pytest.mark.asyncio
    async def test_cross_rate_through_usd(self, db_session):
        result = await self.service.get_exchange_rate(db_session, "GBP", "SAR")

        assert result.source == "cross_rate"
        assert result.rate == pytest.approx(DEFAULT_RATES["USD"]["SAR"] / DEFAULT_RATES["USD"]["GBP"])

    @pytest.mark.asyncio
    async def test_usd_pair_uses_stored_rate(self, db_session):
        db_session.add(ExchangeRate(from_currency_code="GBP", to_currency_code="USD", rate=Decimal("1.3")))
        await db_session.flush()

        result = await self.service.get_exchange_rate(db_session, "GBP", "USD")

        assert result.source == "database"
        assert result.rate == 1.3

    @pytest.mark.asyncio
    async def test_inverse_stored_rate(self, db_session):
        db_session.add(ExchangeRate(from_currency_code="USD", to_currency_code="EUR", rate=Decimal("0.8")))
        await db_session.flush()

        result = await self.service.get_exchange_rate(db_session, "EUR", "USD")

        assert result.source == "database_inverse"
        assert result.rate == pytest.approx(1.25)

    @pytest.mark.asyncio
    async def test_default_table(self, db_session):
        result = await self.service.get_exchange_rate(db_session, "GBP", "USD")

        assert result.source == "default"
        assert result.rate == DEFAULT_RATES["GBP"]["USD"]

    @pytest.mark.asyncio
    async def test_inactive_stored_rate_is_last_resort(self, db_session):
        db_session.add(Currency(code="JPY", name="Japanese Yen", symbol="¥"))
        await db_session.flush()
        db_session.add(
            ExchangeRate(
                from_currency_code="JPY", to_currency_code="USD", rate=Decimal("0.0067"), is_active=False
            )
        )
        await db_session.flush()

        result = await self.service.get_exchange_rate(db_session, "JPY", "USD")

        assert result.source == "stored"
        assert result.rate == pytest.approx(0.0067)

    @pytest.mark.asyncio
    async def test_unknown_pair_unavailable(self, db_session):
        with pytest.raises(ExchangeRateUnavailableError) as exc_info:
            await self.service.get_exchange_rate(db_session, "XYZ", "USD")
        assert exc_info.value.context["from_currency"] == "XYZ"

    @pytest.mark.asyncio
    async def test_database_outage_falls_back_to_default_table(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        result = await self.service.get_exchange_rate(mock_db_session, "GBP", "USD")

        assert result.source == "default"
        assert result.rate == DEFAULT_RATES["GBP"]["USD"]

    @pytest.mark.asyncio
    async def test_database_outage_without_default_is_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.get_exchange_rate(mock_db_session, "XYZ", "USD")


class TestProviderFailures:
    @pytest.mark.asyncio
    async def test_server_errors_retry_then_fall_through(self, db_session):
        calls = []
        service = live_service(provider({}, status_code=503, calls=calls))

        result = await service.get_exchange_rate(db_session, "GBP", "USD")

        assert result.source == "default"
        assert len(calls) == 3
        assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_skips_provider(self, db_session):
        calls = []
        service = live_service(provider({"GBP": {"USD": 1.27}}, calls=calls))
        service.circuit_breaker.state = service.circuit_breaker.OPEN
        service.circuit_breaker.last_failure_time = time.time()

        result = await service.get_exchange_rate(db_session, "GBP", "USD")

        assert result.source == "default"
        assert calls == []

    @pytest.mark.asyncio
    async def test_provider_error_payload_falls_through(self, db_session):
        def handler(request):
            return httpx.Response(200, json={"result": "error", "error-type": "invalid-key"})

        result = await live_service(handler).get_exchange_rate(db_session, "GBP", "USD")

        assert result.source == "default"

    @pytest.mark.asyncio
    async def test_zero_live_rate_is_ignored(self, db_session):
        service = live_service(provider({"GBP": {"USD": 0}}))

        result = await service.get_exchange_rate(db_session, "GBP", "USD")

        assert result.source == "default"
        assert result.rate == DEFAULT_RATES["GBP"]["USD"]
        assert (await db_session.execute(select(ExchangeRate))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_live_rate_served_when_it_cannot_be_stored(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
        service = live_service(provider({"GBP": {"USD": 1.27}}))

        first = await service.get_exchange_rate(mock_db_session, "GBP", "USD")
        second = await service.get_exchange_rate(mock_db_session, "GBP", "USD")

        assert first.source == "live"
        assert first.rate == 1.27
        assert second.source == "cache"


class TestConversionAndBulk:
    def setup_method(self):
        self.service = ExchangeRateService(api_key="")

    @pytest.mark.asyncio
    async def test_convert_rounds_to_two_places(self, db_session):
        db_session.add(ExchangeRate(from_currency_code="GBP", to_currency_code="USD", rate=Decimal("1.23456789")))
        await db_session.flush()

        result = await self.service.convert_currency(db_session, 10, "GBP", "USD")

        assert result.converted_amount == 12.35
        assert result.rate == pytest.approx(1.23456789)

    @pytest.mark.asyncio
    async def test_bulk_covers_active_currencies(self, db_session):
        result = await self.service.get_bulk_exchange_rates(db_session, "GBP")

        assert result.base_currency == "GBP"
        assert set(result.rates) == {"GBP", "USD", "SAR", "EUR"}
        assert result.rates["GBP"] == 1.0

    @pytest.mark.asyncio
    async def test_cache_stats_and_clear(self, db_session):
        await self.service.get_exchange_rate(db_session, "GBP", "USD")
        assert self.service.get_cache_stats().keys == ["GBP_USD"]

        self.service.clear_cache()

        assert self.service.get_cache_stats().size == 0

    @pytest.mark.asyncio
    async def test_refresh_all_rates(self, db_session):
        @asynccontextmanager
        async def scope():
            yield db_session

        with patch("toolhire.services.exchange_rate_service.session_scope", scope):
            summary = await self.service.refresh_all_rates()

        assert summary.pairs == 12
        assert summary.refreshed == 12
        assert summary.failed == 0
        assert self.service.get_cache_stats().size == 12
