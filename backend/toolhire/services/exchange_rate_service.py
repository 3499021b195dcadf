"""
ToolHire Backend: Exchange Rate Service
=========================================

What:  Currency conversion for tool prices, deposits and admin reporting.
Why:   Owners price tools in their local currency (GBP, KWD, SAR, ...) and
       renters browse in theirs. A rate must always be available, even when
       the rate provider is down.
How:   In-memory TTL cache in front of a resolution chain; the winning rate
       is cached and, when it came from the live API, upserted to the DB.
Who:   Exchange-rate routes, ToolService (display prices), the hourly
       refresh job.

Resolution Chain (first hit wins):
    1. Live API          GET {base}/{key}/latest/{FROM} → conversion_rates[TO]
    2. USD cross-rate    rate(USD→TO) / rate(USD→FROM), only when neither side
                         is USD; both legs resolve with recursion disabled
    3. Database          active (FROM, TO) row, else 1 / active (TO, FROM) row
    4. Default table     DEFAULT_RATES below
    → ExchangeRateUnavailableError

    If the chain raises, get_exchange_rate() serves the newest stored row
    for the pair regardless of its active flag before giving up.

Resilience:
    Single HTTP calls are retried by tenacity (transport errors, 5xx, 429);
    a circuit breaker stops calling the provider after repeated failures so
    the chain falls through to stored rates instantly.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import httpx
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from toolhire.config import settings
from toolhire.database import as_utc, session_scope, utcnow
from toolhire.exceptions import (
    CircuitBreakerOpenError,
    DatabaseError,
    ExchangeRateUnavailableError,
    ExternalServiceError,
    ToolHireError,
    ValidationError,
)
from toolhire.models.currency import Currency, ExchangeRate
from toolhire.schemas.exchange_rate import (
    BulkExchangeRatesResponse,
    CacheStatsResponse,
    ConversionResponse,
    ExchangeRateResponse,
    RefreshSummary,
)
from toolhire.services.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

USD = "USD"

# Last-resort rates: DEFAULT_RATES[FROM][TO] = units of TO per 1 FROM
DEFAULT_RATES: Dict[str, Dict[str, float]] = {
    "GBP": {"KWD": 0.375, "SAR": 4.58, "BHD": 0.46, "OMR": 0.47, "QAR": 4.45, "AED": 4.49, "EUR": 1.16, "USD": 1.22},
    "KWD": {"GBP": 2.67, "SAR": 12.22, "BHD": 1.23, "OMR": 1.25, "QAR": 11.87, "AED": 11.98, "EUR": 3.09, "USD": 3.26},
    "SAR": {"GBP": 0.218, "KWD": 0.082, "BHD": 0.100, "OMR": 0.102, "QAR": 0.971, "AED": 0.980, "EUR": 0.253, "USD": 0.267},
    "BHD": {"GBP": 2.17, "KWD": 0.813, "SAR": 9.95, "OMR": 1.02, "QAR": 9.67, "AED": 9.75, "EUR": 2.52, "USD": 2.65},
    "OMR": {"GBP": 2.13, "KWD": 0.800, "SAR": 9.75, "BHD": 0.980, "QAR": 9.47, "AED": 9.55, "EUR": 2.47, "USD": 2.60},
    "QAR": {"GBP": 0.225, "KWD": 0.084, "SAR": 1.03, "BHD": 0.103, "OMR": 0.106, "AED": 1.01, "EUR": 0.261, "USD": 0.275},
    "AED": {"GBP": 0.223, "KWD": 0.083, "SAR": 1.02, "BHD": 0.103, "OMR": 0.105, "QAR": 0.99, "EUR": 0.258, "USD": 0.272},
    "EUR": {"GBP": 0.862, "KWD": 0.323, "SAR": 3.95, "BHD": 0.397, "OMR": 0.405, "QAR": 3.83, "AED": 3.87, "USD": 1.05},
    "USD": {"GBP": 0.820, "KWD": 0.307, "SAR": 3.75, "BHD": 0.377, "OMR": 0.385, "QAR": 3.64, "AED": 3.67, "EUR": 0.952},
}


class RateSource(str, enum.Enum):
    IDENTITY = "identity"
    CACHE = "cache"
    LIVE = "live"
    CROSS_RATE = "cross_rate"
    DATABASE = "database"
    DATABASE_INVERSE = "database_inverse"
    DEFAULT = "default"
    STORED = "stored"


@dataclass
class _CacheEntry:
    rate: float
    cached_at: datetime


def normalize_currency_code(code: Optional[str], field: str = "currency") -> str:
    """Upper-cases a currency code and rejects anything that is not 3 letters."""
    value = (code or "").strip().upper()
    if len(value) != 3 or not value.isalpha():
        raise ValidationError(
            message=f"Invalid {field} currency code '{code}'. Expected a 3-letter ISO code.",
            field=field,
        )
    return value


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return False


class ExchangeRateService:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        cache_ttl: Optional[int] = None,
    ):
        self._client = client
        self.api_key = settings.exchange_rate_api_key if api_key is None else api_key
        self.cache_ttl = settings.exchange_rate_cache_ttl if cache_ttl is None else cache_ttl
        self._cache: Dict[str, _CacheEntry] = {}
        self.circuit_breaker = CircuitBreaker(
            name="exchange-rate API",
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    # ── Public API ────────────────────────────────────────────────────────

    async def get_exchange_rate(
        self, db: AsyncSession, from_currency: str, to_currency: str
    ) -> ExchangeRateResponse:
        """
        Rate for converting 1 unit of from_currency into to_currency.

        Raises:
            ValidationError: a code is not 3 letters
            ExchangeRateUnavailableError: nothing in the chain or the
                stored rates knows the pair
            DatabaseError: the stored-rate lookup itself failed
        """
        from_code = normalize_currency_code(from_currency, "from")
        to_code = normalize_currency_code(to_currency, "to")
        now = utcnow()

        if from_code == to_code:
            return self._result(from_code, to_code, 1.0, now, RateSource.IDENTITY)

        key = self._cache_key(from_code, to_code)
        entry = self._cache.get(key)
        if entry is not None and now - entry.cached_at < timedelta(seconds=self.cache_ttl):
            return self._result(from_code, to_code, entry.rate, entry.cached_at, RateSource.CACHE)

        try:
            rate, source = await self._resolve_rate(db, from_code, to_code)
        except ExchangeRateUnavailableError:
            return await self._last_stored_rate(db, from_code, to_code)
        except ToolHireError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error resolving %s->%s: %s", from_code, to_code, str(e))
            raise DatabaseError(
                message="Could not resolve the exchange rate. Please try again.",
                context={"from_currency": from_code, "to_currency": to_code},
            ) from e

        self._cache[key] = _CacheEntry(rate=rate, cached_at=now)
        logger.debug("Resolved %s->%s = %s via %s", from_code, to_code, rate, source.value)
        return self._result(from_code, to_code, rate, now, source)

    async def get_bulk_exchange_rates(
        self, db: AsyncSession, base_currency: str
    ) -> BulkExchangeRatesResponse:
        """Rates from base_currency to every active currency; base maps to 1."""
        base_code = normalize_currency_code(base_currency, "base")
        codes = await self._active_currency_codes(db)

        rates: Dict[str, float] = {}
        last_updated = utcnow()
        for code in codes:
            if code == base_code:
                rates[code] = 1.0
                continue
            result = await self.get_exchange_rate(db, base_code, code)
            rates[code] = result.rate
            if result.last_updated < last_updated:
                last_updated = result.last_updated

        return BulkExchangeRatesResponse(
            base_currency=base_code, rates=rates, last_updated=last_updated
        )

    async def convert_currency(
        self, db: AsyncSession, amount: float, from_currency: str, to_currency: str
    ) -> ConversionResponse:
        result = await self.get_exchange_rate(db, from_currency, to_currency)
        converted = round(float(amount) * result.rate, 2)
        return ConversionResponse(
            original_amount=float(amount),
            converted_amount=converted,
            rate=result.rate,
            from_currency=result.from_currency,
            to_currency=result.to_currency,
        )

    async def refresh_all_rates(self) -> RefreshSummary:
        """
        Re-resolves every ordered pair of distinct active currencies.

        Each pair runs in its own session so one failing pair cannot poison
        the others' transactions. Per-pair errors are logged and counted.
        """
        async with session_scope() as db:
            codes = await self._active_currency_codes(db)

        pairs = [(f, t) for f in codes for t in codes if f != t]
        refreshed = failed = 0
        logger.info("Refreshing exchange rates for %d currency pairs", len(pairs))

        for from_code, to_code in pairs:
            try:
                async with session_scope() as db:
                    await self.get_exchange_rate(db, from_code, to_code)
                refreshed += 1
            except (ToolHireError, SQLAlchemyError) as e:
                failed += 1
                logger.warning("Failed to refresh rate %s->%s: %s", from_code, to_code, str(e))
            await asyncio.sleep(settings.exchange_rate_refresh_delay)

        logger.info("Exchange rate refresh complete: %d refreshed, %d failed", refreshed, failed)
        return RefreshSummary(pairs=len(pairs), refreshed=refreshed, failed=failed)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Exchange rate cache cleared")

    def get_cache_stats(self) -> CacheStatsResponse:
        return CacheStatsResponse(size=len(self._cache), keys=list(self._cache.keys()))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Resolution Chain ──────────────────────────────────────────────────

    async def _resolve_rate(
        self,
        db: AsyncSession,
        from_code: str,
        to_code: str,
        prevent_recursion: bool = False,
    ) -> Tuple[float, RateSource]:
        live = await self._live_rate(db, from_code, to_code)
        if live is not None:
            return live, RateSource.LIVE

        if not prevent_recursion and USD not in (from_code, to_code):
            cross = await self._cross_rate(db, from_code, to_code)
            if cross is not None:
                return cross, RateSource.CROSS_RATE

        try:
            stored = await self._stored_rate(db, from_code, to_code)
        except SQLAlchemyError as e:
            logger.warning(
                "Stored rate lookup failed for %s->%s: %s", from_code, to_code, e
            )
            stored = None
        if stored is not None:
            return stored

        default = DEFAULT_RATES.get(from_code, {}).get(to_code)
        if default is not None:
            logger.warning("Using default rate for %s->%s: %s", from_code, to_code, default)
            return default, RateSource.DEFAULT

        raise ExchangeRateUnavailableError(from_code, to_code)

    async def _cross_rate(
        self, db: AsyncSession, from_code: str, to_code: str
    ) -> Optional[float]:
        try:
            usd_to, _ = await self._resolve_rate(db, USD, to_code, prevent_recursion=True)
            usd_from, _ = await self._resolve_rate(db, USD, from_code, prevent_recursion=True)
        except ExchangeRateUnavailableError:
            return None
        if usd_from <= 0:
            return None
        return usd_to / usd_from

    async def _live_rate(
        self, db: AsyncSession, from_code: str, to_code: str
    ) -> Optional[float]:
        if not self.api_key:
            return None
        try:
            rates = await self.fetch_live_rates(from_code)
        except (CircuitBreakerOpenError, ExternalServiceError) as e:
            logger.warning("Live rate %s->%s unavailable: %s", from_code, to_code, e.message)
            return None

        try:
            rate = float(rates.get(to_code) or 0)
        except (TypeError, ValueError):
            rate = 0.0
        if rate <= 0:
            logger.warning("Live rates for %s have no usable %s rate", from_code, to_code)
            return None

        try:
            await self._store_rate(db, from_code, to_code, rate)
        except SQLAlchemyError as e:
            logger.error("Could not store live rate %s->%s: %s", from_code, to_code, e)
        return rate

    async def _stored_rate(
        self, db: AsyncSession, from_code: str, to_code: str
    ) -> Optional[Tuple[float, RateSource]]:
        direct = await db.execute(
            select(ExchangeRate.rate).where(
                ExchangeRate.from_currency_code == from_code,
                ExchangeRate.to_currency_code == to_code,
                ExchangeRate.is_active.is_(True),
            )
        )
        rate = direct.scalar_one_or_none()
        if rate is not None:
            return float(rate), RateSource.DATABASE

        inverse = await db.execute(
            select(ExchangeRate.rate).where(
                ExchangeRate.from_currency_code == to_code,
                ExchangeRate.to_currency_code == from_code,
                ExchangeRate.is_active.is_(True),
            )
        )
        rate = inverse.scalar_one_or_none()
        if rate is not None and float(rate) > 0:
            return 1 / float(rate), RateSource.DATABASE_INVERSE
        return None

    async def _last_stored_rate(
        self, db: AsyncSession, from_code: str, to_code: str
    ) -> ExchangeRateResponse:
        try:
            result = await db.execute(
                select(ExchangeRate)
                .where(
                    ExchangeRate.from_currency_code == from_code,
                    ExchangeRate.to_currency_code == to_code,
                )
                .order_by(ExchangeRate.last_updated.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(
                message="Could not resolve the exchange rate. Please try again.",
                context={"from_currency": from_code, "to_currency": to_code},
            ) from e

        if row is None:
            logger.error("No exchange rate source available for %s->%s", from_code, to_code)
            raise ExchangeRateUnavailableError(from_code, to_code)

        logger.warning("Serving last stored rate for %s->%s", from_code, to_code)
        return self._result(
            from_code, to_code, float(row.rate), as_utc(row.last_updated), RateSource.STORED
        )

    async def _store_rate(
        self, db: AsyncSession, from_code: str, to_code: str, rate: float
    ) -> None:
        """Upserts a live rate; skipped when either currency is not catalogued."""
        result = await db.execute(
            select(ExchangeRate).where(
                ExchangeRate.from_currency_code == from_code,
                ExchangeRate.to_currency_code == to_code,
            )
        )
        existing = result.scalar_one_or_none()
        value = Decimal(str(rate))

        if existing is not None:
            existing.rate = value
            existing.last_updated = utcnow()
            existing.is_active = True
        else:
            known = await db.execute(
                select(func.count()).select_from(Currency).where(
                    Currency.code.in_([from_code, to_code])
                )
            )
            if known.scalar_one() < 2:
                return
            db.add(
                ExchangeRate(
                    from_currency_code=from_code,
                    to_currency_code=to_code,
                    rate=value,
                    last_updated=utcnow(),
                    is_active=True,
                )
            )
        await db.flush()

    # ── Live API ──────────────────────────────────────────────────────────

    async def fetch_live_rates(self, base: str) -> Dict[str, float]:
        """
        All conversion rates for `base` from the provider.

        Raises:
            CircuitBreakerOpenError: provider marked down
            ExternalServiceError: request failed after retries, or the
                provider answered with a non-success result
        """
        self.circuit_breaker.can_execute()

        try:
            payload = await self._request_latest(base)
        except (httpx.HTTPError, ValueError) as e:
            self.circuit_breaker.record_failure()
            logger.error("Exchange-rate API request for %s failed: %s", base, type(e).__name__)
            raise ExternalServiceError(
                message="Exchange-rate provider request failed",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"base": base, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()

        if payload.get("result") != "success":
            raise ExternalServiceError(
                message=f"Exchange-rate provider returned an error: {payload.get('error-type', 'unknown')}",
                context={"base": base},
            )
        return payload.get("conversion_rates") or {}

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
    async def _request_latest(self, base: str) -> dict:
        # URL embeds the API key; never log it
        url = f"{settings.exchange_rate_api_url.rstrip('/')}/{self.api_key}/latest/{base}"
        response = await self._get_client().get(url)
        if response.status_code >= 500 or response.status_code == 429:
            response.raise_for_status()
        return response.json()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.exchange_rate_timeout)
        return self._client

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _active_currency_codes(self, db: AsyncSession) -> List[str]:
        result = await db.execute(
            select(Currency.code).where(Currency.is_active.is_(True)).order_by(Currency.code)
        )
        return list(result.scalars().all())

    @staticmethod
    def _cache_key(from_code: str, to_code: str) -> str:
        return f"{from_code}_{to_code}"

    @staticmethod
    def _result(
        from_code: str, to_code: str, rate: float, last_updated: datetime, source: RateSource
    ) -> ExchangeRateResponse:
        return ExchangeRateResponse(
            from_currency=from_code,
            to_currency=to_code,
            rate=rate,
            last_updated=last_updated,
            source=source.value,
        )


exchange_rate_service = ExchangeRateService()
