"""
ToolHire Backend: Exchange Rate Routes
========================================

What:  Rate lookup, bulk rates and conversion for the marketplace frontend,
       plus admin cache and refresh controls.
Who:   Price displays on the frontend; operators after a provider outage.

Routes:
    GET  /api/exchange-rates?from=GBP&to=SAR
    GET  /api/exchange-rates/bulk?base=GBP
    GET  /api/exchange-rates/convert?amount=10&from=GBP&to=SAR
    GET  /api/exchange-rates/cache/stats     (admin)
    POST /api/exchange-rates/cache/clear     (admin)
    POST /api/exchange-rates/refresh         (admin)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.config import settings
from toolhire.database import get_db_session
from toolhire.routes.dependencies import require_admin
from toolhire.schemas.common import DataResponse, ErrorResponse
from toolhire.schemas.exchange_rate import (
    BulkExchangeRatesResponse,
    CacheStatsResponse,
    ConversionResponse,
    ExchangeRateResponse,
    RefreshSummary,
)
from toolhire.services.exchange_rate_service import exchange_rate_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exchange-rates", tags=["Exchange Rates"])

_errors = {
    400: {"description": "Malformed currency code", "model": ErrorResponse},
    503: {"description": "No rate available for the pair", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=DataResponse[ExchangeRateResponse],
    responses=_errors,
    summary="Exchange rate for a currency pair",
)
async def get_exchange_rate(
    from_currency: str = Query(alias="from", min_length=3, max_length=3),
    to_currency: str = Query(alias="to", min_length=3, max_length=3),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ExchangeRateResponse]:
    result = await exchange_rate_service.get_exchange_rate(db, from_currency, to_currency)
    return DataResponse(data=result)


@router.get(
    "/bulk",
    response_model=DataResponse[BulkExchangeRatesResponse],
    responses=_errors,
    summary="Rates from one base currency to every active currency",
)
async def get_bulk_exchange_rates(
    base: Optional[str] = Query(default=None, min_length=3, max_length=3),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[BulkExchangeRatesResponse]:
    result = await exchange_rate_service.get_bulk_exchange_rates(
        db, base or settings.default_currency
    )
    return DataResponse(data=result)


@router.get(
    "/convert",
    response_model=DataResponse[ConversionResponse],
    responses=_errors,
    summary="Convert an amount between currencies",
)
async def convert_currency(
    amount: float = Query(ge=0),
    from_currency: str = Query(alias="from", min_length=3, max_length=3),
    to_currency: str = Query(alias="to", min_length=3, max_length=3),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[ConversionResponse]:
    result = await exchange_rate_service.convert_currency(db, amount, from_currency, to_currency)
    return DataResponse(data=result)


@router.get(
    "/cache/stats",
    response_model=DataResponse[CacheStatsResponse],
    dependencies=[Depends(require_admin)],
    summary="In-memory rate cache contents",
)
async def get_cache_stats() -> DataResponse[CacheStatsResponse]:
    return DataResponse(data=exchange_rate_service.get_cache_stats())


@router.post(
    "/cache/clear",
    response_model=DataResponse[CacheStatsResponse],
    dependencies=[Depends(require_admin)],
    summary="Drop every cached rate",
)
async def clear_cache() -> DataResponse[CacheStatsResponse]:
    exchange_rate_service.clear_cache()
    return DataResponse(
        data=exchange_rate_service.get_cache_stats(), message="Exchange rate cache cleared"
    )


@router.post(
    "/refresh",
    response_model=DataResponse[RefreshSummary],
    dependencies=[Depends(require_admin)],
    summary="Re-resolve every active currency pair now",
)
async def refresh_rates() -> DataResponse[RefreshSummary]:
    """Runs the same refresh the scheduler runs hourly; uses its own sessions."""
    summary = await exchange_rate_service.refresh_all_rates()
    return DataResponse(
        data=summary,
        message=f"Refreshed {summary.refreshed} of {summary.pairs} currency pairs",
    )
