"""Currency catalogue routes. Listing is public; changes are admin-only."""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.database import get_db_session
from toolhire.routes.dependencies import require_admin
from toolhire.schemas.common import DataResponse, ErrorResponse
from toolhire.schemas.exchange_rate import CurrencyCreate, CurrencyResponse, CurrencyUpdate
from toolhire.services.currency_service import currency_service

router = APIRouter(prefix="/api/currencies", tags=["Currencies"])


@router.get("", response_model=DataResponse[List[CurrencyResponse]], summary="List currencies")
async def list_currencies(
    active_only: bool = Query(default=True),
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[List[CurrencyResponse]]:
    return DataResponse(data=await currency_service.list_currencies(db, active_only=active_only))


@router.post(
    "",
    response_model=DataResponse[CurrencyResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
    responses={409: {"description": "Currency already exists", "model": ErrorResponse}},
    summary="Add a currency",
)
async def create_currency(
    payload: CurrencyCreate,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[CurrencyResponse]:
    currency = await currency_service.create_currency(db, payload)
    return DataResponse(data=currency, message=f"Currency {currency.code} created")


@router.patch(
    "/{code}",
    response_model=DataResponse[CurrencyResponse],
    dependencies=[Depends(require_admin)],
    responses={404: {"description": "Unknown currency", "model": ErrorResponse}},
    summary="Update a currency",
)
async def update_currency(
    code: str,
    payload: CurrencyUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> DataResponse[CurrencyResponse]:
    currency = await currency_service.update_currency(db, code, payload)
    return DataResponse(data=currency, message=f"Currency {currency.code} updated")
