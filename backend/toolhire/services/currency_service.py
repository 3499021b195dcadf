"""
ToolHire Backend: Currency Catalogue Service
==============================================

Lists, creates and updates rows in `currencies`. The active flag decides
which currencies the bulk endpoint and the hourly refresh cover.
Only one currency may be the default; setting a new default clears the
flag on the others.
"""

import logging
from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.exceptions import ConflictError, NotFoundError
from toolhire.models.currency import Currency
from toolhire.schemas.exchange_rate import CurrencyCreate, CurrencyResponse, CurrencyUpdate
from toolhire.services.exchange_rate_service import normalize_currency_code

logger = logging.getLogger(__name__)


class CurrencyService:
    async def list_currencies(
        self, db: AsyncSession, active_only: bool = True
    ) -> List[CurrencyResponse]:
        query = select(Currency).order_by(Currency.code)
        if active_only:
            query = query.where(Currency.is_active.is_(True))
        result = await db.execute(query)
        return [CurrencyResponse.model_validate(c) for c in result.scalars().all()]

    async def create_currency(self, db: AsyncSession, data: CurrencyCreate) -> CurrencyResponse:
        existing = await db.get(Currency, data.code)
        if existing is not None:
            raise ConflictError(
                message=f"Currency '{data.code}' already exists",
                context={"code": data.code},
            )

        if data.is_default:
            await self._clear_default(db)

        currency = Currency(
            code=data.code,
            name=data.name,
            symbol=data.symbol,
            is_default=data.is_default,
            is_active=data.is_active,
        )
        db.add(currency)
        await db.flush()
        logger.info("Currency %s created (active=%s)", currency.code, currency.is_active)
        return CurrencyResponse.model_validate(currency)

    async def update_currency(
        self, db: AsyncSession, code: str, data: CurrencyUpdate
    ) -> CurrencyResponse:
        code = normalize_currency_code(code, "code")
        currency = await db.get(Currency, code)
        if currency is None:
            raise NotFoundError(resource="currency", resource_id=code)

        if data.is_default:
            await self._clear_default(db)
        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(currency, field, value)

        await db.flush()
        logger.info("Currency %s updated: %s", code, data.model_dump(exclude_unset=True))
        return CurrencyResponse.model_validate(currency)

    @staticmethod
    async def _clear_default(db: AsyncSession) -> None:
        await db.execute(
            update(Currency).where(Currency.is_default.is_(True)).values(is_default=False)
        )


currency_service = CurrencyService()
