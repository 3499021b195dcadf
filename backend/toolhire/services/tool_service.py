"""
ToolHire Backend: Tool Catalogue Service
==========================================

Read side of the catalogue: published, moderation-confirmed tools, newest
first, optionally priced in the renter's currency. The rate is resolved
once per distinct base currency on a page, so a page of GBP tools shown
in SAR costs one lookup. A pair with no rate anywhere leaves the display
fields empty instead of failing the whole page.
"""

import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.exceptions import DatabaseError, ExchangeRateUnavailableError, NotFoundError
from toolhire.models.tool import ModerationStatus, Tool, ToolStatus
from toolhire.schemas.tool import ToolListResponse, ToolResponse
from toolhire.services.exchange_rate_service import (
    ExchangeRateService,
    exchange_rate_service,
    normalize_currency_code,
)

logger = logging.getLogger(__name__)


class ToolService:
    def __init__(self, rates: Optional[ExchangeRateService] = None):
        self.rates = rates or exchange_rate_service

    async def list_tools(
        self,
        db: AsyncSession,
        currency: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
        search: Optional[str] = None,
    ) -> ToolListResponse:
        display_currency = normalize_currency_code(currency) if currency else None
        conditions = [
            Tool.tool_status == ToolStatus.PUBLISHED.value,
            Tool.moderation_status == ModerationStatus.CONFIRMED.value,
        ]
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(Tool.title.ilike(pattern), Tool.description.ilike(pattern)))

        try:
            total = (await db.execute(select(func.count(Tool.id)).where(*conditions))).scalar_one()
            result = await db.execute(
                select(Tool)
                .where(*conditions)
                .order_by(Tool.created_at.desc(), Tool.id)
                .limit(limit)
                .offset(offset)
            )
            tools = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing tools: %s", str(e))
            raise DatabaseError(
                message="Could not retrieve tools. Please try again.",
                context={"limit": limit, "offset": offset},
            ) from e

        items = await self._with_display_prices(db, tools, display_currency)
        return ToolListResponse(
            items=items, total=total, limit=limit, offset=offset, currency=display_currency
        )

    async def get_tool(
        self, db: AsyncSession, tool_id: UUID, currency: Optional[str] = None
    ) -> ToolResponse:
        display_currency = normalize_currency_code(currency) if currency else None
        try:
            tool = await db.get(Tool, tool_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching tool %s: %s", tool_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the tool. Please try again.",
                context={"tool_id": str(tool_id)},
            ) from e

        if tool is None:
            raise NotFoundError(resource="tool", resource_id=str(tool_id))
        items = await self._with_display_prices(db, [tool], display_currency)
        return items[0]

    async def _with_display_prices(
        self, db: AsyncSession, tools: Iterable[Tool], display_currency: Optional[str]
    ) -> List[ToolResponse]:
        tools = list(tools)
        items = [ToolResponse.model_validate(t) for t in tools]
        if display_currency is None:
            return items

        rates: Dict[str, Optional[float]] = {}
        for tool in tools:
            base = tool.base_currency_code
            if base in rates:
                continue
            try:
                rates[base] = (await self.rates.get_exchange_rate(db, base, display_currency)).rate
            except ExchangeRateUnavailableError:
                logger.warning(
                    "No rate %s->%s; catalogue prices left unconverted", base, display_currency
                )
                rates[base] = None

        for item in items:
            rate = rates.get(item.base_currency_code)
            item.display_currency = display_currency
            if rate is not None:
                item.display_price = round(item.base_price * rate, 2)
                item.display_deposit = round(item.deposit_amount * rate, 2)
        return items


tool_service = ToolService()
