"""
ToolHire Backend: Tool Catalogue Tests
========================================

What:  Catalogue listing filters and display-currency pricing.
How:   Rates come from the built-in default table (no API key configured),
       so conversions are deterministic.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from toolhire.exceptions import ExchangeRateUnavailableError, NotFoundError
from toolhire.models import ModerationStatus, ToolStatus
from toolhire.services.exchange_rate_service import DEFAULT_RATES, ExchangeRateService
from toolhire.services.tool_service import ToolService


@pytest.fixture
def service():
    return ToolService(rates=ExchangeRateService(api_key=""))


class TestListTools:
    @pytest.mark.asyncio
    async def test_only_published_confirmed_tools(self, db_session, factory, service):
        owner = await factory.user()
        await factory.tool(owner, title="Ladder")
        await factory.tool(owner, title="Draft", tool_status=ToolStatus.DRAFT.value)
        await factory.tool(owner, title="Pending", moderation_status=ModerationStatus.PENDING.value)

        page = await service.list_tools(db_session)

        assert page.total == 1
        assert [t.title for t in page.items] == ["Ladder"]
        assert page.items[0].display_price is None
        assert page.currency is None

    @pytest.mark.asyncio
    async def test_search(self, db_session, factory, service):
        owner = await factory.user()
        await factory.tool(owner, title="Hedge Trimmer", description="Petrol")
        await factory.tool(owner, title="Jigsaw", description="Cuts curves in wood")

        page = await service.list_tools(db_session, search="wood")

        assert [t.title for t in page.items] == ["Jigsaw"]

    @pytest.mark.asyncio
    async def test_display_prices_in_requested_currency(self, db_session, factory, service):
        owner = await factory.user()
        await factory.tool(owner, base_price=Decimal("10.00"), deposit_amount=Decimal("50.00"))

        page = await service.list_tools(db_session, currency="usd")

        rate = DEFAULT_RATES["GBP"]["USD"]
        item = page.items[0]
        assert page.currency == "USD"
        assert item.display_currency == "USD"
        assert item.display_price == round(10 * rate, 2)
        assert item.display_deposit == round(50 * rate, 2)
        assert item.base_price == 10.0

    @pytest.mark.asyncio
    async def test_one_lookup_per_base_currency(self, db_session, factory):
        owner = await factory.user()
        for title in ("Drill", "Sander", "Router"):
            await factory.tool(owner, title=title)
        rates = ExchangeRateService(api_key="")
        rates.get_exchange_rate = AsyncMock(wraps=rates.get_exchange_rate)

        await ToolService(rates=rates).list_tools(db_session, currency="EUR")

        assert rates.get_exchange_rate.await_count == 1

    @pytest.mark.asyncio
    async def test_unavailable_rate_leaves_price_unconverted(self, db_session, factory):
        owner = await factory.user()
        await factory.tool(owner)
        rates = ExchangeRateService(api_key="")
        rates.get_exchange_rate = AsyncMock(
            side_effect=ExchangeRateUnavailableError(from_currency="GBP", to_currency="SAR")
        )

        page = await ToolService(rates=rates).list_tools(db_session, currency="SAR")

        assert page.items[0].display_currency == "SAR"
        assert page.items[0].display_price is None


class TestGetTool:
    @pytest.mark.asyncio
    async def test_get_tool_with_currency(self, db_session, factory, service):
        owner = await factory.user()
        tool = await factory.tool(owner)

        item = await service.get_tool(db_session, tool.id, currency="GBP")

        assert item.id == tool.id
        assert item.display_price == 10.0

    @pytest.mark.asyncio
    async def test_unknown_tool(self, db_session, service):
        with pytest.raises(NotFoundError):
            await service.get_tool(db_session, uuid.uuid4())
