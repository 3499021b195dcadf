"""Catalogue schemas for tools, with optional display-currency pricing."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ToolResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    condition: Optional[str] = None
    pickup_address: Optional[str] = None
    base_price: float
    deposit_amount: float
    base_currency_code: str
    availability_status: str
    published_at: Optional[datetime] = None
    created_at: datetime
    display_price: Optional[float] = Field(
        default=None,
        description="base_price converted to display_currency; null when no rate is available",
    )
    display_deposit: Optional[float] = None
    display_currency: Optional[str] = None

    model_config = {"from_attributes": True}


class ToolListResponse(BaseModel):
    items: List[ToolResponse]
    total: int
    limit: int
    offset: int
    currency: Optional[str] = None
