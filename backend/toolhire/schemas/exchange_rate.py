"""Request/response schemas for currencies and exchange rates."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ExchangeRateResponse(BaseModel):
    from_currency: str
    to_currency: str
    rate: float = Field(description="Units of to_currency per 1 from_currency")
    last_updated: datetime
    source: str = Field(
        description=(
            "Where the rate came from: identity, cache, live, cross_rate, "
            "database, database_inverse, default, stored"
        )
    )


class BulkExchangeRatesResponse(BaseModel):
    base_currency: str
    rates: Dict[str, float]
    last_updated: datetime = Field(description="Oldest timestamp among the returned rates")


class ConversionResponse(BaseModel):
    original_amount: float
    converted_amount: float = Field(description="Rounded to 2 decimal places")
    rate: float
    from_currency: str
    to_currency: str


class CacheStatsResponse(BaseModel):
    size: int
    keys: List[str]


class RefreshSummary(BaseModel):
    pairs: int
    refreshed: int
    failed: int


class CurrencyResponse(BaseModel):
    code: str
    name: str
    symbol: str
    is_default: bool
    is_active: bool

    model_config = {"from_attributes": True}


def _normalize_code(value: str) -> str:
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError("Currency code must be 3 letters")
    return code


class CurrencyCreate(BaseModel):
    code: str = Field(min_length=3, max_length=3)
    name: str = Field(min_length=1, max_length=100)
    symbol: str = Field(min_length=1, max_length=10)
    is_default: bool = False
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        return _normalize_code(v)


class CurrencyUpdate(BaseModel):
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    symbol: Optional[str] = Field(default=None, min_length=1, max_length=10)
