"""
ToolHire Backend: Abstract Payment Gateway Interface
======================================================

What:  Contract for charging a renter's saved payment method off-session.
Why:   DepositCaptureService depends on this interface only, so the
       provider can change and tests can pass a fake gateway.
How:   Concrete gateways inherit from PaymentGateway and implement
       capture_deposit() and health_check().
Who:   Called by DepositCaptureService when a capture job comes due.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

# Currencies the provider charges in whole units or in thousandths
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
     "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)
THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "JOD", "KWD", "OMR", "TND"})


def minor_unit_exponent(currency: str) -> int:
    code = currency.upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        return 0
    if code in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


@dataclass
class DepositCaptureRequest:
    booking_id: str
    amount: Decimal
    currency: str
    customer_id: str
    payment_method_id: str
    # Distinguishes retries of the same booking so each gets its own idempotency key
    attempt: int = 0
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def amount_minor_units(self) -> int:
        """
        Amount in the currency's minor unit (pence, fils, yen).

        Three-decimal amounts are rounded to a multiple of 10, which the
        provider requires for those currencies.
        """
        exponent = minor_unit_exponent(self.currency)
        minor = (self.amount * (10 ** exponent)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        if exponent == 3:
            minor = (minor / 10).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * 10
        return int(minor)


@dataclass
class DepositCaptureResult:
    success: bool
    payment_intent_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


class PaymentGateway(ABC):
    """
    Contract:
        - capture_deposit() returns a result for provider-side declines
          (success=False with an error) instead of raising
        - transport failures after retries raise PaymentGatewayError
        - an open circuit raises CircuitBreakerOpenError
    """

    @abstractmethod
    async def capture_deposit(self, request: DepositCaptureRequest) -> DepositCaptureResult:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check; must not move money."""
        ...
