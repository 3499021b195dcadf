"""
ToolHire Backend: Services Layer
==================================

Business logic between the routes (HTTP) and the models (persistence).
Each service is a stateless module-level singleton that receives an
AsyncSession per call and raises ToolHireError subclasses for routes'
exception handlers to map.

Service Inventory:
    - CircuitBreaker:          per-dependency failure gate for outbound HTTP
    - ExchangeRateService:     cached, multi-source currency rates
    - CurrencyService:         currency catalogue
    - ToolService:             published catalogue with display prices
    - DashboardService:        admin statistics
    - UserService:             user admin and the account-deletion cascade
    - PaymentGateway (ABC):    off-session deposit charging contract
    - StripePaymentGateway:    PaymentGateway over the Stripe REST API
    - DepositCaptureService:   deposit job scheduling, reminders, capture
"""
