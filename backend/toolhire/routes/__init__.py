"""
ToolHire Backend: API Routes Package
======================================

Route Inventory:
    - health.py:           GET  /health
    - exchange_rates.py:   GET  /api/exchange-rates, /bulk, /convert
                           GET  /api/exchange-rates/cache/stats      (admin)
                           POST /api/exchange-rates/cache/clear      (admin)
                           POST /api/exchange-rates/refresh          (admin)
    - currencies.py:       GET  /api/currencies
                           POST /api/currencies, PATCH /{code}       (admin)
    - tools.py:            GET  /api/tools, /api/tools/{id}
    - admin_dashboard.py:  GET  /api/admin/dashboard/*               (admin)
    - admin_users.py:      GET/DELETE /api/admin/users[/{id}]        (admin)
    - admin_deposits.py:   /api/admin/deposit-jobs, /api/admin/bookings/{id}/deposit-job

Routes stay thin: read the request, call one service, wrap the result in
DataResponse. Business rules and error translation live in services.
"""
