"""
ToolHire Backend: Application Package
=======================================

Backend for a peer-to-peer tool rental marketplace.

    ┌─────────────────────────────────────┐
    │   Routes (FastAPI routers)          │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services + Scheduler              │  ← business rules, background jobs
    ├─────────────────────────────────────┤
    │   Models & Schemas                  │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database                          │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
