"""
Messagely Backend — Application Package Initializer
====================================================

What: Marks the `messagely` directory as a Python package.
Who:  Imported by uvicorn (`uvicorn messagely.main:app`), Alembic and pytest.

Architecture Note:
    The backend is layered the same way top to bottom:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns + guards
    ├─────────────────────────────────────┤
    │      Auth Middleware (Identity)     │  ← optional identity per request
    ├─────────────────────────────────────┤
    │   Services (Users, Messages, JWT)   │  ← business rules
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never talk to the database directly; services never look at
    the HTTP request. Authorization decisions (logged in / owner /
    recipient) are made in the route layer, before a service is called.
"""

__version__ = "1.0.0"
