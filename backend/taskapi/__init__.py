"""
Task API — Application Package Initializer
===========================================

What: Marks the `taskapi` directory as a Python package.
Why:  Enables module imports like `from taskapi.config import settings`.
Who:  Used by the process entry point (`python -m taskapi`), Alembic, and pytest.

Architecture Note:
    The service is a thin layered CRUD API wrapped by a process lifecycle:

    ┌─────────────────────────────────────┐
    │   Server + Lifecycle Coordinator    │  ← signals, drain, storage close, exit code
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Task CRUD rules
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The lifecycle layer owns the two long-lived resources (the listening
    socket and the database connection pool) and is the only code that
    tears them down.
"""

__version__ = "1.0.0"
