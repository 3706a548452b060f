# Models package init
"""SQLAlchemy ORM models. Import them here so Alembic sees every table."""

from taskapi.models.task import Task  # noqa: F401
