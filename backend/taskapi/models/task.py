"""
Task API — Task SQLAlchemy Model
=================================

What:  ORM model representing the `tasks` table.
Who:   Used by TaskService for CRUD operations and by Alembic for schema management.

Table Design:
    - UUID primary key generated in Python, so the ID is known after flush
      on every backend (PostgreSQL in production, SQLite in tests)
    - title: required, short free text
    - completed: boolean flag, defaults to false
    - created_at: UTC timestamp; the list endpoint sorts on it (newest first),
      hence the descending index
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, String, Uuid, false, text
from sqlalchemy.orm import Mapped, mapped_column

from taskapi.database import Base

TITLE_MAX_LENGTH = 500


class Task(Base):
    """A single to-do item."""

    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(
        String(TITLE_MAX_LENGTH),
        nullable=False,
    )

    completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    # Always UTC; clients convert to local time
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_tasks_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Task(id={self.id}, title='{self.title}', "
            f"completed={self.completed})>"
        )
