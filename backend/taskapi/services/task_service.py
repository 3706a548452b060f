"""
Task API — Task Service (Business Logic)
=========================================

What:  CRUD operations on tasks, independent of HTTP concerns.
How:   Receives an AsyncSession per call, applies the title rules, and
       translates database failures into application exceptions.
Who:   Called by the /api/tasks route handlers.

Design Decision:
    TaskService is stateless: it receives the db session for each call.
    Commit/rollback is left to `get_db_session`; the service only flushes.

Error Handling Strategy:
    - Business rule violations → ValidationError (400)
    - Unknown or malformed IDs → NotFoundError (404)
    - Anything the driver raises → DatabaseError (500), details logged
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskapi.exceptions import DatabaseError, NotFoundError, TaskAPIError, ValidationError
from taskapi.models.task import TITLE_MAX_LENGTH, Task
from taskapi.schemas.task import (
    TaskEnvelope,
    TaskListResponse,
    TaskResponse,
    TaskUpdate,
)

logger = logging.getLogger(__name__)


def _parse_task_id(task_id: str) -> UUID:
    """Malformed IDs can never match a row, so they are reported as not found."""
    try:
        return UUID(task_id)
    except (ValueError, AttributeError, TypeError):
        raise NotFoundError(resource="Task", resource_id=str(task_id)) from None


def _clean_title(title: Optional[str]) -> str:
    """Apply the title rule shared by create and update; return the trimmed title."""
    if title is None or not title.strip():
        raise ValidationError(message="Title is required", field="title")
    title = title.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            message=f"Title must be at most {TITLE_MAX_LENGTH} characters",
            field="title",
            context={"length": len(title)},
        )
    return title


class TaskService:
    """
    Business logic layer for task operations.

    Responsibilities:
        - list_tasks():  all tasks, newest first
        - create_task(): validate title, insert
        - update_task(): partial update with the same title rule
        - delete_task(): remove by ID
    """

    async def list_tasks(self, db: AsyncSession) -> TaskListResponse:
        """
        Return every task ordered by created_at descending.

        Raises:
            DatabaseError: Query execution failed (→ 500)
        """
        try:
            result = await db.execute(select(Task).order_by(desc(Task.created_at)))
            tasks = list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing tasks: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve tasks. Please try again.",
                context={"error_type": type(e).__name__},
            )

        data = [TaskResponse.model_validate(task) for task in tasks]
        return TaskListResponse(count=len(data), data=data)

    async def create_task(self, db: AsyncSession, title: Optional[str]) -> TaskEnvelope:
        """
        Create a task with the given title.

        Raises:
            ValidationError: title missing, blank or too long (→ 400)
            DatabaseError: insert failed (→ 500)
        """
        task = Task(title=_clean_title(title), completed=False)
        try:
            db.add(task)
            await db.flush()
        except Exception as e:
            logger.error("Database error creating task: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the task. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Task created: %s", task.id)
        return TaskEnvelope(data=TaskResponse.model_validate(task))

    async def update_task(
        self,
        db: AsyncSession,
        task_id: str,
        changes: TaskUpdate,
    ) -> TaskEnvelope:
        """
        Apply a partial update to a task.

        Only fields present in the request body are written. A title that is
        present follows the same rule as on create (not blank, at most
        TITLE_MAX_LENGTH characters after trimming).

        Raises:
            NotFoundError: no task with this ID (→ 404)
            ValidationError: blank or too long title (→ 400)
            DatabaseError: query or flush failed (→ 500)
        """
        uid = _parse_task_id(task_id)
        fields = changes.model_dump(exclude_unset=True)

        if "title" in fields:
            fields["title"] = _clean_title(fields["title"])
        if "completed" in fields and fields["completed"] is None:
            raise ValidationError(message="Completed must be true or false", field="completed")

        try:
            task = await self._get(db, uid)
            for name, value in fields.items():
                setattr(task, name, value)
            await db.flush()
        except TaskAPIError:
            raise
        except Exception as e:
            logger.error("Database error updating task %s: %s", task_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the task. Please try again.",
                context={"task_id": task_id, "error_type": type(e).__name__},
            )

        logger.info("Task updated: %s (%s)", uid, ", ".join(sorted(fields)) or "no changes")
        return TaskEnvelope(data=TaskResponse.model_validate(task))

    async def delete_task(self, db: AsyncSession, task_id: str) -> None:
        """
        Delete a task by ID.

        Raises:
            NotFoundError: no task with this ID (→ 404)
            DatabaseError: query or delete failed (→ 500)
        """
        uid = _parse_task_id(task_id)
        try:
            task = await self._get(db, uid)
            await db.delete(task)
            await db.flush()
        except TaskAPIError:
            raise
        except Exception as e:
            logger.error("Database error deleting task %s: %s", task_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the task. Please try again.",
                context={"task_id": task_id, "error_type": type(e).__name__},
            )

        logger.info("Task deleted: %s", uid)

    async def _get(self, db: AsyncSession, task_id: UUID) -> Task:
        result = await db.execute(select(Task).where(Task.id == task_id))
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError(resource="Task", resource_id=str(task_id))
        return task


# ── Singleton Instance ────────────────────────────────────────────────────
task_service = TaskService()
