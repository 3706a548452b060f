"""
Task API — Task Route Handlers
===============================

What:  GET/POST /api/tasks and PUT/DELETE /api/tasks/{task_id}.
How:   Parses the request, delegates to TaskService, returns the envelope.
       Errors raised by the service are formatted by the global handlers.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskapi.database import get_db_session
from taskapi.schemas.task import (
    DeleteResponse,
    ErrorResponse,
    TaskCreate,
    TaskEnvelope,
    TaskListResponse,
    TaskUpdate,
)
from taskapi.services.task_service import task_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Tasks"])


@router.get(
    "/tasks",
    response_model=TaskListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List all tasks, newest first",
)
async def list_tasks(db: AsyncSession = Depends(get_db_session)) -> TaskListResponse:
    return await task_service.list_tasks(db)


@router.post(
    "/tasks",
    status_code=201,
    response_model=TaskEnvelope,
    responses={
        400: {"description": "Title is missing or blank", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Create a task",
)
async def create_task(
    payload: Optional[TaskCreate] = None,
    db: AsyncSession = Depends(get_db_session),
) -> TaskEnvelope:
    """
    Create a new task.

    An absent body is treated like a body without a title, so both answer
    400 "Title is required".
    """
    return await task_service.create_task(db, payload.title if payload else None)


@router.put(
    "/tasks/{task_id}",
    response_model=TaskEnvelope,
    responses={
        400: {"description": "Blank title", "model": ErrorResponse},
        404: {"description": "Task not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Update a task",
)
async def update_task(
    task_id: str,
    payload: Optional[TaskUpdate] = None,
    db: AsyncSession = Depends(get_db_session),
) -> TaskEnvelope:
    return await task_service.update_task(db, task_id, payload or TaskUpdate())


@router.delete(
    "/tasks/{task_id}",
    response_model=DeleteResponse,
    responses={
        404: {"description": "Task not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Delete a task",
)
async def delete_task(
    task_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResponse:
    await task_service.delete_task(db, task_id)
    return DeleteResponse()
