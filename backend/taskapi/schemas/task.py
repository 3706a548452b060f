"""
Task API — Pydantic Request/Response Schemas
=============================================

What:  Pydantic models defining the API contract for the task endpoints.
Why:   Input parsing, response serialization, and OpenAPI doc generation.
How:   FastAPI uses these models to parse request bodies and serialize responses.

Envelope convention:
    Success:  {"success": true, "data": ...}      (list adds "count")
    Failure:  {"success": false, "error": "..."}  (plus "request_id")

Design Decision:
    Title rules ("required", "not blank") are enforced in TaskService rather
    than with Field constraints, so a missing title answers 400 with a
    readable message instead of FastAPI's 422 validation report.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class TaskCreate(BaseModel):
    """Body of POST /api/tasks."""
    title: Optional[str] = Field(default=None, description="Task title (required)")


class TaskUpdate(BaseModel):
    """
    Body of PUT /api/tasks/{id}.

    Partial update: omitted fields keep their stored value. Unknown fields
    are ignored.
    """
    title: Optional[str] = Field(default=None, description="New title (must not be blank)")
    completed: Optional[bool] = Field(default=None, description="New completion flag")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TaskResponse(BaseModel):
    """Full representation of a task."""
    id: uuid.UUID = Field(description="Unique task identifier (UUID)")
    title: str = Field(description="Task title")
    completed: bool = Field(description="Whether the task is done")
    created_at: datetime = Field(description="When the task was created (UTC ISO 8601)")

    model_config = {"from_attributes": True}


class TaskEnvelope(BaseModel):
    """Single-task response for create and update."""
    success: bool = Field(default=True)
    data: TaskResponse


class TaskListResponse(BaseModel):
    """Response of GET /api/tasks, newest task first."""
    success: bool = Field(default=True)
    count: int = Field(description="Number of tasks in `data`")
    data: List[TaskResponse] = Field(description="Tasks ordered by created_at descending")


class DeleteResponse(BaseModel):
    """Response of DELETE /api/tasks/{id}."""
    success: bool = Field(default=True)
    message: str = Field(default="Task deleted successfully")


class ErrorResponse(BaseModel):
    """
    Standardized error response for all API errors.

    Example:
        {"success": false, "error": "Title is required", "request_id": "a1b2c3d4"}
    """
    success: bool = Field(default=False)
    error: str = Field(description="Human-readable error description")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Response of GET /health."""
    status: str = Field(description="Always 'OK' while the process is serving")
    timestamp: datetime = Field(description="Server time (UTC)")
    database: str = Field(description="Database connectivity: Connected, Disconnected")
    version: str = Field(description="Application version")
    uptime_seconds: float = Field(description="Seconds since service started")
