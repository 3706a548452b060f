"""
Task API — Custom Exception Hierarchy
======================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch the request-time
       ones and return the `{"success": false, "error": ...}` envelope.
Who:   Raised by services and lifecycle adapters.

Exception Hierarchy:
    TaskAPIError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── NotFoundError            → 404 Not Found
    ├── DatabaseError            → 500 Internal Server Error
    ├── ServerStartError         → never reaches HTTP; uvicorn could not start serving
    └── ShutdownError            → never reaches HTTP; logged by the lifecycle coordinator
        ├── ListenerCloseError   (HTTP listener failed to drain/close)
        └── StorageCloseError    (database pool failed to close)
"""

from typing import Any, Dict, Optional


class TaskAPIError(Exception):
    """
    Base exception for all Task API application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(TaskAPIError):
    """
    Raised when client input fails a business rule.

    When:    Missing, blank or over-long task title on create or update.
    HTTP:    400 Bad Request

    Schema-level problems (malformed JSON, wrong types) are still reported
    by FastAPI itself with 422.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(TaskAPIError):
    """
    Raised when a requested resource does not exist.

    When:    PUT/DELETE /api/tasks/{id} with an unknown or malformed ID.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "Task",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)


class DatabaseError(TaskAPIError):
    """
    Raised when database operations fail unexpectedly.

    When:    Connection lost mid-query, database unreachable, constraint violation.
    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; the original
    error type is kept in `context` and logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ShutdownError(TaskAPIError):
    """
    Base for failures while tearing down a resource at process exit.

    These are terminal: the lifecycle coordinator logs them and exits with
    a non-zero status. Nothing retries them.
    """


class ListenerCloseError(ShutdownError):
    """The HTTP listener failed while draining or closing its sockets."""

    def __init__(
        self,
        message: str = "HTTP server failed to close",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageCloseError(ShutdownError):
    """The database connection pool could not be disposed."""

    def __init__(
        self,
        message: str = "Database connection failed to close",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ServerStartError(TaskAPIError):
    """uvicorn stopped before serving (e.g. the port is already in use)."""

    def __init__(
        self,
        message: str = "HTTP server failed to start",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
