"""
Task API — Root Route
======================

What:  GET / — a short welcome message and a directory of the endpoints.
"""

from fastapi import APIRouter

router = APIRouter(tags=["Index"])

ENDPOINTS = {
    "health": "GET /health",
    "tasks": {
        "getAll": "GET /api/tasks",
        "create": "POST /api/tasks",
        "update": "PUT /api/tasks/:id",
        "delete": "DELETE /api/tasks/:id",
    },
}


@router.get("/", summary="API directory")
async def index() -> dict:
    return {
        "message": "Welcome to the Task API (FastAPI + SQLAlchemy)",
        "endpoints": ENDPOINTS,
    }
