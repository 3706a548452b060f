"""
Task API — Health Check Route
==============================

What:  Health check endpoint for Docker HEALTHCHECK and load balancer probes.
How:   Probes the database with SELECT 1 and reports the result.
Who:   Called by container health checks and monitoring systems.

The endpoint answers 200 "OK" as long as the process is serving, even when
the database is unreachable: the service starts and runs without a database
and reports the dependency state in the `database` field instead.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter

from taskapi import __version__
from taskapi.database import check_database_connection
from taskapi.schemas.task import HealthResponse

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    # check_database_connection logs the failure itself
    connected = await check_database_connection()

    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc),
        database="Connected" if connected else "Disconnected",
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
