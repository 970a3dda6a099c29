"""
Health check endpoints.

Provides a liveness check with database reachability.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from event_intel.db import verify_database_connection

router = APIRouter(tags=["health"])

SERVICE_NAME = "platform-event-intelligence"
SERVICE_VERSION = "0.1.0"


@router.get("/health")
@router.get("/healthz")
async def healthcheck(request: Request) -> dict[str, Any]:
    """
    Health check endpoint.

    Reports ``degraded`` when the database cannot be reached; the
    process itself is still serving.
    """
    engine = getattr(request.app.state, "engine", None)
    db_ok = engine is not None and await verify_database_connection(engine)

    start_time = getattr(request.app.state, "start_time", None)
    uptime = int((datetime.now(UTC) - start_time).total_seconds()) if start_time else 0

    return {
        "status": "healthy" if db_ok else "degraded",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "database": "ok" if db_ok else "unavailable",
        "uptime_seconds": uptime,
    }
