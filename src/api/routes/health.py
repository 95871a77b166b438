"""Health check endpoint."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from api.models import HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health(request: Request):
    """Liveness check. Does not touch the database."""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return HealthResponse(
        message="Server is running",
        timestamp=datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
        uptime=round(time.monotonic() - started_at, 3),
    )
