"""System endpoints (health)."""

from __future__ import annotations

import time

from fastapi import APIRouter

from .. import schemas

router = APIRouter(prefix="/api", tags=["System"])

# Global startup time for uptime calculation
_STARTUP_TIME = time.time()


@router.get("/health", response_model=schemas.HealthResponse)
def get_health() -> schemas.HealthResponse:
    """Liveness check."""
    return schemas.HealthResponse(status="ok", uptime_s=time.time() - _STARTUP_TIME)
