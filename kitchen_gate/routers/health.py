"""
Health check endpoint.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from kitchen_gate.config import VERSION
from kitchen_gate.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health(request: Request) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=VERSION,
        store=request.app.state.store.name,
        timestamp=datetime.now(timezone.utc),
    )
