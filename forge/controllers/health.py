from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from forge import state
from forge.config import get_settings

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {
        "status": "online",
        "service": "CodeForge Execution Service",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health")
async def health() -> dict[str, Any]:
    redis_status = "disconnected"
    if state.redis_client:
        try:
            await state.redis_client.ping()
            redis_status = "healthy"
        except Exception:
            redis_status = "unhealthy"

    if not get_settings().sandbox.enabled:
        sandbox_status = "disabled"
    elif state.coordinator is None:
        sandbox_status = "unavailable"
    else:
        sandbox_status = "ready"

    in_flight = state.admission.in_flight if state.admission else 0
    return {"status": "ok", "redis": redis_status, "sandbox": sandbox_status, "in_flight": in_flight}
