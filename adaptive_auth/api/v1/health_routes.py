# =============================================================================
# ADAPTIVE AUTH - HEALTH ROUTES
# =============================================================================
# File: api/v1/health_routes.py
# Description: Liveness and readiness checks
# =============================================================================

from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from adaptive_auth import __version__
from adaptive_auth.api.dependencies import Engine
from adaptive_auth.core.config import settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy or degraded")
    timestamp: datetime
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    components: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


def _stamp() -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc),
        "version": __version__,
        "environment": settings.app_env,
    }


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health_check() -> HealthResponse:
    """Answers without touching the database or the session store."""
    return HealthResponse(status="healthy", **_stamp())


@router.get("/health/ready", response_model=DetailedHealthResponse, summary="Readiness check")
async def readiness_check(engine: Engine) -> DetailedHealthResponse:
    """Pings the user table's database and the session store."""
    adapter = engine.adapter
    store = engine.session_store

    database = {"type": adapter.engine_type.value, "table": engine.mapping.table_name}
    database["status"] = "healthy" if await adapter.ping() else "unhealthy"
    session_store = {
        "status": "healthy" if await store.ping() else "unhealthy",
        "type": type(store).__name__,
    }

    components = {"database": database, "session_store": session_store}
    healthy = all(c["status"] == "healthy" for c in components.values())
    return DetailedHealthResponse(
        status="healthy" if healthy else "degraded",
        components=components,
        **_stamp(),
    )
