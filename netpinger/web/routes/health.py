"""Health check routes."""

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from netpinger.version import __version__, get_version_info

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    engine_running: bool
    version: str
    message: str = "OK"


class VersionResponse(BaseModel):
    service: str
    version: str
    python: str
    build_date: Optional[str] = None
    git_commit: Optional[str] = None


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint for Docker/monitoring."""
    engine = request.app.state.engine
    running = engine is not None and engine.running

    return HealthResponse(
        status="healthy" if running else "degraded",
        engine_running=running,
        version=__version__,
        message="OK" if running else "Engine not running",
    )


@router.get("/version", response_model=VersionResponse)
async def version():
    """Get application version information."""
    return VersionResponse(**get_version_info())


@router.get("/ready")
async def readiness_check(request: Request):
    """Ready once the engine has completed a round."""
    engine = request.app.state.engine

    if engine is None or not engine.running:
        return {"ready": False, "reason": "Engine not running"}
    if engine.rounds_completed == 0:
        return {"ready": False, "reason": "No round completed yet"}
    return {"ready": True}


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
