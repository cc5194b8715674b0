"""
Health check endpoints for the PDF → ASYCUDA XML portal.

This module provides health check endpoints for monitoring
and service discovery.
"""

import platform
from datetime import datetime, timezone

import psutil
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.config import settings
from app.models.response import HealthResponse

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/healthz")
async def health_check() -> JSONResponse:
    """
    Basic health check endpoint.

    Returns:
        JSONResponse: Health status and basic information
    """
    return JSONResponse(
        status_code=200,
        content=HealthResponse(
            status="healthy",
            service=settings.APP_NAME,
            version=settings.VERSION,
            environment=settings.ENVIRONMENT,
        ).model_dump(mode="json", exclude_none=True),
    )


@router.get("/health")
async def detailed_health_check(request: Request) -> JSONResponse:
    """
    Detailed health check endpoint with system information.

    Returns:
        JSONResponse: Detailed health status and system metrics
    """
    try:
        system_info = {
            "platform": platform.system(),
            "platform_version": platform.version(),
            "python_version": platform.python_version(),
            "architecture": platform.architecture()[0],
        }

        system_metrics = {
            "cpu_percent": psutil.cpu_percent(interval=0.1),
            "memory_percent": psutil.virtual_memory().percent,
            "disk_percent": psutil.disk_usage("/").percent,
            "active_batches": len(request.app.state.batches),
        }
    except (OSError, psutil.Error) as e:
        logger.error(f"Detailed health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unhealthy")

    health = HealthResponse(
        status="healthy",
        service=settings.APP_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        system=system_info,
        metrics=system_metrics,
        dependencies=check_dependencies(request),
    )
    return JSONResponse(status_code=200, content=health.model_dump(mode="json"))


def check_dependencies(request: Request) -> dict[str, bool]:
    """
    Check that the external services are configured.

    Returns:
        dict: Configuration status of each external service
    """
    provider = getattr(request.app.state, "auth_provider", None)
    return {
        "conversion_service": getattr(request.app.state, "vendor_client", None) is not None,
        "auth_provider": provider is not None and provider.configured,
    }


@router.get("/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check endpoint for container health checks.

    Returns:
        JSONResponse: Readiness status
    """
    dependencies = check_dependencies(request)
    if all(dependencies.values()):
        return JSONResponse(
            status_code=200,
            content={"status": "ready", "service": settings.APP_NAME, "timestamp": _now()},
        )
    missing = [name for name, ok in dependencies.items() if not ok]
    logger.warning(f"Not ready, missing configuration for: {', '.join(missing)}")
    return JSONResponse(
        status_code=503,
        content={
            "status": "not_ready",
            "service": settings.APP_NAME,
            "missing_dependencies": missing,
            "timestamp": _now(),
        },
    )
