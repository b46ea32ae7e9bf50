"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter

from vaultmirror.core.sync import get_engine

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Check the health of the remote store and synced vaults.

    Returns:
        dict with status and component health details
    """
    engine = get_engine()
    health_status = engine.health_check()

    all_healthy = all(status[0] for status in health_status.values())

    return {
        "status": "healthy" if all_healthy else "degraded",
        "components": {
            name: {"healthy": status[0], "message": status[1]}
            for name, status in health_status.items()
        },
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Kubernetes-style liveness probe.

    Returns:
        Simple OK response if the service is running
    """
    return {"status": "ok"}
