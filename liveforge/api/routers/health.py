"""Health check router."""

from fastapi import APIRouter, Depends

from liveforge.api.deps import get_build_store
from liveforge.config import VERSION, settings
from liveforge.repos.build_store import BuildStore
from liveforge.services.build.stream import active_build_count

router = APIRouter()


@router.get("/health")
async def health_check(store: BuildStore = Depends(get_build_store)) -> dict:
    """Return health status with the store size and number of running builds."""
    return {
        "status": "ok",
        "builds": len(store),
        "activeBuilds": active_build_count(),
        "ledger": settings.LEDGER_MODE,
    }


@router.get("/health/version")
async def health_version() -> dict:
    """Return application version."""
    return {"version": VERSION}
