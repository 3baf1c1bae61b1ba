"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from co2ledger.core.config import get_settings
from co2ledger.core.database import get_session, ping_db
from co2ledger.routes.deps import get_emission_service
from co2ledger.services.emission_service import EmissionCacheService

router = APIRouter(prefix="/health", tags=["health"])
settings = get_settings()


@router.get("/")
async def health_check(service: EmissionCacheService = Depends(get_emission_service)):
    """Service identity plus the snapshot cache state."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "cache": service.cache_status()
    }


@router.get("/live")
async def liveness():
    return {"status": "alive"}


@router.get("/ready")
async def readiness(session: AsyncSession = Depends(get_session)):
    """Ready once the record store answers."""
    if not await ping_db(session):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Record store unavailable"
        )
    return {"status": "ready"}
