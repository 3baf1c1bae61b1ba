"""
Emission record endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Dict, Any

from co2ledger.core.database import get_session
from co2ledger.core.errors import ConflictError, NotFoundError
from co2ledger.models.emission import EmissionRecordCreate, EmissionRecordRead, EmissionRecordUpdate
from co2ledger.routes.deps import get_emission_service
from co2ledger.services.emission_service import EmissionCacheService

router = APIRouter(prefix="/emissions", tags=["emissions"])


@router.get("", response_model=List[EmissionRecordRead])
async def list_emissions_endpoint(
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    """All records, served from the snapshot cache."""
    return await service.get_all(session)


@router.get("/sorted", response_model=List[EmissionRecordRead])
async def sorted_emissions_endpoint(
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    """Stored records for real countries, newest year first."""
    return await service.get_all_sorted(session)


@router.get("/recent", response_model=List[EmissionRecordRead])
async def recent_emissions_endpoint(
    limit: int = Query(default=10, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    return await service.get_recent(session, limit)


@router.get("/countries", response_model=List[str])
async def countries_endpoint(
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    return await service.get_all_countries(session)


@router.get("/stats")
async def statistics_endpoint(
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
) -> Dict[str, Any]:
    return await service.statistics(session)


@router.get("/cache")
async def cache_status_endpoint(service: EmissionCacheService = Depends(get_emission_service)):
    return {"status": service.cache_status()}


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache_endpoint(service: EmissionCacheService = Depends(get_emission_service)):
    await service.clear_cache()


@router.get("/country/{country_name}", response_model=List[EmissionRecordRead])
async def country_emissions_endpoint(
    country_name: str,
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    """Stored records for one country, including manual uploads."""
    return await service.get_by_country(session, country_name)


@router.get("/uploader/{username}", response_model=List[EmissionRecordRead])
async def uploader_emissions_endpoint(
    username: str,
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    return await service.get_by_uploader(session, username)


@router.post("/import")
async def import_emissions_endpoint(
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    """Import every OWID (country, year) pair that is not stored yet."""
    imported = await service.import_from_remote(session)
    return {"imported": imported}


@router.post("", response_model=EmissionRecordRead, status_code=status.HTTP_201_CREATED)
async def upload_emission_endpoint(
    data: EmissionRecordCreate,
    uploaded_by: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    """Upload a record. The (country, year) pair must not exist yet."""
    try:
        return await service.upload_record(session, data, uploaded_by)
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )


@router.get("/{record_id}", response_model=EmissionRecordRead)
async def get_emission_endpoint(
    record_id: int,
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    try:
        return await service.find_by_id(session, record_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )


@router.patch("/{record_id}", response_model=EmissionRecordRead)
async def edit_emission_endpoint(
    record_id: int,
    update: EmissionRecordUpdate,
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    """Direct edit of a record."""
    try:
        return await service.edit_record(session, record_id, update)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_emission_endpoint(
    record_id: int,
    session: AsyncSession = Depends(get_session),
    service: EmissionCacheService = Depends(get_emission_service)
):
    """Delete a record together with the proposals targeting it."""
    deleted = await service.delete_by_id(session, record_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Emission record {record_id} not found"
        )
