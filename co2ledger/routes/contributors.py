"""
Contributor endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from co2ledger.core.database import get_session
from co2ledger.core.errors import ConflictError
from co2ledger.models.contributor import ContributorCreate, ContributorRead
from co2ledger.handlers.contributors import find_contributor, register_contributor

router = APIRouter(prefix="/contributors", tags=["contributors"])


@router.post("", response_model=ContributorRead, status_code=status.HTTP_201_CREATED)
async def register_contributor_endpoint(
    data: ContributorCreate,
    session: AsyncSession = Depends(get_session)
):
    """Register a new contributor."""
    try:
        return await register_contributor(session, data)
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )


@router.get("/{username}", response_model=ContributorRead)
async def get_contributor_endpoint(
    username: str,
    session: AsyncSession = Depends(get_session)
):
    contributor = await find_contributor(session, username)
    if not contributor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Contributor {username} not found"
        )
    return contributor
