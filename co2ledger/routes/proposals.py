"""
Edit proposal endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from co2ledger.core.database import get_session
from co2ledger.core.errors import ConflictError, InvalidStateError, NotFoundError
from co2ledger.models.proposal import EditProposalCreate, EditProposalRead, EditProposalResolve
from co2ledger.routes.deps import get_review_workflow
from co2ledger.services.review_workflow import ReviewWorkflow

router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.post("", response_model=EditProposalRead, status_code=status.HTTP_201_CREATED)
async def create_proposal_endpoint(
    data: EditProposalCreate,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    """Propose a change to another contributor's record."""
    try:
        return await workflow.create_proposal(
            session,
            data.emission_record_id,
            data.proposer,
            data.justification,
            data.changes
        )
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


@router.get("/owner/{username}", response_model=List[EditProposalRead])
async def owner_pending_endpoint(
    username: str,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    """Pending proposals awaiting this owner's decision."""
    try:
        return await workflow.pending_for_owner(session, username)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/owner/{username}/count")
async def owner_pending_count_endpoint(
    username: str,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    try:
        return {"pending": await workflow.count_pending_for_owner(session, username)}
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/proposer/{username}", response_model=List[EditProposalRead])
async def proposer_all_endpoint(
    username: str,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    """Every proposal submitted by a contributor."""
    try:
        return await workflow.all_for_proposer(session, username)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/proposer/{username}/pending", response_model=List[EditProposalRead])
async def proposer_pending_endpoint(
    username: str,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    try:
        return await workflow.pending_for_proposer(session, username)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{proposal_id}", response_model=EditProposalRead)
async def get_proposal_endpoint(
    proposal_id: int,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    proposal = await workflow.get_by_id(session, proposal_id)
    if not proposal:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Edit proposal {proposal_id} not found"
        )
    return proposal


@router.post("/{proposal_id}/approve", response_model=EditProposalRead)
async def approve_proposal_endpoint(
    proposal_id: int,
    body: EditProposalResolve,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    """Apply a pending proposal to its record."""
    try:
        return await workflow.approve(session, proposal_id, body.response_message)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (ConflictError, InvalidStateError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{proposal_id}/reject", response_model=EditProposalRead)
async def reject_proposal_endpoint(
    proposal_id: int,
    body: EditProposalResolve,
    session: AsyncSession = Depends(get_session),
    workflow: ReviewWorkflow = Depends(get_review_workflow)
):
    try:
        return await workflow.reject(session, proposal_id, body.response_message)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
