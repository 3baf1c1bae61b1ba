"""
Edit proposal store queries.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete
from sqlmodel import select, func
from typing import List, Optional

from co2ledger.models.proposal import EditProposal, ProposalStatus


def _newest_first(statement):
    return statement.order_by(EditProposal.requested_at.desc(), EditProposal.id.desc())


async def get_proposal(session: AsyncSession, proposal_id: int) -> Optional[EditProposal]:
    """Get edit proposal by ID."""
    return await session.get(EditProposal, proposal_id)


async def save_proposal(session: AsyncSession, proposal: EditProposal) -> EditProposal:
    """Insert or update a proposal."""
    session.add(proposal)
    await session.commit()
    await session.refresh(proposal)
    return proposal


async def find_pending_proposal(
    session: AsyncSession,
    emission_record_id: int,
    proposer_id: int
) -> Optional[EditProposal]:
    """The open proposal of a proposer for a record, if any."""
    statement = select(EditProposal).where(
        EditProposal.emission_record_id == emission_record_id,
        EditProposal.proposer_id == proposer_id,
        EditProposal.status == ProposalStatus.PENDING
    )
    result = await session.execute(statement)
    return result.scalars().first()


async def get_proposals_for_owner(
    session: AsyncSession,
    owner_id: int,
    status: ProposalStatus
) -> List[EditProposal]:
    """Proposals addressed to a record owner with the given status, newest first."""
    statement = _newest_first(select(EditProposal).where(
        EditProposal.owner_id == owner_id,
        EditProposal.status == status
    ))
    result = await session.execute(statement)
    return list(result.scalars().all())


async def get_proposals_by_proposer(
    session: AsyncSession,
    proposer_id: int,
    status: Optional[ProposalStatus] = None
) -> List[EditProposal]:
    """Proposals submitted by a contributor, optionally filtered by status, newest first."""
    statement = select(EditProposal).where(EditProposal.proposer_id == proposer_id)
    if status is not None:
        statement = statement.where(EditProposal.status == status)

    result = await session.execute(_newest_first(statement))
    return list(result.scalars().all())


async def get_proposals_for_record(session: AsyncSession, emission_record_id: int) -> List[EditProposal]:
    """All proposals targeting a record, newest first."""
    statement = _newest_first(select(EditProposal).where(
        EditProposal.emission_record_id == emission_record_id
    ))
    result = await session.execute(statement)
    return list(result.scalars().all())


async def count_pending_for_owner(session: AsyncSession, owner_id: int) -> int:
    statement = select(func.count()).select_from(EditProposal).where(
        EditProposal.owner_id == owner_id,
        EditProposal.status == ProposalStatus.PENDING
    )
    result = await session.execute(statement)
    return result.scalar() or 0


async def delete_proposals_for_record(session: AsyncSession, emission_record_id: int) -> int:
    """
    Delete every proposal targeting a record.

    Does not commit; the caller commits together with the record deletion.
    """
    statement = delete(EditProposal).where(EditProposal.emission_record_id == emission_record_id)
    result = await session.execute(statement)
    return result.rowcount or 0
