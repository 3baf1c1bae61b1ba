"""
Peer-review workflow for edit proposals.

A contributor proposes a change to a record owned by someone else; the owner
approves or rejects it exactly once. Approval applies the proposal as a sparse
patch through EmissionCacheService.save, then marks the proposal approved.
"""

import asyncio
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from co2ledger.core.errors import ConflictError, InvalidStateError, NotFoundError
from co2ledger.handlers import proposals as proposal_store
from co2ledger.handlers.contributors import resolve_contributor
from co2ledger.handlers.emissions import find_by_country_and_year, get_record
from co2ledger.models.proposal import EditProposal, ProposalStatus, ProposedChanges
from co2ledger.services.emission_service import EmissionCacheService
from co2ledger.utils.time import utc_now

logger = logging.getLogger(__name__)


class ReviewWorkflow:
    """Creates, approves and rejects edit proposals."""

    def __init__(self, emission_service: EmissionCacheService):
        self.emission_service = emission_service
        # Serializes PENDING -> terminal transitions within this process
        self._resolve_lock = asyncio.Lock()

    async def create_proposal(
        self,
        session: AsyncSession,
        record_id: int,
        proposer_username: str,
        justification: Optional[str],
        changes: ProposedChanges
    ) -> EditProposal:
        """
        Open a PENDING proposal against a record.

        Raises:
            NotFoundError: record, proposer or record owner unknown
            ConflictError: proposer already has a pending proposal for the record
        """
        record = await get_record(session, record_id)
        if record is None:
            raise NotFoundError("Emission record", record_id)

        proposer = await resolve_contributor(session, proposer_username)
        owner = await resolve_contributor(session, record.uploaded_by)

        existing = await proposal_store.find_pending_proposal(session, record.id, proposer.id)
        if existing is not None:
            raise ConflictError(
                f"{proposer.username} already has pending proposal {existing.id} for record {record.id}"
            )

        proposal = EditProposal(
            emission_record_id=record.id,
            proposer_id=proposer.id,
            owner_id=owner.id,
            justification=justification,
            status=ProposalStatus.PENDING,
            requested_at=utc_now(),
            **changes.as_columns()
        )
        proposal = await proposal_store.save_proposal(session, proposal)

        logger.info(
            "Proposal %s created by %s for record %s owned by %s (fields: %s)",
            proposal.id, proposer.username, record.id, owner.username,
            ", ".join(changes.present_fields) or "none"
        )
        return proposal

    async def _get_pending(self, session: AsyncSession, proposal_id: int) -> EditProposal:
        proposal = await proposal_store.get_proposal(session, proposal_id)
        if proposal is None:
            raise NotFoundError("Edit proposal", proposal_id)
        # Another session may have resolved it since this one loaded it
        await session.refresh(proposal)
        if proposal.status != ProposalStatus.PENDING:
            raise InvalidStateError(proposal_id, proposal.status)
        return proposal

    async def approve(
        self,
        session: AsyncSession,
        proposal_id: int,
        response_message: Optional[str] = None
    ) -> EditProposal:
        """
        Apply a pending proposal to its record and mark it APPROVED.

        The record is written before the proposal, so a failure in between
        leaves the proposal pending rather than approved with nothing applied.

        Raises:
            NotFoundError: proposal or its record is missing
            InvalidStateError: proposal is no longer pending
            ConflictError: the patch would move the record onto a (country, year)
                pair held by another record; the proposal stays pending
        """
        async with self._resolve_lock:
            proposal = await self._get_pending(session, proposal_id)

            record = await get_record(session, proposal.emission_record_id)
            if record is None:
                raise NotFoundError("Emission record", proposal.emission_record_id)

            changes = proposal.changes
            present = changes.present_fields
            country_name = present.get("country_name", record.country_name)
            year = present.get("year", record.year)
            if (country_name, year) != (record.country_name, record.year):
                existing = await find_by_country_and_year(session, country_name, year)
                if existing is not None and existing.id != record.id:
                    raise ConflictError(
                        f"Proposal {proposal_id} would duplicate record {existing.id} "
                        f"for {country_name} ({year})"
                    )

            changes.apply_to(record)
            try:
                await self.emission_service.save(session, record)
            except SQLAlchemyError:
                # Discard the patched record; the proposal stays pending
                await session.rollback()
                raise

            proposal.status = ProposalStatus.APPROVED
            proposal.response_message = response_message
            proposal.responded_at = utc_now()
            proposal = await proposal_store.save_proposal(session, proposal)

        logger.info(
            "Proposal %s approved, record %s patched (fields: %s)",
            proposal_id, record.id, ", ".join(changes.present_fields) or "none"
        )
        return proposal

    async def reject(
        self,
        session: AsyncSession,
        proposal_id: int,
        response_message: Optional[str] = None
    ) -> EditProposal:
        """Mark a pending proposal REJECTED. The record is left untouched."""
        async with self._resolve_lock:
            proposal = await self._get_pending(session, proposal_id)

            proposal.status = ProposalStatus.REJECTED
            proposal.response_message = response_message
            proposal.responded_at = utc_now()
            proposal = await proposal_store.save_proposal(session, proposal)

        logger.info("Proposal %s rejected", proposal_id)
        return proposal

    async def pending_for_owner(self, session: AsyncSession, username: str) -> List[EditProposal]:
        """Pending proposals awaiting this owner's decision, newest first."""
        owner = await resolve_contributor(session, username)
        return await proposal_store.get_proposals_for_owner(session, owner.id, ProposalStatus.PENDING)

    async def pending_for_proposer(self, session: AsyncSession, username: str) -> List[EditProposal]:
        proposer = await resolve_contributor(session, username)
        return await proposal_store.get_proposals_by_proposer(session, proposer.id, ProposalStatus.PENDING)

    async def all_for_proposer(self, session: AsyncSession, username: str) -> List[EditProposal]:
        proposer = await resolve_contributor(session, username)
        return await proposal_store.get_proposals_by_proposer(session, proposer.id)

    async def count_pending_for_owner(self, session: AsyncSession, username: str) -> int:
        owner = await resolve_contributor(session, username)
        return await proposal_store.count_pending_for_owner(session, owner.id)

    async def get_by_id(self, session: AsyncSession, proposal_id: int) -> Optional[EditProposal]:
        return await proposal_store.get_proposal(session, proposal_id)
