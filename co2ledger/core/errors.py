"""
Domain error taxonomy.

Workflow errors (NotFoundError, ConflictError, InvalidStateError) surface to
callers unchanged. SourceUnavailableError is raised by the remote client and
always absorbed by EmissionCacheService.
"""

from typing import Any


class LedgerError(Exception):
    """Base class for all co2ledger errors."""


class NotFoundError(LedgerError):
    """A record, proposal or contributor does not exist."""

    def __init__(self, kind: str, identifier: Any):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class ConflictError(LedgerError):
    """Duplicate pending proposal, duplicate country/year pair or duplicate account."""


class InvalidStateError(LedgerError):
    """Action attempted on a proposal that is no longer pending."""

    def __init__(self, proposal_id: int, status: Any):
        self.proposal_id = proposal_id
        self.status = status
        super().__init__(f"Proposal {proposal_id} was already resolved (status: {getattr(status, 'value', status)})")


class SourceUnavailableError(LedgerError):
    """The remote bulk source could not deliver a usable document."""
