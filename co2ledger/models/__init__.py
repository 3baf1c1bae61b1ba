# SQLModel database models

from co2ledger.models.emission import EmissionRecord
from co2ledger.models.contributor import Contributor
from co2ledger.models.proposal import EditProposal

__all__ = [
    "EmissionRecord",
    "Contributor",
    "EditProposal",
]
