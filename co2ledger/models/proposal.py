"""
Edit proposal model - peer-review requests to change another contributor's record.
"""

from sqlmodel import SQLModel, Field
from pydantic import BaseModel, model_validator
from pydantic import Field as SchemaField
from typing import Optional, Dict, Any, TYPE_CHECKING
from datetime import datetime
from enum import Enum

from co2ledger.utils.time import utc_now

if TYPE_CHECKING:
    from co2ledger.models.emission import EmissionRecord


class ProposalStatus(str, Enum):
    """Edit proposal lifecycle. EXPIRED is reserved; nothing transitions into it."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class ProposedChanges(BaseModel):
    """
    Sparse patch for an emission record.

    Each field is either present (listed in ``model_fields_set``) or absent.
    Absent fields are never touched when the patch is applied.
    """
    country_name: Optional[str] = SchemaField(default=None, min_length=1)
    year: Optional[int] = SchemaField(default=None, ge=1750, le=2100)
    co2_emission_kt: Optional[float] = SchemaField(default=None, ge=0)
    data_source: Optional[str] = SchemaField(default=None, min_length=1)

    @model_validator(mode="after")
    def _reject_explicit_nulls(self) -> "ProposedChanges":
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null; omit it to leave the field unchanged")
        return self

    @property
    def present_fields(self) -> Dict[str, Any]:
        """Fields carried by this patch, keyed by record attribute name."""
        return {name: getattr(self, name) for name in sorted(self.model_fields_set)}

    def is_empty(self) -> bool:
        return not self.model_fields_set

    def apply_to(self, record: "EmissionRecord") -> None:
        """Overwrite only the present fields on ``record``."""
        for name, value in self.present_fields.items():
            setattr(record, name, value)

    def as_columns(self) -> Dict[str, Any]:
        """Map the patch onto the proposal's ``proposed_*`` columns."""
        return {f"proposed_{name}": value for name, value in self.present_fields.items()}

    @classmethod
    def from_proposal(cls, proposal: "EditProposal") -> "ProposedChanges":
        """Rebuild the patch from a stored proposal; NULL columns are absent fields."""
        values = {}
        for name in cls.model_fields:
            value = getattr(proposal, f"proposed_{name}")
            if value is not None:
                values[name] = value
        return cls(**values)


class EditProposalBase(SQLModel):
    """Base edit proposal schema."""
    emission_record_id: int = Field(..., foreign_key="emission_records.id", index=True)
    proposer_id: int = Field(..., foreign_key="contributors.id", index=True)
    owner_id: int = Field(..., foreign_key="contributors.id", index=True)
    justification: Optional[str] = Field(default=None, description="Why the proposer wants the change")
    proposed_country_name: Optional[str] = None
    proposed_year: Optional[int] = None
    proposed_co2_emission_kt: Optional[float] = None
    proposed_data_source: Optional[str] = None
    status: ProposalStatus = Field(default=ProposalStatus.PENDING)
    response_message: Optional[str] = None


class EditProposal(EditProposalBase, table=True):
    """Edit proposal database table."""
    __tablename__ = "edit_proposals"

    id: Optional[int] = Field(default=None, primary_key=True)
    requested_at: datetime = Field(default_factory=utc_now)
    responded_at: Optional[datetime] = None

    @property
    def changes(self) -> ProposedChanges:
        return ProposedChanges.from_proposal(self)

    @property
    def is_pending(self) -> bool:
        return self.status == ProposalStatus.PENDING


class EditProposalCreate(BaseModel):
    """Schema for submitting an edit proposal."""
    emission_record_id: int
    proposer: str = SchemaField(..., min_length=1, description="Username of the proposing contributor")
    justification: Optional[str] = None
    changes: ProposedChanges = SchemaField(default_factory=ProposedChanges)


class EditProposalResolve(BaseModel):
    """Schema for approving or rejecting a proposal."""
    response_message: Optional[str] = None


class EditProposalRead(EditProposalBase):
    """Schema for reading an edit proposal."""
    id: int
    requested_at: datetime
    responded_at: Optional[datetime] = None
