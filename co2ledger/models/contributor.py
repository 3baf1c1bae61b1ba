"""
Contributor model - accounts known to the identity provider.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from co2ledger.utils.time import utc_now


class Role(str, Enum):
    """Contributor roles."""
    SCIENTIST = "SCIENTIST"
    ADMIN = "ADMIN"


class ContributorBase(SQLModel):
    """Base contributor schema."""
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3)
    role: Role = Field(default=Role.SCIENTIST)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization: Optional[str] = None


class Contributor(ContributorBase, table=True):
    """Contributor database table."""
    __tablename__ = "contributors"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(..., index=True, unique=True, max_length=64)
    enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)


class ContributorCreate(ContributorBase):
    """Schema for registering a contributor."""
    pass


class ContributorRead(ContributorBase):
    """Schema for reading a contributor."""
    id: int
    enabled: bool
    created_at: datetime
