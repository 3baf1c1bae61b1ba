"""
Emission record model - one CO2 value per country and year.
"""

from sqlmodel import SQLModel, Field
from sqlalchemy import Index
from typing import Optional
from datetime import date


class EmissionRecordBase(SQLModel):
    """Base emission record schema."""
    country_name: str = Field(..., description="Country name as published by the source")
    country_code: str = Field(..., description="ISO-3166 alpha-3 country code", max_length=3)
    year: int = Field(..., description="Observation year")
    co2_emission_kt: float = Field(..., description="CO2 emissions in kilotons", ge=0)
    source_date: Optional[date] = Field(default=None, description="Date the value was written")
    data_source: Optional[str] = Field(default=None, description="Provenance label")
    uploaded_by: Optional[str] = Field(default=None, description="Identity of the last writer")


class EmissionRecord(EmissionRecordBase, table=True):
    """Emission record database table."""
    __tablename__ = "emission_records"
    __table_args__ = (
        Index("ix_emission_records_country_year", "country_name", "year"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)


class EmissionRecordCreate(SQLModel):
    """Schema for uploading an emission record."""
    country_name: str = Field(..., min_length=1)
    country_code: str = Field(..., min_length=3, max_length=3)
    year: int
    co2_emission_kt: float = Field(..., ge=0)


class EmissionRecordUpdate(SQLModel):
    """Schema for a direct edit by the record owner."""
    country_name: str = Field(..., min_length=1)
    year: int
    co2_emission_kt: float = Field(..., ge=0)
    data_source: Optional[str] = None


class EmissionRecordRead(EmissionRecordBase):
    """Schema for reading an emission record. Remote-derived entries have no id."""
    id: Optional[int] = None
