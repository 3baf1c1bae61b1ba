"""
Emission record store queries.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func
from typing import List, Optional

from co2ledger.models.emission import EmissionRecord


async def get_record(session: AsyncSession, record_id: int) -> Optional[EmissionRecord]:
    """Get emission record by ID."""
    return await session.get(EmissionRecord, record_id)


async def save_record(session: AsyncSession, record: EmissionRecord) -> EmissionRecord:
    """Insert or update a record and return it with its assigned ID."""
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def find_by_country_and_year(
    session: AsyncSession,
    country_name: str,
    year: int
) -> Optional[EmissionRecord]:
    """Get the record for an exact (country name, year) pair."""
    statement = select(EmissionRecord).where(
        EmissionRecord.country_name == country_name,
        EmissionRecord.year == year
    )
    result = await session.execute(statement)
    return result.scalars().first()


async def get_all_records(session: AsyncSession) -> List[EmissionRecord]:
    """All records ordered by country name ascending, then year descending."""
    statement = select(EmissionRecord).order_by(
        EmissionRecord.country_name.asc(),
        EmissionRecord.year.desc()
    )
    result = await session.execute(statement)
    return list(result.scalars().all())


async def get_records_with_year(
    session: AsyncSession,
    limit: Optional[int] = None
) -> List[EmissionRecord]:
    """Records with a year, newest year first, then newest source date."""
    statement = select(EmissionRecord).where(
        EmissionRecord.year.is_not(None)
    ).order_by(
        EmissionRecord.year.desc(),
        EmissionRecord.source_date.desc()
    )

    if limit is not None:
        statement = statement.limit(limit)

    result = await session.execute(statement)
    return list(result.scalars().all())


async def get_records_by_uploader(session: AsyncSession, uploaded_by: str) -> List[EmissionRecord]:
    """Records last written by a contributor, newest source date first."""
    statement = select(EmissionRecord).where(
        EmissionRecord.uploaded_by == uploaded_by
    ).order_by(EmissionRecord.source_date.desc(), EmissionRecord.id.desc())

    result = await session.execute(statement)
    return list(result.scalars().all())


async def get_records_by_country(session: AsyncSession, country_name: str) -> List[EmissionRecord]:
    """Records for a country (case-insensitive), newest year first."""
    statement = select(EmissionRecord).where(
        func.lower(EmissionRecord.country_name) == country_name.lower()
    ).order_by(EmissionRecord.year.desc())

    result = await session.execute(statement)
    return list(result.scalars().all())


async def get_records_by_source(session: AsyncSession, data_source: str) -> List[EmissionRecord]:
    """Records with a given provenance label, newest source date first."""
    statement = select(EmissionRecord).where(
        EmissionRecord.data_source == data_source
    ).order_by(EmissionRecord.source_date.desc(), EmissionRecord.id.desc())

    result = await session.execute(statement)
    return list(result.scalars().all())


async def get_distinct_country_names(session: AsyncSession) -> List[str]:
    """Distinct country names in the store, sorted."""
    statement = select(EmissionRecord.country_name).distinct().order_by(EmissionRecord.country_name)
    result = await session.execute(statement)
    return list(result.scalars().all())


async def count_distinct_countries(session: AsyncSession) -> int:
    statement = select(func.count(func.distinct(EmissionRecord.country_name)))
    result = await session.execute(statement)
    return result.scalar() or 0


async def get_max_year(session: AsyncSession) -> Optional[int]:
    result = await session.execute(select(func.max(EmissionRecord.year)))
    return result.scalar()


async def count_records(session: AsyncSession, uploaded_by: Optional[str] = None) -> int:
    """Count records, optionally only those last written by one uploader."""
    statement = select(func.count()).select_from(EmissionRecord)

    if uploaded_by is not None:
        statement = statement.where(EmissionRecord.uploaded_by == uploaded_by)

    result = await session.execute(statement)
    return result.scalar() or 0
