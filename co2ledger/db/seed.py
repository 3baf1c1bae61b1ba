"""
Development seeding script: demo contributors, demo uploads and the initial
OWID import.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from co2ledger.core.config import get_settings
from co2ledger.core.database import AsyncSessionLocal, init_db
from co2ledger.core.logging import setup_logging
from co2ledger.handlers.contributors import find_contributor, register_contributor
from co2ledger.handlers.emissions import count_records
from co2ledger.models.contributor import ContributorCreate, Role
from co2ledger.models.emission import EmissionRecordCreate
from co2ledger.services.emission_service import EmissionCacheService

logger = logging.getLogger(__name__)

DEMO_CONTRIBUTORS = [
    ContributorCreate(username="scientist", email="scientist@example.com",
                      first_name="Demo", last_name="Scientist", role=Role.SCIENTIST),
    ContributorCreate(username="admin", email="admin@example.com",
                      first_name="Demo", last_name="Admin", role=Role.ADMIN),
]

# Uploaded by the demo scientist so there is something to propose edits on
DEMO_UPLOADS = [
    EmissionRecordCreate(country_name="Germany", country_code="DEU", year=2024, co2_emission_kt=572000.0),
    EmissionRecordCreate(country_name="France", country_code="FRA", year=2024, co2_emission_kt=280000.0),
]

# Loaded only when the OWID import brings nothing
FALLBACK_RECORDS = [
    EmissionRecordCreate(country_name="Germany", country_code="DEU", year=2022, co2_emission_kt=665880.0),
    EmissionRecordCreate(country_name="Austria", country_code="AUT", year=2022, co2_emission_kt=58990.0),
    EmissionRecordCreate(country_name="Japan", country_code="JPN", year=2022, co2_emission_kt=1053800.0),
    EmissionRecordCreate(country_name="United States", country_code="USA", year=2022, co2_emission_kt=5057300.0),
    EmissionRecordCreate(country_name="China", country_code="CHN", year=2022, co2_emission_kt=11396800.0),
]


async def seed_contributors(session: AsyncSession) -> None:
    for data in DEMO_CONTRIBUTORS:
        if await find_contributor(session, data.username) is None:
            await register_contributor(session, data)


async def seed_records(
    session: AsyncSession,
    service: EmissionCacheService,
    records,
    uploaded_by: str
) -> int:
    created = 0
    for data in records:
        if await service.exists_for_country_and_year(session, data.country_name, data.year):
            continue
        await service.upload_record(session, data, uploaded_by)
        created += 1
    return created


async def seed_data(service: EmissionCacheService) -> None:
    """Seed database with demo contributors and emission data."""
    await init_db()

    async with AsyncSessionLocal() as session:
        await seed_contributors(session)

        if await count_records(session) > 0:
            logger.info("Data already exists (%d records)", await count_records(session))
            return

        logger.info("No data found - attempting OWID import")
        imported = await service.import_from_remote(session)
        if imported == 0:
            logger.warning("OWID import brought no records, loading fallback data")
            await seed_records(session, service, FALLBACK_RECORDS, "admin")

        created = await seed_records(session, service, DEMO_UPLOADS, "scientist")
        logger.info("Seed complete: %d imported, %d demo uploads", imported, created)


if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.log_level, "text")
    asyncio.run(seed_data(EmissionCacheService(settings)))
