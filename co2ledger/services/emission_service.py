"""
Emission data service: read-through cache over the OWID dataset and the
record store, plus every record mutation that has to keep the cache consistent.
"""

import asyncio
import logging
from itertools import groupby
from typing import Awaitable, Callable, Dict, Any, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from co2ledger.core.config import Settings, get_settings
from co2ledger.core.constants import (
    DEFAULT_LATEST_YEAR,
    IMPORT_DATA_SOURCE,
    IMPORT_UPLOADER,
    LIVE_DATA_SOURCE,
    LIVE_UPLOADER,
    UPLOAD_DATA_SOURCE_PREFIX,
)
from co2ledger.core.errors import ConflictError, NotFoundError, SourceUnavailableError
from co2ledger.handlers import emissions as store
from co2ledger.handlers.owid import (
    fetch_owid_document,
    is_valid_country,
    load_owid_document,
    parse_owid_document,
)
from co2ledger.handlers.proposals import delete_proposals_for_record
from co2ledger.models.emission import (
    EmissionRecord,
    EmissionRecordCreate,
    EmissionRecordRead,
    EmissionRecordUpdate,
)
from co2ledger.services.snapshot_cache import SnapshotCache
from co2ledger.utils.time import today

logger = logging.getLogger(__name__)

DocumentFetcher = Callable[[], Awaitable[str]]


def to_read(record: EmissionRecord) -> EmissionRecordRead:
    """Detached copy of a record for the snapshot."""
    return EmissionRecordRead.model_validate(record)


def _copies(entries: Iterable[EmissionRecordRead]) -> List[EmissionRecordRead]:
    """Snapshot entries are shared; callers get their own copies."""
    return [entry.model_copy() for entry in entries]


class EmissionCacheService:
    """
    Read-through cache over the remote OWID dataset with the record store as
    fallback.

    One instance per process. All methods run inside the awaiting call; the
    only shared state is the SnapshotCache.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        fetch_document: Optional[DocumentFetcher] = None,
        cache: Optional[SnapshotCache] = None
    ):
        self.settings = settings or get_settings()
        self.cache = cache or SnapshotCache(self.settings.cache_ttl_seconds)
        self._fetch_document = fetch_document or self._fetch_from_owid
        self._refresh_lock = asyncio.Lock()

    async def _fetch_from_owid(self) -> str:
        return await fetch_owid_document(
            self.settings.owid_data_url,
            self.settings.owid_timeout_seconds
        )

    async def _load_remote(self, data_source: str, uploaded_by: str) -> List[EmissionRecord]:
        """Fetch and parse the remote document. Any failure yields an empty list."""
        try:
            raw = await self._fetch_document()
            document = load_owid_document(raw, self.settings.owid_min_payload_chars)
        except SourceUnavailableError as e:
            logger.warning("OWID source unavailable: %s", e)
            return []

        try:
            return parse_owid_document(document, data_source, uploaded_by, today())
        except Exception:
            logger.exception("Unexpected failure while parsing the OWID document")
            return []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(self, session: AsyncSession) -> List[EmissionRecordRead]:
        """
        All records from a fresh snapshot, refreshing it when missing or expired.

        A refresh makes one remote attempt; if it yields nothing, the store is
        read instead (country name ascending, year descending).
        """
        snapshot = self.cache.fresh()
        if snapshot is not None:
            logger.debug("Cache hit: %d records", len(snapshot.records))
            return _copies(snapshot.records)

        async with self._refresh_lock:
            # Another request may have refreshed while we waited
            snapshot = self.cache.fresh()
            if snapshot is not None:
                return _copies(snapshot.records)

            logger.info("Cache miss - loading fresh data")
            generation = self.cache.generation

            records = await self._load_remote(LIVE_DATA_SOURCE, LIVE_UPLOADER)
            source = "OWID"
            if not records:
                logger.warning("OWID returned no records, using database fallback")
                records = await store.get_all_records(session)
                source = "database"

            entries = [to_read(record) for record in records]
            if await self.cache.replace(entries, expected_generation=generation):
                logger.info("%d records loaded from %s and cached", len(entries), source)
            else:
                logger.info("Cache invalidated during refresh; %d records from %s not cached", len(entries), source)

            return _copies(entries)

    async def get_by_country(self, session: AsyncSession, country_name: str) -> List[EmissionRecord]:
        """Store records for a country, so uploaded corrections show up immediately."""
        records = await store.get_records_by_country(session, country_name)
        logger.debug("Found %d records for %s", len(records), country_name)
        return records

    async def get_by_uploader(self, session: AsyncSession, username: Optional[str]) -> List[EmissionRecord]:
        if not username or not username.strip():
            return []
        return await store.get_records_by_uploader(session, username)

    async def get_all_sorted(self, session: AsyncSession) -> List[EmissionRecord]:
        """Store records with a year and a valid country, newest year then newest source date first."""
        records = await store.get_records_with_year(session)
        return [record for record in records if is_valid_country(record.country_name)]

    async def get_recent(self, session: AsyncSession, limit: int = 10) -> List[EmissionRecord]:
        return await store.get_records_with_year(session, limit=limit)

    async def get_by_source(self, session: AsyncSession, data_source: str) -> List[EmissionRecord]:
        return await store.get_records_by_source(session, data_source)

    async def find_by_id(self, session: AsyncSession, record_id: int) -> EmissionRecord:
        record = await store.get_record(session, record_id)
        if record is None:
            raise NotFoundError("Emission record", record_id)
        return record

    async def exists_for_country_and_year(self, session: AsyncSession, country_name: str, year: int) -> bool:
        return await store.find_by_country_and_year(session, country_name, year) is not None

    async def get_country_count(self, session: AsyncSession) -> int:
        """
        Distinct country names in the store.

        Falls back to the snapshot only when the store holds no records; store
        errors propagate.
        """
        count = await store.count_distinct_countries(session)
        if count:
            return count

        snapshot = self.cache.snapshot
        if snapshot is None:
            return 0
        return len({record.country_name for record in snapshot.records})

    async def get_latest_year(self, session: AsyncSession) -> int:
        """
        Highest year in the store.

        Falls back to the snapshot, then to DEFAULT_LATEST_YEAR, only when the
        store holds no records; store errors propagate.
        """
        latest = await store.get_max_year(session)
        if latest is not None:
            return latest

        snapshot = self.cache.snapshot
        if snapshot is not None and snapshot.records:
            return max(record.year for record in snapshot.records)
        return DEFAULT_LATEST_YEAR

    async def get_all_countries(self, session: AsyncSession) -> List[str]:
        """Distinct country names from the store, or from get_all when the store is empty."""
        countries = await store.get_distinct_country_names(session)
        if countries:
            return countries

        records = await self.get_all(session)
        return sorted({record.country_name for record in records})

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def save(self, session: AsyncSession, record: EmissionRecord) -> EmissionRecord:
        """Upsert and drop the snapshot; the next get_all refreshes."""
        saved = await store.save_record(session, record)
        await self.cache.invalidate()
        logger.info("Saved record %s (%s %s), cache cleared", saved.id, saved.country_name, saved.year)
        return saved

    async def save_fast(self, session: AsyncSession, record: EmissionRecord) -> EmissionRecord:
        """
        Upsert and patch the matching snapshot entry in place.

        Without a snapshot the change only becomes visible on the next refresh.
        """
        saved = await store.save_record(session, record)
        if await self.cache.patch(to_read(saved)):
            logger.info("Cache updated for ID %s - %s (%s)", saved.id, saved.country_name, saved.year)
        return saved

    async def delete_by_id(self, session: AsyncSession, record_id: int) -> bool:
        """
        Delete a record and every proposal targeting it.

        Returns False when the record did not exist.
        """
        try:
            record = await store.get_record(session, record_id)
            if record is None:
                return False

            removed = await delete_proposals_for_record(session, record_id)
            await session.delete(record)
            await session.commit()
            logger.info("Deleted record %s and %d related proposals", record_id, removed)
            return True
        finally:
            await self.cache.invalidate()

    async def upload_record(
        self,
        session: AsyncSession,
        data: EmissionRecordCreate,
        uploaded_by: str
    ) -> EmissionRecord:
        """Store a manual upload; an existing (country, year) pair is a conflict."""
        if await self.exists_for_country_and_year(session, data.country_name, data.year):
            raise ConflictError(f"Data for {data.country_name} ({data.year}) already exists")

        record = EmissionRecord(
            **data.model_dump(),
            source_date=today(),
            data_source=f"{UPLOAD_DATA_SOURCE_PREFIX}{uploaded_by}",
            uploaded_by=uploaded_by
        )
        return await self.save(session, record)

    async def edit_record(
        self,
        session: AsyncSession,
        record_id: int,
        update: EmissionRecordUpdate
    ) -> EmissionRecord:
        """Direct edit of an existing record, reflected in the snapshot without a refresh."""
        record = await self.find_by_id(session, record_id)

        if (update.country_name, update.year) != (record.country_name, record.year):
            existing = await store.find_by_country_and_year(session, update.country_name, update.year)
            if existing is not None and existing.id != record.id:
                raise ConflictError(f"Data for {update.country_name} ({update.year}) already exists")

        record.country_name = update.country_name
        record.year = update.year
        record.co2_emission_kt = update.co2_emission_kt
        if update.data_source:
            record.data_source = update.data_source
        record.source_date = today()

        return await self.save_fast(session, record)

    async def import_from_remote(self, session: AsyncSession) -> int:
        """
        Persist every remote (country, year) pair not yet in the store.

        Returns the number of new records. The cache is cleared afterwards
        whatever the outcome.
        """
        imported = 0
        try:
            records = await self._load_remote(IMPORT_DATA_SOURCE, IMPORT_UPLOADER)
            seen = set()

            for country_name, country_records in groupby(records, key=lambda r: r.country_name):
                added = 0
                try:
                    for record in country_records:
                        key = (record.country_name, record.year)
                        if key in seen:
                            continue
                        seen.add(key)

                        if await self.exists_for_country_and_year(session, *key):
                            continue
                        session.add(record)
                        added += 1

                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error("Database error for country %s: %s", country_name, e)
                    continue

                imported += added
                if added:
                    logger.debug("%d records saved for %s", added, country_name)

            logger.info("%d new CO2 records imported to database", imported)
            return imported
        finally:
            await self.cache.invalidate()

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    async def clear_cache(self) -> None:
        await self.cache.invalidate()
        logger.info("Cache manually cleared - next request will reload")

    def cache_status(self) -> str:
        return self.cache.status()

    async def statistics(self, session: AsyncSession) -> Dict[str, Any]:
        return {
            "cache": self.cache_status(),
            "records": await store.count_records(session),
            "imported_records": await store.count_records(session, uploaded_by=IMPORT_UPLOADER),
            "countries": await self.get_country_count(session),
            "latest_year": await self.get_latest_year(session),
        }
