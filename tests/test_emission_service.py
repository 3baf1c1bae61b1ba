"""
Tests for EmissionCacheService: read-through refresh, store fallback,
invalidation rules, store queries and the OWID import.
"""

import asyncio
from datetime import date

import pytest
from sqlmodel import select

from co2ledger.core.constants import (
    IMPORT_DATA_SOURCE,
    IMPORT_UPLOADER,
    LIVE_DATA_SOURCE,
    LIVE_UPLOADER,
)
from co2ledger.core.errors import ConflictError, NotFoundError
from co2ledger.models.emission import EmissionRecord, EmissionRecordCreate, EmissionRecordUpdate
from conftest import owid_country

TWO_COUNTRIES = {
    "Germany": owid_country("DEU", (2019, 707.0), (2020, 644.0)),
    "Japan": owid_country("JPN", (2019, 1107.0), (2020, 1030.0)),
}


async def all_stored(session):
    result = await session.execute(select(EmissionRecord))
    return list(result.scalars().all())


class TestGetAll:

    @pytest.mark.asyncio
    async def test_remote_result_becomes_snapshot(self, service, source, session):
        source.serve(TWO_COUNTRIES)

        records = await service.get_all(session)

        assert len(records) == 4
        assert {r.data_source for r in records} == {LIVE_DATA_SOURCE}
        assert {r.uploaded_by for r in records} == {LIVE_UPLOADER}
        assert service.cache.fresh() is not None

    @pytest.mark.asyncio
    async def test_fresh_snapshot_is_served_without_refetch(self, service, source, session, clock):
        source.serve(TWO_COUNTRIES)
        await service.get_all(session)

        clock.advance(29 * 60)
        source.fail()
        records = await service.get_all(session)

        assert source.calls == 1
        assert len(records) == 4

    @pytest.mark.asyncio
    async def test_expired_snapshot_is_refreshed(self, service, source, session, clock):
        source.serve(TWO_COUNTRIES)
        await service.get_all(session)

        clock.advance(30 * 60)
        source.serve({"Austria": owid_country("AUT", (2020, 60.0))})
        records = await service.get_all(session)

        assert source.calls == 2
        assert [r.country_name for r in records] == ["Austria"]

    @pytest.mark.asyncio
    async def test_falls_back_to_store_ordered_by_country_then_year(self, service, source, session, make_record):
        source.fail()
        await make_record("Japan", 2019)
        await make_record("Austria", 2018)
        await make_record("Austria", 2021)

        records = await service.get_all(session)

        assert [(r.country_name, r.year) for r in records] == [
            ("Austria", 2021), ("Austria", 2018), ("Japan", 2019)
        ]
        assert service.cache.fresh() is not None

    @pytest.mark.asyncio
    async def test_remote_document_without_usable_rows_falls_back(self, service, source, session, make_record):
        source.serve({"World": owid_country("WLD", (2020, 35000.0))})
        await make_record("Germany", 2020)

        records = await service.get_all(session)

        assert [r.country_name for r in records] == ["Germany"]

    @pytest.mark.asyncio
    async def test_unparseable_numbers_fall_back_instead_of_raising(self, service, source, session):
        source.payload = '{"Germany": {"iso_code": "DEU", "data": [{"year": 1e999, "co2": 1.0}]}}' + " " * 1200

        assert await service.get_all(session) == []
        assert await service.import_from_remote(session) == 0

    @pytest.mark.asyncio
    async def test_unexpected_parse_failure_yields_no_records(self, service, source, session, monkeypatch):
        source.serve(TWO_COUNTRIES)

        def broken_parse(*args):
            raise RuntimeError("parser bug")

        monkeypatch.setattr("co2ledger.services.emission_service.parse_owid_document", broken_parse)

        assert await service.get_all(session) == []

    @pytest.mark.asyncio
    async def test_returned_entries_do_not_alias_the_snapshot(self, service, source, session):
        source.serve(TWO_COUNTRIES)
        first = await service.get_all(session)

        first[0].co2_emission_kt = -1.0
        second = await service.get_all(session)

        assert source.calls == 1
        assert all(entry.co2_emission_kt > 0 for entry in second)
        assert all(entry.co2_emission_kt > 0 for entry in service.cache.snapshot.records)

    @pytest.mark.asyncio
    async def test_concurrent_misses_fetch_once(self, service, source, session):
        source.serve(TWO_COUNTRIES)
        original = source.__call__
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return await original()

        service._fetch_document = slow_fetch

        first = asyncio.ensure_future(service.get_all(session))
        second = asyncio.ensure_future(service.get_all(session))
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(first, second)

        assert source.calls == 1
        assert len(results[0]) == len(results[1]) == 4

    @pytest.mark.asyncio
    async def test_refresh_overtaken_by_invalidation_is_not_cached(self, service, source, session):
        source.serve(TWO_COUNTRIES)
        original = source.__call__

        async def fetch_then_invalidate():
            payload = await original()
            await service.clear_cache()
            return payload

        service._fetch_document = fetch_then_invalidate

        records = await service.get_all(session)

        assert len(records) == 4
        assert service.cache.snapshot is None


class TestMutations:

    @pytest.mark.asyncio
    async def test_save_invalidates_and_next_read_sees_store(self, service, source, session, make_record):
        source.fail()
        await make_record("Germany", 2020)
        await service.get_all(session)

        await service.save(session, EmissionRecord(
            country_name="Austria", country_code="AUT", year=2020, co2_emission_kt=60.0, uploaded_by="alice"
        ))

        assert service.cache.snapshot is None
        records = await service.get_all(session)
        assert [r.country_name for r in records] == ["Austria", "Germany"]

    @pytest.mark.asyncio
    async def test_save_fast_patches_only_the_matching_entry(self, service, source, session, make_record, clock):
        source.fail()
        germany = await make_record("Germany", 2020, co2_emission_kt=700.0)
        await make_record("Austria", 2020, co2_emission_kt=60.0)
        await make_record("Japan", 2020, co2_emission_kt=1000.0)
        before = {r.id: r for r in await service.get_all(session)}
        captured_at = service.cache.snapshot.captured_at

        germany.co2_emission_kt = 650.0
        germany.data_source = "Revised"
        await service.save_fast(session, germany)

        clock.advance(60)
        after = {r.id: r for r in await service.get_all(session)}
        assert source.calls == 1
        assert service.cache.snapshot.captured_at == captured_at
        assert after[germany.id].co2_emission_kt == 650.0
        assert after[germany.id].data_source == "Revised"
        for record_id, cached in before.items():
            if record_id != germany.id:
                assert after[record_id] == cached

    @pytest.mark.asyncio
    async def test_save_fast_without_snapshot_only_writes_store(self, service, session, make_record):
        record = await make_record("Germany", 2020, co2_emission_kt=700.0)
        record.co2_emission_kt = 1.0

        await service.save_fast(session, record)

        assert service.cache.snapshot is None
        stored = await service.find_by_id(session, record.id)
        assert stored.co2_emission_kt == 1.0

    @pytest.mark.asyncio
    async def test_upload_rejects_duplicate_country_year(self, service, session):
        data = EmissionRecordCreate(country_name="Chad", country_code="TCD", year=2021, co2_emission_kt=2.5)
        record = await service.upload_record(session, data, "alice")

        assert record.uploaded_by == "alice"
        assert record.data_source == "Contributor upload - alice"
        assert record.source_date is not None
        with pytest.raises(ConflictError):
            await service.upload_record(session, data, "bob")

    @pytest.mark.asyncio
    async def test_edit_record_rejects_move_onto_existing_pair(self, service, session, make_record):
        await make_record("Germany", 2019)
        record = await make_record("Germany", 2020)

        with pytest.raises(ConflictError):
            await service.edit_record(session, record.id, EmissionRecordUpdate(
                country_name="Germany", year=2019, co2_emission_kt=1.0
            ))

        edited = await service.edit_record(session, record.id, EmissionRecordUpdate(
            country_name="Germany", year=2020, co2_emission_kt=1.0
        ))
        assert edited.co2_emission_kt == 1.0
        assert edited.data_source == "Manual"

    @pytest.mark.asyncio
    async def test_edit_missing_record(self, service, session):
        with pytest.raises(NotFoundError):
            await service.edit_record(session, 404, EmissionRecordUpdate(
                country_name="Germany", year=2020, co2_emission_kt=1.0
            ))

    @pytest.mark.asyncio
    async def test_delete_missing_record_still_invalidates(self, service, source, session, make_record):
        source.fail()
        await make_record("Germany", 2020)
        await service.get_all(session)

        assert not await service.delete_by_id(session, 999)
        assert service.cache.snapshot is None


class TestStoreQueries:

    @pytest.mark.asyncio
    async def test_get_by_country_is_case_insensitive_and_newest_first(self, service, session, make_record):
        await make_record("Germany", 2018)
        await make_record("Germany", 2021)
        await make_record("Austria", 2021)

        records = await service.get_by_country(session, "gErMaNy")

        assert [r.year for r in records] == [2021, 2018]

    @pytest.mark.asyncio
    async def test_get_by_uploader_orders_by_source_date(self, service, session, make_record):
        await make_record("Germany", 2018, source_date=date(2024, 1, 1))
        await make_record("Austria", 2018, source_date=date(2025, 1, 1))
        await make_record("Japan", 2018, uploaded_by="bob")

        records = await service.get_by_uploader(session, "alice")

        assert [r.country_name for r in records] == ["Austria", "Germany"]
        assert await service.get_by_uploader(session, "  ") == []

    @pytest.mark.asyncio
    async def test_get_all_sorted_excludes_aggregates(self, service, session, make_record):
        await make_record("Germany", 2020, source_date=date(2024, 1, 1))
        await make_record("Austria", 2020, source_date=date(2025, 1, 1))
        await make_record("Japan", 2021)
        await make_record("World", 2022, country_code="WLD")
        await make_record("Asia (excl. China & India)", 2022, country_code="ASI")

        records = await service.get_all_sorted(session)

        assert [r.country_name for r in records] == ["Japan", "Austria", "Germany"]

    @pytest.mark.asyncio
    async def test_exists_for_country_and_year(self, service, session, make_record):
        await make_record("Germany", 2020)

        assert await service.exists_for_country_and_year(session, "Germany", 2020)
        assert not await service.exists_for_country_and_year(session, "Germany", 2021)

    @pytest.mark.asyncio
    async def test_statistics(self, service, source, session, make_record):
        source.fail()
        await make_record("Germany", 2020)
        await make_record("Germany", 2021)
        await make_record("Japan", 2019, uploaded_by=IMPORT_UPLOADER)

        stats = await service.statistics(session)

        assert stats["records"] == 3
        assert stats["imported_records"] == 1
        assert stats["countries"] == 2
        assert stats["latest_year"] == 2021
        assert await service.get_all_countries(session) == ["Germany", "Japan"]

    @pytest.mark.asyncio
    async def test_countries_come_from_snapshot_when_store_is_empty(self, service, source, session):
        source.serve(TWO_COUNTRIES)

        assert await service.get_all_countries(session) == ["Germany", "Japan"]
        assert await service.get_country_count(session) == 2
        assert await service.get_latest_year(session) == 2020


class TestImport:

    @pytest.mark.asyncio
    async def test_import_persists_new_pairs_then_skips_duplicates(self, service, source, session):
        source.serve(TWO_COUNTRIES)

        assert await service.import_from_remote(session) == 4
        stored = await all_stored(session)
        assert len(stored) == 4
        assert {r.data_source for r in stored} == {IMPORT_DATA_SOURCE}
        assert {r.uploaded_by for r in stored} == {IMPORT_UPLOADER}
        germany_2020 = next(r for r in stored if (r.country_name, r.year) == ("Germany", 2020))
        assert germany_2020.co2_emission_kt == pytest.approx(644000.0)

        assert await service.import_from_remote(session) == 0
        assert len(await all_stored(session)) == 4

    @pytest.mark.asyncio
    async def test_import_keeps_existing_manual_records(self, service, source, session, make_record):
        manual = await make_record("Germany", 2020, co2_emission_kt=1.0)
        source.serve(TWO_COUNTRIES)

        assert await service.import_from_remote(session) == 3
        stored = await service.find_by_id(session, manual.id)
        assert stored.co2_emission_kt == 1.0

    @pytest.mark.asyncio
    async def test_import_never_stores_invalid_observations(self, service, source, session):
        source.serve({
            "Germany": owid_country("DEU", (1850, 10.0), (2030, 10.0), (2020, 0), (2021, -1.0), (2022, None)),
            "Austria": owid_country("AUT", (2020, 60.0)),
        })

        assert await service.import_from_remote(session) == 1
        assert [(r.country_name, r.year) for r in await all_stored(session)] == [("Austria", 2020)]

    @pytest.mark.asyncio
    async def test_import_with_unavailable_source_returns_zero_and_clears_cache(
        self, service, source, session, make_record
    ):
        source.fail()
        await make_record("Germany", 2020)
        await service.get_all(session)

        assert await service.import_from_remote(session) == 0
        assert service.cache.snapshot is None
