"""
Tests for the OWID source handler: download, sanity checks, country filter
and observation parsing.
"""

import json
from datetime import date

import httpx
import pytest

from co2ledger.core.errors import SourceUnavailableError
from co2ledger.handlers.owid import (
    fetch_owid_document,
    is_valid_country,
    load_owid_document,
    parse_owid_document,
)
from conftest import owid_country, owid_payload

SOURCE_DATE = date(2025, 1, 15)


def parse(document):
    return parse_owid_document(document, "label", "UPLOADER", SOURCE_DATE)


class TestCountryFilter:

    @pytest.mark.parametrize("name", [
        "World",
        "European Union",
        "Hong Kong",
        "Asia (excl. China & India)",
        "High income",
        "Upper middle income countries",
        "International transport",
        "Kuwaiti oil fires (GCP)",
        "Ships bunkers",
        "North America (excl. USA)",
        "G7",
        "UK",
        "",
        None,
    ])
    def test_excluded(self, name):
        assert not is_valid_country(name)

    @pytest.mark.parametrize("name", ["Germany", "Austria", "Japan", "United States", "Chad"])
    def test_included(self, name):
        assert is_valid_country(name)


class TestParsing:

    def test_converts_megatonnes_to_kilotons(self):
        records = parse({"Germany": owid_country("DEU", (2020, 644.31))})

        assert len(records) == 1
        record = records[0]
        assert record.country_name == "Germany"
        assert record.country_code == "DEU"
        assert record.year == 2020
        assert record.co2_emission_kt == pytest.approx(644310.0)
        assert record.data_source == "label"
        assert record.uploaded_by == "UPLOADER"
        assert record.source_date == SOURCE_DATE
        assert record.id is None

    def test_drops_years_outside_range(self):
        records = parse({"Germany": owid_country("DEU", (1899, 10.0), (1900, 11.0), (2025, 12.0), (2026, 13.0))})

        assert sorted(r.year for r in records) == [1900, 2025]

    def test_drops_missing_zero_and_negative_values(self):
        document = {"Japan": {"iso_code": "JPN", "data": [
            {"year": 2001, "co2": None},
            {"year": 2002, "co2": 0},
            {"year": 2003, "co2": -4.2},
            {"year": 2004},
            {"co2": 5.0},
            {"year": 2005, "co2": 1.5},
        ]}}

        records = parse(document)

        assert [r.year for r in records] == [2005]

    def test_skips_entries_without_three_letter_iso_code(self):
        document = {
            "Atlantis": owid_country(None, (2020, 1.0)),
            "Lemuria": owid_country("OWID_LEM", (2020, 1.0)),
            "Mu": owid_country("MU", (2020, 1.0)),
            "Austria": owid_country("AUT", (2020, 60.0)),
        }

        assert [r.country_name for r in parse(document)] == ["Austria"]

    def test_skips_excluded_countries_and_empty_series(self):
        document = {
            "World": owid_country("WLD", (2020, 35000.0)),
            "Hong Kong": owid_country("HKG", (2020, 40.0)),
            "Austria": owid_country("AUT"),
            "Japan": owid_country("JPN", (2020, 1030.0)),
        }

        assert [r.country_name for r in parse(document)] == ["Japan"]

    def test_malformed_country_does_not_abort_the_pass(self):
        document = {
            "Germany": {"iso_code": "DEU", "data": ["not an observation"]},
            "France": {"iso_code": "FRA", "data": [{"year": "soon", "co2": 1.0}]},
            "Spain": "garbage",
            "Japan": owid_country("JPN", (2020, 1030.0)),
        }

        records = parse(document)

        assert [r.country_name for r in records] == ["Japan"]

    def test_overflowing_numbers_only_drop_their_country(self):
        raw = (
            '{"Germany": {"iso_code": "DEU", "data": [{"year": 1e999, "co2": 1.0}]},'
            ' "France": {"iso_code": "FRA", "data": [{"year": 2020, "co2": ' + "9" * 400 + '}]},'
            ' "Austria": {"iso_code": "AUT", "data": [{"year": 2020, "co2": 1e999}, {"year": 2021, "co2": 60.0}]},'
            ' "Japan": {"iso_code": "JPN", "data": [{"year": 2020, "co2": 1030.0}]}}'
        )

        records = parse(json.loads(raw))

        assert [(r.country_name, r.year) for r in records] == [("Austria", 2021), ("Japan", 2020)]


class TestLoadDocument:

    def test_rejects_small_payload(self):
        with pytest.raises(SourceUnavailableError):
            load_owid_document(json.dumps({"Germany": owid_country("DEU", (2020, 1.0))}))

    def test_rejects_empty_payload(self):
        with pytest.raises(SourceUnavailableError):
            load_owid_document(None)

    def test_rejects_invalid_json(self):
        with pytest.raises(SourceUnavailableError):
            load_owid_document("{" + "x" * 2000)

    def test_rejects_non_object_root(self):
        with pytest.raises(SourceUnavailableError):
            load_owid_document(json.dumps([1] * 1000))

    def test_accepts_padded_document(self):
        document = load_owid_document(owid_payload({"Germany": owid_country("DEU", (2020, 1.0))}))

        assert document["Germany"]["iso_code"] == "DEU"


class TestFetch:

    @pytest.mark.asyncio
    async def test_returns_body(self):
        body = owid_payload({"Japan": owid_country("JPN", (2020, 1030.0))})
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=body))

        raw = await fetch_owid_document("https://owid.test/co2.json", 5.0, transport=transport)

        assert raw == body

    @pytest.mark.asyncio
    async def test_http_error_becomes_source_unavailable(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="maintenance"))

        with pytest.raises(SourceUnavailableError):
            await fetch_owid_document("https://owid.test/co2.json", 5.0, transport=transport)

    @pytest.mark.asyncio
    async def test_network_error_becomes_source_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SourceUnavailableError):
            await fetch_owid_document(
                "https://owid.test/co2.json", 5.0, transport=httpx.MockTransport(handler)
            )
