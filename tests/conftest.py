"""
Pytest configuration and fixtures for co2ledger tests.

Every test gets its own in-memory SQLite database, a scripted OWID source and
a controllable clock for the snapshot cache.
"""

import json
from typing import Any, Dict, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from co2ledger.core.config import Settings
from co2ledger.core.errors import SourceUnavailableError
from co2ledger.handlers.contributors import register_contributor
from co2ledger.handlers.emissions import save_record
from co2ledger.models import *  # noqa: F401,F403 - registers tables
from co2ledger.models.contributor import ContributorCreate
from co2ledger.models.emission import EmissionRecord
from co2ledger.services.emission_service import EmissionCacheService
from co2ledger.services.review_workflow import ReviewWorkflow
from co2ledger.services.snapshot_cache import SnapshotCache


def owid_payload(document: Dict[str, Any]) -> str:
    """Serialize a document and pad it past the minimum payload size."""
    return json.dumps(document) + " " * 1200


def owid_country(iso_code: Optional[str], *observations) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"data": [{"year": year, "co2": co2} for year, co2 in observations]}
    if iso_code is not None:
        entry["iso_code"] = iso_code
    return entry


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedSource:
    """Stands in for the OWID download; returns a payload or raises SourceUnavailableError."""

    def __init__(self):
        self.payload: Optional[str] = None
        self.calls = 0

    def serve(self, document: Dict[str, Any]) -> None:
        self.payload = owid_payload(document)

    def fail(self) -> None:
        self.payload = None

    async def __call__(self) -> str:
        self.calls += 1
        if self.payload is None:
            raise SourceUnavailableError("connection refused")
        return self.payload


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        cache_ttl_seconds=1800,
        owid_min_payload_chars=1000,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource()


@pytest.fixture
def service(settings, source, clock) -> EmissionCacheService:
    cache = SnapshotCache(settings.cache_ttl_seconds, clock=clock)
    return EmissionCacheService(settings, fetch_document=source, cache=cache)


@pytest.fixture
def workflow(service) -> ReviewWorkflow:
    return ReviewWorkflow(service)


@pytest.fixture
def make_record(session):
    async def _make(country_name="Germany", year=2020, co2_emission_kt=700000.0,
                    country_code="DEU", uploaded_by="alice", data_source="Manual", source_date=None):
        record = EmissionRecord(
            country_name=country_name,
            country_code=country_code,
            year=year,
            co2_emission_kt=co2_emission_kt,
            source_date=source_date,
            data_source=data_source,
            uploaded_by=uploaded_by,
        )
        return await save_record(session, record)
    return _make


@pytest_asyncio.fixture
async def contributors(session):
    """Two registered contributors: alice owns records, bob proposes changes."""
    alice = await register_contributor(session, ContributorCreate(username="alice", email="alice@example.com"))
    bob = await register_contributor(session, ContributorCreate(username="bob", email="bob@example.com"))
    return alice, bob
