"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests, and
an httpx MockTransport in place of the Census / Nominatim APIs so no test
touches the network.
"""
import os

SQLITE_URL = "sqlite:///./test_home_history.db"
# Must be set before anything imports app.core.config.
os.environ["DATABASE_URL"] = SQLITE_URL

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

from app.db.base import Base, get_db
from app.main import app
from app.models import AddressCacheEntry, Memory, Property
from app.services.enrichment import AddressEnricher, get_enricher
from app.services.geocoders import build_http_client

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

CENSUS_HOST = "geocoding.geo.census.gov"
NOMINATIM_HOST = "nominatim.openstreetmap.org"

CENSUS_MATCH = {
    "result": {
        "input": {"benchmark": {"benchmarkName": "Public_AR_Census2020"}},
        "addressMatches": [
            {
                "matchedAddress": "123 MAIN ST, SPRINGFIELD, IL, 62701",
                "coordinates": {"x": -89.6501, "y": 39.7817},
                "addressComponents": {
                    "streetName": "MAIN",
                    "city": "SPRINGFIELD",
                    "state": "IL",
                    "zip": "62701",
                },
            }
        ],
    }
}

NOMINATIM_MATCH = [
    {
        "place_id": 123456,
        "lat": "39.7817",
        "lon": "-89.6501",
        "display_name": "123, Main Street, Springfield, Illinois, 62701, United States",
    }
]


class FakeGeocoders:
    """
    Stand-in for both upstream APIs, routed by host.

    Counts calls per provider; `census_status` / `nominatim_status` switch a
    provider to an HTTP error, `census_exc` / `nominatim_exc` make it raise.
    """

    def __init__(self):
        self.census_calls = 0
        self.nominatim_calls = 0
        self.census_status = 200
        self.nominatim_status = 200
        self.census_exc = None
        self.nominatim_exc = None
        self.requests = []

    @property
    def total_calls(self):
        return self.census_calls + self.nominatim_calls

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == CENSUS_HOST:
            self.census_calls += 1
            if self.census_exc is not None:
                raise self.census_exc
            return httpx.Response(self.census_status, json=CENSUS_MATCH)
        if request.url.host == NOMINATIM_HOST:
            self.nominatim_calls += 1
            if self.nominatim_exc is not None:
                raise self.nominatim_exc
            return httpx.Response(self.nominatim_status, json=NOMINATIM_MATCH)
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    with TestingSessionLocal() as db:
        db.execute(delete(Memory))
        db.execute(delete(Property))
        db.execute(delete(AddressCacheEntry))
        db.commit()
    yield


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def geocoders():
    return FakeGeocoders()


@pytest.fixture()
def enricher(geocoders):
    return AddressEnricher(
        session_factory=TestingSessionLocal,
        http_client=build_http_client(transport=geocoders.transport()),
    )


@pytest.fixture()
def client(db, enricher):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_enricher] = lambda: enricher
    with TestClient(app) as c:
        yield c
        # Let cache write-throughs started by requests finish on the app loop.
        c.portal.call(enricher.drain)
    app.dependency_overrides.clear()
