# tests/conftest.py
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from carshopper.db import create_tables, make_engine, make_session_factory
from carshopper.embeddings import EMBEDDING_DIM
from carshopper.errors import EmbeddingUnavailable, MatcherUnavailable
from carshopper.services import ingest_vehicle

BASE_DATE = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'catalog.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def add_vehicle(session_factory, n: int, **fields) -> int:
    """Insert a listing; larger `n` means a more recent posting."""
    payload = {
        "title": f"Listing {n}",
        "price": 10000,
        "mileage": "50,000 km",
        "location": "Manila",
        "marketplace_url": f"https://www.facebook.com/marketplace/item/{n}",
        "source": "facebook",
        "make": "Honda",
        "model": "Civic",
        "year": 2018,
        "posted_date": BASE_DATE + timedelta(days=n),
    }
    payload.update(fields)
    with session_factory() as db:
        return ingest_vehicle(db, payload)


@pytest.fixture
def catalog(session_factory):
    """Two-car catalog: id 1 Honda at 12000, id 2 Toyota at 18000 (newer)."""
    honda = add_vehicle(session_factory, 1, make="Honda", model="Civic", price=12000,
                        title="2017 Honda Civic reliable sedan", body_type="Sedan", year=2017)
    toyota = add_vehicle(session_factory, 2, make="Toyota", model="Fortuner", price=18000,
                         title="2020 Toyota Fortuner", body_type="SUV", year=2020)
    return {"honda": honda, "toyota": toyota}


def run(coro):
    return asyncio.run(coro)


def vector(value: float = 0.1):
    return [value] * EMBEDDING_DIM


class FakeEmbedder:
    def __init__(self, error: Exception = None, value: float = 0.1):
        self.error = error
        self.value = value
        self.calls = []

    async def embed(self, text, task_type="retrieval_query"):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return vector(self.value)


class FailingEmbedder(FakeEmbedder):
    def __init__(self):
        super().__init__(error=EmbeddingUnavailable("quota exceeded"))


class FakeMatcher:
    """Returns preset vehicles in order, honoring exclusions and the limit."""

    def __init__(self, vehicles=(), error: Exception = None):
        self.vehicles = list(vehicles)
        self.error = error
        self.calls = []

    async def match(self, vector, threshold=None, limit=20, exclude_ids=()):
        self.calls.append({"threshold": threshold, "limit": limit, "exclude_ids": set(exclude_ids)})
        if self.error is not None:
            raise self.error
        return [v for v in self.vehicles if v.id not in set(exclude_ids)][:limit]


class UnavailableMatcher(FakeMatcher):
    def __init__(self):
        super().__init__(error=MatcherUnavailable("similarity search not supported"))
