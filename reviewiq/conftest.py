"""
Shared pytest fixtures: an isolated in-memory database per test and a
controllable clock.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from reviewiq.app.startup import create_tables
from reviewiq.core.database import Base, build_engine
from reviewiq.modules.reviews.services.fact_store import BRANCHES, SQLAlchemyFactStore


class FakeClock:
    """Callable returning a fixed naive UTC time that tests can move forward"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def fact_store(session_factory):
    return SQLAlchemyFactStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 15, 12, 0, 0))


@pytest.fixture
def branch(fact_store):
    fact_store.add(BRANCHES, {
        "id": "branch-1",
        "name": "Downtown",
        "location": "12 Main St",
        "manager_email": "manager@example.com",
        "place_id": "ChIJabc123",
        "status": "active",
    })
    return fact_store.get(BRANCHES, "branch-1")
