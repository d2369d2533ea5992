import pytest
from fastapi.testclient import TestClient

from reviewiq.core.memory_cache import TTLCache
from reviewiq.modules.reviews.services.audit_service import AuditService
from reviewiq.modules.reviews.services.review_pipeline import ReviewPipeline
from reviewiq.modules.reviews.services.side_effects import SideEffectDispatcher
from reviewiq.modules.reviews.tests.stubs import (
    RecordingBroadcaster,
    StubClassifier,
    StubReviewSource,
)


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def review_source():
    return StubReviewSource()


@pytest.fixture
def side_effects(fact_store, broadcaster, clock):
    return SideEffectDispatcher(
        broadcaster=broadcaster,
        audit=AuditService(fact_store, clock=clock),
        alerts=None,
    )


@pytest.fixture
def pipeline(fact_store, classifier, side_effects, review_source, clock):
    return ReviewPipeline(
        store=fact_store,
        classifier=classifier,
        side_effects=side_effects,
        review_source=review_source,
        clock=clock,
    )


@pytest.fixture
def app(fact_store, classifier, review_source, clock, engine):
    from reviewiq.app.main import create_app

    return create_app(
        store=fact_store,
        classifier=classifier,
        review_source=review_source,
        metrics_cache=TTLCache(enabled=False),
        clock=clock,
        engine=engine,
        enable_scheduler=False,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def valid_payload():
    return {
        "branchId": "branch-1",
        "source": "internal",
        "rating": 4,
        "reviewText": "Lovely dinner, quick service.",
        "category": "Food",
    }
