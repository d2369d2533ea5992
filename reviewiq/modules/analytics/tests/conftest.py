from datetime import timedelta

import pytest

from reviewiq.core.memory_cache import TTLCache
from reviewiq.modules.analytics.services.metrics_aggregator import MetricsAggregator
from reviewiq.modules.reviews.services.fact_store import REVIEWS


class ManualTimer:
    """Monotonic clock for the metrics cache"""

    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def metrics_cache(timer):
    return TTLCache(ttl_seconds=60, clock=timer)


@pytest.fixture
def aggregator(fact_store, metrics_cache, clock):
    return MetricsAggregator(fact_store, cache=metrics_cache, clock=clock)


@pytest.fixture
def uncached_aggregator(fact_store, clock):
    return MetricsAggregator(fact_store, cache=TTLCache(enabled=False), clock=clock)


@pytest.fixture
def add_review(fact_store, clock):
    """Insert a finalized review document directly"""

    def _add(rating=4, sentiment="positive", days_ago=0, **fields):
        escalated = sentiment == "negative" or rating <= 2
        doc = {
            "branch_id": "branch-1",
            "source": "internal",
            "rating": rating,
            "review_text": "text",
            "sentiment": sentiment,
            "is_escalated": escalated,
            "escalation_status": "escalated" if escalated else "none",
            "status": "critical" if escalated else "normal",
            "ai_processed": True,
            "is_deleted": False,
            "created_at": clock() - timedelta(days=days_ago),
        }
        doc.update(fields)
        return fact_store.add(REVIEWS, doc)

    return _add
