# reviewiq/modules/analytics/tests/test_metrics_aggregator.py

from datetime import date, datetime

import pytest

from reviewiq.modules.analytics.services.metrics_aggregator import (
    MetricsAggregator,
    round_half_up,
)
from reviewiq.modules.reviews.services.fact_store import RESPONSES


def test_round_half_up_rounds_ties_away_from_zero():
    assert round_half_up(0.25, 1) == 0.3
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(66.66666, 1) == 66.7
    assert round_half_up(1 / 3, 2) == 0.33


class TestBranchMetrics:

    @pytest.mark.asyncio
    async def test_summary_statistics(self, aggregator, add_review):
        add_review(rating=5, sentiment="positive")
        add_review(rating=4, sentiment="positive", response_status="responded", response_time_minutes=31)
        add_review(rating=1, sentiment="negative", response_status="responded", response_time_minutes=90)

        metrics = await aggregator.get_branch_metrics("branch-1")

        assert metrics["total_reviews"] == 3
        assert metrics["average_rating"] == 3.3
        assert metrics["positive_count"] == 2
        assert metrics["neutral_count"] == 0
        assert metrics["negative_count"] == 1
        assert metrics["sentiment_score"] == 0.33
        assert metrics["escalation_count"] == 1
        assert metrics["escalation_rate"] == 33.3
        assert metrics["response_count"] == 2
        assert metrics["response_rate"] == 66.7
        assert metrics["avg_response_time_minutes"] == 60
        assert metrics["csat_score"] == 66.7
        assert metrics["review_velocity_per_day"] == 0.1

    @pytest.mark.asyncio
    async def test_pending_reviews_count_as_neutral(self, aggregator, add_review):
        add_review(rating=3, sentiment=None, status="pending")

        metrics = await aggregator.get_branch_metrics("branch-1")

        assert metrics["neutral_count"] == 1
        assert metrics["sentiment_score"] == 0

    @pytest.mark.asyncio
    async def test_empty_branch_gives_zero_template(self, aggregator):
        metrics = await aggregator.get_branch_metrics("branch-1")

        assert metrics == MetricsAggregator.empty_branch_metrics("branch-1")
        assert metrics["total_reviews"] == 0
        assert metrics["average_rating"] == 0

    @pytest.mark.asyncio
    async def test_deleted_and_other_branch_reviews_are_ignored(self, aggregator, add_review):
        add_review(rating=5)
        add_review(rating=1, is_deleted=True)
        add_review(rating=1, branch_id="branch-2")

        metrics = await aggregator.get_branch_metrics("branch-1")

        assert metrics["total_reviews"] == 1
        assert metrics["average_rating"] == 5.0

    @pytest.mark.asyncio
    async def test_date_range_includes_whole_end_day(self, aggregator, add_review):
        add_review(created_at=datetime(2024, 6, 1, 0, 0))
        add_review(created_at=datetime(2024, 6, 3, 23, 59, 59, 999000))
        add_review(created_at=datetime(2024, 6, 4, 0, 0))
        add_review(created_at=datetime(2024, 5, 31, 23, 59))

        metrics = await aggregator.get_branch_metrics(
            "branch-1", start_date=date(2024, 6, 1), end_date=date(2024, 6, 3)
        )

        assert metrics["total_reviews"] == 2

    @pytest.mark.asyncio
    async def test_velocity_counts_trailing_thirty_days(self, aggregator, add_review):
        for _ in range(6):
            add_review(days_ago=3)
        add_review(days_ago=45)

        metrics = await aggregator.get_branch_metrics("branch-1")

        assert metrics["review_velocity_per_day"] == 0.2


class TestCaching:

    @pytest.mark.asyncio
    async def test_snapshot_is_reused_within_ttl(self, aggregator, add_review, timer):
        add_review(rating=5)
        first = await aggregator.get_branch_metrics("branch-1")

        add_review(rating=1, sentiment="negative")
        timer.value += 59
        second = await aggregator.get_branch_metrics("branch-1")

        assert second == first

        timer.value += 1
        third = await aggregator.get_branch_metrics("branch-1")

        assert third["total_reviews"] == 2

    @pytest.mark.asyncio
    async def test_date_range_is_part_of_cache_key(self, aggregator, add_review):
        add_review(created_at=datetime(2024, 6, 1, 9, 0))

        everything = await aggregator.get_branch_metrics("branch-1")
        nothing = await aggregator.get_branch_metrics(
            "branch-1", start_date=date(2024, 1, 1), end_date=date(2024, 1, 31)
        )

        assert everything["total_reviews"] == 1
        assert nothing["total_reviews"] == 0

    @pytest.mark.asyncio
    async def test_callers_cannot_mutate_cached_snapshot(self, aggregator, add_review):
        add_review(rating=5)
        first = await aggregator.get_branch_metrics("branch-1")
        first["total_reviews"] = 999

        second = await aggregator.get_branch_metrics("branch-1")

        assert second["total_reviews"] == 1

    @pytest.mark.asyncio
    async def test_disabled_cache_always_recomputes(self, uncached_aggregator, add_review):
        add_review(rating=5)
        await uncached_aggregator.get_branch_metrics("branch-1")
        add_review(rating=3, sentiment="neutral")

        metrics = await uncached_aggregator.get_branch_metrics("branch-1")

        assert metrics["total_reviews"] == 2

    @pytest.mark.asyncio
    async def test_trends_and_sla_are_cached(self, aggregator, add_review, metrics_cache):
        add_review(response_status="responded", response_time_minutes=10)

        await aggregator.get_time_series_trends("branch-1", 30)
        await aggregator.get_sla_metrics("branch-1")
        await aggregator.get_time_series_trends("branch-1", 30)
        await aggregator.get_sla_metrics("branch-1")

        assert metrics_cache.get_stats()["hits"] == 2


class TestTrends:

    @pytest.mark.asyncio
    async def test_daily_buckets_sorted_and_sparse(self, aggregator, add_review):
        add_review(rating=5, sentiment="positive", days_ago=1)
        add_review(rating=2, sentiment="negative", days_ago=1)
        add_review(rating=4, sentiment="neutral", days_ago=5)
        add_review(rating=5, days_ago=40)

        trends = await aggregator.get_time_series_trends("branch-1", 30)

        assert trends["period"] == "30d"
        assert [day["date"] for day in trends["daily_metrics"]] == ["2024-06-10", "2024-06-14"]
        latest = trends["daily_metrics"][1]
        assert latest == {
            "date": "2024-06-14",
            "total_reviews": 2,
            "avg_rating": 3.5,
            "positive": 1,
            "neutral": 0,
            "negative": 1,
            "escalations": 1,
        }
        assert trends["daily_metrics"][0]["neutral"] == 1

    @pytest.mark.asyncio
    async def test_no_reviews_gives_empty_series(self, aggregator):
        trends = await aggregator.get_time_series_trends("branch-1", 7)

        assert trends == {"period": "7d", "daily_metrics": []}


class TestSlaMetrics:

    @pytest.mark.asyncio
    async def test_sla_compliance(self, aggregator, add_review):
        add_review(rating=4, response_status="responded", response_time_minutes=60)
        add_review(rating=4, response_status="responded", response_time_minutes=240)
        add_review(rating=1, sentiment="negative", response_status="responded", response_time_minutes=300)
        add_review(rating=1, sentiment="negative")

        sla = await aggregator.get_sla_metrics("branch-1")

        assert sla == {
            "avg_response_time_minutes": 200,
            "sla_threshold_minutes": 240,
            "within_sla_percent": 66.7,
            "overdue_escalations": 1,
        }

    @pytest.mark.asyncio
    async def test_no_responses_gives_zero_template(self, aggregator, add_review):
        add_review()

        sla = await aggregator.get_sla_metrics("branch-1")

        assert sla["within_sla_percent"] == 0
        assert sla["sla_threshold_minutes"] == 240
        assert sla["avg_response_time_minutes"] == 0


class TestStaffMetrics:

    @pytest.mark.asyncio
    async def test_tagged_reviews_and_handled_responses(self, aggregator, add_review, fact_store, clock):
        add_review(rating=5, staff_tagged="staff-1", response_status="responded", response_time_minutes=20)
        add_review(rating=2, sentiment="negative", staff_tagged="staff-1",
                   response_status="responded", response_time_minutes=45)
        add_review(rating=4, staff_tagged="staff-2")
        fact_store.add(RESPONSES, {
            "review_id": "any", "response_text": "Thanks", "responded_by": "staff-1", "responded_at": clock(),
        })

        metrics = await aggregator.get_staff_metrics("staff-1")

        assert metrics == {
            "staff_id": "staff-1",
            "total_tagged_reviews": 2,
            "avg_rating": 3.5,
            "avg_sentiment_score": 0.0,
            "negative_rate": 50.0,
            "escalation_linked": 1,
            "response_handled": 1,
            "avg_response_time_minutes": 32,
        }

    @pytest.mark.asyncio
    async def test_unknown_staff_gives_zero_template(self, aggregator):
        metrics = await aggregator.get_staff_metrics("nobody")

        assert metrics["total_tagged_reviews"] == 0
        assert metrics["response_handled"] == 0
