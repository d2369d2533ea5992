# reviewiq/modules/analytics/services/metrics_aggregator.py

"""
Derived review metrics for dashboards.

Everything is computed in memory from the review documents of one branch
(or one tagged staff member) on each cache miss. Snapshots are cached for a
fixed TTL and are never invalidated by writes, so a new review can take up
to one TTL to show up in the numbers.
"""

import logging
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional

from reviewiq.core.config import settings
from reviewiq.core.memory_cache import TTLCache
from reviewiq.modules.reviews.models.review_models import ResponseStatus, Sentiment
from reviewiq.modules.reviews.services.fact_store import (
    RESPONSES, REVIEWS, Between, Equals, FactStore
)

logger = logging.getLogger(__name__)

VELOCITY_WINDOW_DAYS = 30


def round_half_up(value: float, places: int) -> float:
    """Round like a decimal calculator would: 0.25 -> 0.3, 66.65 -> 66.7"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class MetricsAggregator:
    def __init__(
        self,
        store: FactStore,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        sla_threshold_minutes: Optional[int] = None,
    ):
        self.store = store
        self.cache = cache if cache is not None else TTLCache(enabled=False)
        self.clock = clock
        self.sla_threshold_minutes = sla_threshold_minutes or settings.sla_threshold_minutes

    async def get_branch_metrics(
        self,
        branch_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Summary statistics for a branch, optionally restricted to a date range.

        The range is inclusive on both ends: from the start of start_date to
        the last microsecond of end_date.
        """
        cache_key = f"branch:{branch_id}:{start_date or 'ALL'}:{end_date or 'ALL'}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"[ANALYTICS] Cache HIT for branch: {branch_id}")
            return cached

        logger.info(f"[ANALYTICS] Computing metrics for branch: {branch_id}")
        within = None
        if start_date or end_date:
            within = Between(
                "created_at",
                start=datetime.combine(start_date, time.min) if start_date else None,
                end=datetime.combine(end_date, time.max) if end_date else None,
            )
        reviews = self._branch_reviews(branch_id, within)

        if not reviews:
            return self.empty_branch_metrics(branch_id)

        total = len(reviews)
        positive = sum(1 for r in reviews if r["sentiment"] == Sentiment.POSITIVE.value)
        negative = sum(1 for r in reviews if r["sentiment"] == Sentiment.NEGATIVE.value)
        escalations = sum(1 for r in reviews if r["is_escalated"])
        responded = [
            r for r in reviews if r["response_status"] == ResponseStatus.RESPONDED.value
        ]

        velocity_start = self.clock() - timedelta(days=VELOCITY_WINDOW_DAYS)
        recent = sum(1 for r in reviews if r["created_at"] >= velocity_start)

        metrics = {
            "branch_id": branch_id,
            "total_reviews": total,
            "average_rating": round_half_up(sum(r["rating"] for r in reviews) / total, 1),
            "positive_count": positive,
            "neutral_count": total - positive - negative,
            "negative_count": negative,
            "sentiment_score": round_half_up((positive - negative) / total, 2),
            "escalation_count": escalations,
            "escalation_rate": round_half_up(escalations / total * 100, 1),
            "response_count": len(responded),
            "response_rate": round_half_up(len(responded) / total * 100, 1),
            "avg_response_time_minutes": self._floor_mean(
                [r["response_time_minutes"] or 0 for r in responded]
            ),
            "csat_score": round_half_up(positive / total * 100, 1),
            "review_velocity_per_day": round_half_up(recent / VELOCITY_WINDOW_DAYS, 1),
        }

        await self.cache.set(cache_key, metrics)
        return metrics

    async def get_time_series_trends(self, branch_id: str, days: int) -> Dict[str, Any]:
        """Per-day counts for the trailing window; days without reviews are omitted"""
        cache_key = f"trends:{branch_id}:{days}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        logger.info(f"[ANALYTICS] Computing {days}d trend series for branch: {branch_id}")
        window_start = self.clock() - timedelta(days=days)
        reviews = self._branch_reviews(branch_id, Between("created_at", start=window_start))

        buckets: Dict[str, Dict[str, Any]] = {}
        for review in reviews:
            day = review["created_at"].date().isoformat()
            bucket = buckets.setdefault(day, {
                "date": day,
                "total_reviews": 0,
                "rating_sum": 0,
                "positive": 0,
                "neutral": 0,
                "negative": 0,
                "escalations": 0,
            })
            bucket["total_reviews"] += 1
            bucket["rating_sum"] += review["rating"]
            if review["sentiment"] == Sentiment.POSITIVE.value:
                bucket["positive"] += 1
            elif review["sentiment"] == Sentiment.NEGATIVE.value:
                bucket["negative"] += 1
            else:
                bucket["neutral"] += 1
            if review["is_escalated"]:
                bucket["escalations"] += 1

        daily_metrics = []
        for day in sorted(buckets):
            bucket = buckets[day]
            rating_sum = bucket.pop("rating_sum")
            bucket["avg_rating"] = round_half_up(rating_sum / bucket["total_reviews"], 1)
            daily_metrics.append(bucket)

        trends = {"period": f"{days}d", "daily_metrics": daily_metrics}
        await self.cache.set(cache_key, trends)
        return trends

    async def get_sla_metrics(self, branch_id: str) -> Dict[str, Any]:
        """Response latency against the SLA threshold for responded reviews"""
        cache_key = f"sla:{branch_id}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        threshold = self.sla_threshold_minutes
        responded = self.store.query(
            REVIEWS,
            [
                Equals("branch_id", branch_id),
                Equals("is_deleted", False),
                Equals("response_status", ResponseStatus.RESPONDED.value),
            ],
        )

        if not responded:
            return {
                "avg_response_time_minutes": 0,
                "sla_threshold_minutes": threshold,
                "within_sla_percent": 0,
                "overdue_escalations": 0,
            }

        latencies = [r["response_time_minutes"] or 0 for r in responded]
        within_sla = sum(1 for minutes in latencies if minutes <= threshold)
        overdue = sum(
            1 for r, minutes in zip(responded, latencies)
            if minutes > threshold and r["is_escalated"]
        )

        sla = {
            "avg_response_time_minutes": self._floor_mean(latencies),
            "sla_threshold_minutes": threshold,
            "within_sla_percent": round_half_up(within_sla / len(responded) * 100, 1),
            "overdue_escalations": overdue,
        }
        await self.cache.set(cache_key, sla)
        return sla

    async def get_staff_metrics(self, staff_id: str) -> Dict[str, Any]:
        logger.info(f"[ANALYTICS] Computing metrics for staff: {staff_id}")
        reviews = self.store.query(
            REVIEWS, [Equals("staff_tagged", staff_id), Equals("is_deleted", False)]
        )

        if not reviews:
            return {
                "staff_id": staff_id,
                "total_tagged_reviews": 0,
                "avg_rating": 0,
                "avg_sentiment_score": 0,
                "negative_rate": 0,
                "escalation_linked": 0,
                "response_handled": 0,
                "avg_response_time_minutes": 0,
            }

        total = len(reviews)
        positive = sum(1 for r in reviews if r["sentiment"] == Sentiment.POSITIVE.value)
        negative = sum(1 for r in reviews if r["sentiment"] == Sentiment.NEGATIVE.value)
        handled = self.store.query(RESPONSES, [Equals("responded_by", staff_id)])
        latencies = [
            r["response_time_minutes"] for r in reviews
            if r["response_status"] == ResponseStatus.RESPONDED.value
            and r["response_time_minutes"] is not None
        ]

        return {
            "staff_id": staff_id,
            "total_tagged_reviews": total,
            "avg_rating": round_half_up(sum(r["rating"] for r in reviews) / total, 1),
            "avg_sentiment_score": round_half_up((positive - negative) / total, 2),
            "negative_rate": round_half_up(negative / total * 100, 1),
            "escalation_linked": sum(1 for r in reviews if r["is_escalated"]),
            "response_handled": len(handled),
            "avg_response_time_minutes": self._floor_mean(latencies),
        }

    @staticmethod
    def empty_branch_metrics(branch_id: str) -> Dict[str, Any]:
        return {
            "branch_id": branch_id,
            "total_reviews": 0,
            "average_rating": 0,
            "positive_count": 0,
            "neutral_count": 0,
            "negative_count": 0,
            "sentiment_score": 0,
            "escalation_count": 0,
            "escalation_rate": 0,
            "response_count": 0,
            "response_rate": 0,
            "avg_response_time_minutes": 0,
            "csat_score": 0,
            "review_velocity_per_day": 0,
        }

    # Private helper methods

    def _branch_reviews(
        self, branch_id: str, within: Optional[Between] = None
    ) -> List[Dict[str, Any]]:
        return self.store.query(
            REVIEWS,
            [Equals("branch_id", branch_id), Equals("is_deleted", False)],
            within,
        )

    @staticmethod
    def _floor_mean(values: List[int]) -> int:
        if not values:
            return 0
        return math.floor(sum(values) / len(values))
