# reviewiq/modules/analytics/schemas/analytics_schemas.py

from typing import List

from pydantic import Field

from reviewiq.modules.reviews.schemas.review_schemas import CamelModel


class BranchMetrics(CamelModel):
    """Summary statistics for one branch"""

    branch_id: str
    total_reviews: int = 0
    average_rating: float = 0
    positive_count: int = 0
    neutral_count: int = 0
    negative_count: int = 0
    sentiment_score: float = 0
    escalation_count: int = 0
    escalation_rate: float = 0
    response_count: int = 0
    response_rate: float = 0
    avg_response_time_minutes: int = 0
    csat_score: float = 0
    review_velocity_per_day: float = 0


class DailyMetric(CamelModel):
    date: str
    total_reviews: int
    avg_rating: float
    positive: int = 0
    neutral: int = 0
    negative: int = 0
    escalations: int = 0


class TrendSeries(CamelModel):
    period: str
    daily_metrics: List[DailyMetric] = Field(default_factory=list)


class SlaMetrics(CamelModel):
    avg_response_time_minutes: int = 0
    sla_threshold_minutes: int
    within_sla_percent: float = 0
    overdue_escalations: int = 0


class StaffMetrics(CamelModel):
    staff_id: str
    total_tagged_reviews: int = 0
    avg_rating: float = 0
    avg_sentiment_score: float = 0
    negative_rate: float = 0
    escalation_linked: int = 0
    response_handled: int = 0
    avg_response_time_minutes: int = 0
