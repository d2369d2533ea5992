# reviewiq/modules/analytics/routers/analytics_router.py

from datetime import date
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Path, Query

from reviewiq.core.config import settings
from reviewiq.core.deps import get_metrics_aggregator
from reviewiq.modules.analytics.schemas.analytics_schemas import (
    BranchMetrics,
    SlaMetrics,
    StaffMetrics,
    TrendSeries,
)
from reviewiq.modules.analytics.services.metrics_aggregator import MetricsAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/branch/{branch_id}", response_model=BranchMetrics)
async def get_branch_metrics(
    branch_id: str = Path(..., description="Branch ID"),
    start_date: Optional[date] = Query(None, description="First day included (UTC)"),
    end_date: Optional[date] = Query(None, description="Last day included (UTC)"),
    aggregator: MetricsAggregator = Depends(get_metrics_aggregator),
):
    if start_date and end_date and start_date > end_date:
        raise ValueError("start_date must not be after end_date")
    return await aggregator.get_branch_metrics(branch_id, start_date, end_date)


@router.get("/trends/{branch_id}", response_model=TrendSeries)
async def get_trends(
    branch_id: str = Path(..., description="Branch ID"),
    days: int = Query(30, description="Trailing window in days"),
    aggregator: MetricsAggregator = Depends(get_metrics_aggregator),
):
    """Daily review counts; the window is clamped to at most a year"""
    days = min(max(days, 1), settings.max_trend_days)
    return await aggregator.get_time_series_trends(branch_id, days)


@router.get("/sla/{branch_id}", response_model=SlaMetrics)
async def get_sla_metrics(
    branch_id: str = Path(..., description="Branch ID"),
    aggregator: MetricsAggregator = Depends(get_metrics_aggregator),
):
    return await aggregator.get_sla_metrics(branch_id)


@router.get("/staff/{staff_id}", response_model=StaffMetrics)
async def get_staff_metrics(
    staff_id: str = Path(..., description="Staff member ID"),
    aggregator: MetricsAggregator = Depends(get_metrics_aggregator),
):
    return await aggregator.get_staff_metrics(staff_id)
