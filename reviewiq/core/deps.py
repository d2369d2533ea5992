# reviewiq/core/deps.py

"""
Request dependencies.

Long-lived components are built once by the app factory and kept on
``app.state``; these providers hand them to route handlers so tests can
swap them through ``app.dependency_overrides``.
"""

from fastapi import Request

from reviewiq.modules.analytics.services.metrics_aggregator import MetricsAggregator
from reviewiq.modules.reviews.services.response_service import ResponseService
from reviewiq.modules.reviews.services.review_pipeline import ReviewPipeline


def get_review_pipeline(request: Request) -> ReviewPipeline:
    return request.app.state.review_pipeline


def get_response_service(request: Request) -> ResponseService:
    return request.app.state.response_service


def get_metrics_aggregator(request: Request) -> MetricsAggregator:
    return request.app.state.metrics_aggregator
