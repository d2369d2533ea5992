"""
FastAPI application for the ReviewIQ backend.

Reviews are submitted, enriched by a time-boxed classifier, escalated by
fixed rules and summarized into branch, trend, SLA and staff metrics.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from reviewiq import __version__
from reviewiq.app.startup import configure_logging, create_tables
from reviewiq.core.config import settings
from reviewiq.core.database import SessionLocal, engine as default_engine
from reviewiq.core.exceptions import register_exception_handlers
from reviewiq.core.memory_cache import TTLCache
from reviewiq.modules.analytics.routers.analytics_router import router as analytics_router
from reviewiq.modules.analytics.services.metrics_aggregator import MetricsAggregator
from reviewiq.modules.reviews.routers.reviews_router import (
    router as reviews_router,
    ws_router as reviews_ws_router,
)
from reviewiq.modules.reviews.services.audit_service import AuditService
from reviewiq.modules.reviews.services.classifier_gateway import create_classifier_gateway
from reviewiq.modules.reviews.services.external_review_source import (
    ExternalReviewSource,
    create_review_source,
)
from reviewiq.modules.reviews.services.fact_store import FactStore, SQLAlchemyFactStore
from reviewiq.modules.reviews.services.notification_service import (
    EmailBackend,
    ManagerAlertService,
)
from reviewiq.modules.reviews.services.response_service import ResponseService
from reviewiq.modules.reviews.services.review_pipeline import ReviewPipeline
from reviewiq.modules.reviews.services.side_effects import SideEffectDispatcher
from reviewiq.modules.reviews.tasks.review_tasks import ReviewTaskScheduler
from reviewiq.modules.reviews.websocket.review_channel import ReviewChannelManager

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[FactStore] = None,
    classifier=None,
    review_source: Optional[ExternalReviewSource] = None,
    email_backend: Optional[EmailBackend] = None,
    metrics_cache: Optional[TTLCache] = None,
    clock: Callable[[], datetime] = datetime.utcnow,
    engine: Optional[Engine] = None,
    enable_scheduler: bool = True,
) -> FastAPI:
    """
    Build the application and its long-lived components.

    Every collaborator can be injected; anything left out is built from
    settings. Components are kept on app.state and reached through the
    providers in reviewiq.core.deps.
    """
    engine = engine or default_engine
    if store is None:
        session_factory = SessionLocal if engine is default_engine else sessionmaker(
            autocommit=False, autoflush=False, bind=engine
        )
        store = SQLAlchemyFactStore(session_factory)
    metrics_cache = metrics_cache or TTLCache(
        ttl_seconds=settings.metrics_cache_ttl_seconds,
        max_size=settings.metrics_cache_max_size,
    )
    channel = ReviewChannelManager()

    side_effects = SideEffectDispatcher(
        broadcaster=channel,
        audit=AuditService(store, clock=clock),
        alerts=ManagerAlertService(store, email_backend),
    )
    pipeline = ReviewPipeline(
        store=store,
        classifier=classifier or create_classifier_gateway(),
        side_effects=side_effects,
        review_source=review_source or create_review_source(),
        clock=clock,
    )
    scheduler = ReviewTaskScheduler(pipeline, store, metrics_cache=metrics_cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_tables(engine)
        if enable_scheduler:
            scheduler.start()
        logger.info(f"ReviewIQ backend {__version__} started ({settings.environment})")
        try:
            yield
        finally:
            scheduler.stop()

    app = FastAPI(
        title="ReviewIQ - Review Enrichment & Analytics API",
        description=(
            "Review intake with classifier enrichment, escalation rules, "
            "branch metrics and a real-time feed of finalized reviews."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.state.fact_store = store
    app.state.metrics_cache = metrics_cache
    app.state.review_channel = channel
    app.state.review_pipeline = pipeline
    app.state.response_service = ResponseService(store, clock=clock)
    app.state.metrics_aggregator = MetricsAggregator(store, cache=metrics_cache, clock=clock)
    app.state.scheduler = scheduler

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(reviews_router)
    app.include_router(reviews_ws_router)
    app.include_router(analytics_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "classifier_enabled": settings.classifier_enabled,
            "metrics_cache": metrics_cache.get_stats(),
        }

    return app


configure_logging()

app = create_app()
