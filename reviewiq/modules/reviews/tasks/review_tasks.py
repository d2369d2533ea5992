# reviewiq/modules/reviews/tasks/review_tasks.py

"""
Scheduled review jobs.

- External review sync for every active branch with a place ID (cron, every
  six hours by default). Branches are synced one after another with a short
  random pause in between to stay clear of upstream rate limits.
- Pending sweep that finalizes reviews whose finalize write never landed.
- Expired metric snapshot cleanup.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from reviewiq.core.config import settings
from reviewiq.core.memory_cache import TTLCache
from reviewiq.modules.reviews.models.review_models import BranchStatus
from reviewiq.modules.reviews.services.fact_store import BRANCHES, Equals, FactStore
from reviewiq.modules.reviews.services.review_pipeline import ReviewPipeline

logger = logging.getLogger(__name__)

SYNC_JITTER_SECONDS = (1.0, 3.0)


class ReviewTaskScheduler:
    """Manages scheduled review tasks"""

    def __init__(
        self,
        pipeline: ReviewPipeline,
        store: FactStore,
        metrics_cache: Optional[TTLCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.pipeline = pipeline
        self.store = store
        self.metrics_cache = metrics_cache
        self.sleep = sleep
        self.scheduler = AsyncIOScheduler()
        self.sync_job_id = "external_review_sync"
        self.sweep_job_id = "pending_review_sweep"
        self.cache_job_id = "metrics_cache_cleanup"
        self.is_running = False

    def start(self):
        """Start the scheduler with the enabled jobs"""
        if self.is_running:
            logger.warning("Review scheduler already running")
            return

        if settings.sync_enabled:
            self.scheduler.add_job(
                func=self.sync_all_branches,
                trigger=CronTrigger(hour=f"*/{settings.sync_cron_hours}", minute=0),
                id=self.sync_job_id,
                name=f"External Review Sync (every {settings.sync_cron_hours} hours)",
                replace_existing=True,
                max_instances=1,
            )
            logger.info(f"[SYNC] Sync job scheduled every {settings.sync_cron_hours} hours")

        if settings.pending_sweep_enabled:
            self.scheduler.add_job(
                func=self.sweep_pending,
                trigger=IntervalTrigger(minutes=settings.pending_sweep_interval_minutes),
                id=self.sweep_job_id,
                name="Pending Review Sweep",
                replace_existing=True,
                max_instances=1,
            )

        if self.metrics_cache is not None:
            self.scheduler.add_job(
                func=self.metrics_cache.invalidate_expired,
                trigger=IntervalTrigger(seconds=max(settings.metrics_cache_ttl_seconds, 1) * 5),
                id=self.cache_job_id,
                name="Metrics Cache Cleanup",
                replace_existing=True,
                max_instances=1,
            )

        self.scheduler.start()
        self.is_running = True
        logger.info("Review scheduler started")

    def stop(self):
        """Stop the scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
        except RuntimeError as e:
            logger.warning(f"Scheduler already stopped: {e}")
        self.is_running = False
        logger.info("Review scheduler stopped")

    async def sync_all_branches(self) -> Dict[str, int]:
        """Sync every active branch that has a place ID; returns submitted counts by branch"""
        logger.info("[SYNC] Executing scheduled branch synchronization")

        branches = [
            branch for branch in self.store.query(
                BRANCHES, [Equals("status", BranchStatus.ACTIVE.value)]
            )
            if branch.get("place_id")
        ]
        if not branches:
            logger.info("[SYNC] No active branches found to sync")
            return {}

        logger.info(f"[SYNC] Found {len(branches)} branches to sync")

        submitted = {}
        for branch in branches:
            await self.sleep(random.uniform(*SYNC_JITTER_SECONDS))
            try:
                result = await self.pipeline.sync_external_reviews(branch["id"])
                submitted[branch["id"]] = result.submitted
            except Exception as e:
                logger.error(f"[SYNC] Sync failed for branch {branch['id']}: {e}", exc_info=True)

        logger.info("[SYNC] Scheduled synchronization loop completed")
        return submitted

    async def sweep_pending(self) -> int:
        try:
            return await self.pipeline.finalize_stale_pending()
        except Exception as e:
            logger.error(f"Pending sweep failed: {e}", exc_info=True)
            return 0
