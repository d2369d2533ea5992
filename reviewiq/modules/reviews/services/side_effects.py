# reviewiq/modules/reviews/services/side_effects.py

"""
Post-finalization side effects.

Every finalized review is broadcast to its branch channel; escalated reviews
also get an audit record and a manager alert. Each effect runs on its own,
its failure is logged and dropped, and nothing is retried. None of them can
change the result already returned to the submitter.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import BackgroundTasks

from reviewiq.modules.reviews.services.audit_service import AuditService
from reviewiq.modules.reviews.services.notification_service import ManagerAlertService

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    def __init__(
        self,
        broadcaster,
        audit: Optional[AuditService] = None,
        alerts: Optional[ManagerAlertService] = None,
    ):
        self.broadcaster = broadcaster
        self.audit = audit
        self.alerts = alerts

    def schedule(
        self,
        branch_id: str,
        review: Dict[str, Any],
        escalated: bool,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> bool:
        """
        Queue the effects to run after the HTTP response is sent.

        Returns False when no background task queue is available, in which
        case the caller should await dispatch() itself.
        """
        if background_tasks is None:
            return False
        background_tasks.add_task(self.dispatch, branch_id, review, escalated)
        return True

    async def dispatch(self, branch_id: str, review: Dict[str, Any], escalated: bool) -> None:
        review_id = review.get("reviewId")

        await self._guarded(
            "broadcast", review_id, self.broadcaster.broadcast_review, branch_id, review
        )

        if not escalated:
            return

        if self.audit is not None:
            await self._guarded("audit", review_id, self._audit, branch_id, review)
        if self.alerts is not None:
            await self._guarded(
                "alert", review_id, self.alerts.send_escalation_alert, branch_id, review
            )

    async def _audit(self, branch_id: str, review: Dict[str, Any]) -> None:
        self.audit.log_escalation(branch_id, review)

    async def _guarded(
        self, name: str, review_id: Optional[str],
        effect: Callable[..., Awaitable[Any]], *args
    ) -> None:
        try:
            await effect(*args)
        except Exception as e:
            logger.error(f"Side effect '{name}' failed for review {review_id}: {e}")
