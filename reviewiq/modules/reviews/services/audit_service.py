# reviewiq/modules/reviews/services/audit_service.py

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from reviewiq.core.exceptions import SideEffectError, StoreError
from reviewiq.modules.reviews.services.fact_store import AUDIT_LOGS, FactStore

logger = logging.getLogger(__name__)

SYSTEM_AI = "SYSTEM_AI"
REVIEW_ESCALATED = "REVIEW_ESCALATED"


class AuditService:
    def __init__(self, store: FactStore, clock: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.clock = clock

    def log_event(
        self,
        action: str,
        target_id: str,
        target_type: str,
        branch_id: Optional[str] = None,
        actor_uid: str = SYSTEM_AI,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        try:
            audit_id = self.store.add(
                AUDIT_LOGS,
                {
                    "actor_uid": actor_uid,
                    "action": action,
                    "target_id": target_id,
                    "target_type": target_type,
                    "branch_id": branch_id,
                    "audit_metadata": metadata or {},
                    "timestamp": self.clock(),
                },
            )
        except StoreError as e:
            raise SideEffectError(f"Failed to record audit event {action} for {target_id}") from e

        logger.info(f"[AUDIT] {action} on {target_type} {target_id} by {actor_uid}")
        return audit_id

    def log_escalation(self, branch_id: str, review: Dict[str, Any]) -> str:
        """Record that the system escalated a review"""
        return self.log_event(
            action=REVIEW_ESCALATED,
            target_id=review["reviewId"],
            target_type="review",
            branch_id=branch_id,
            metadata={
                "sentiment": review.get("sentiment"),
                "rating": review.get("rating"),
            },
        )
