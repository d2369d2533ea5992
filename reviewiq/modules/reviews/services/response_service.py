# reviewiq/modules/reviews/services/response_service.py

import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Union

from reviewiq.core.exceptions import NotFoundError
from reviewiq.modules.reviews.models.review_models import ResponseStatus
from reviewiq.modules.reviews.schemas.review_schemas import ResponseCreate
from reviewiq.modules.reviews.services.fact_store import (
    RESPONSES, REVIEWS, Equals, FactStore
)

logger = logging.getLogger(__name__)


class ResponseService:
    """Staff replies to reviews and the response latency derived from them"""

    def __init__(self, store: FactStore, clock: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.clock = clock

    def record_response(
        self, review_id: str, payload: Union[ResponseCreate, Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Store a reply and, for the first reply only, mark the review responded.

        Response latency is whole minutes between review creation and the
        first reply, rounded down.
        """
        if not isinstance(payload, ResponseCreate):
            payload = ResponseCreate.model_validate(payload)

        review = self.store.get(REVIEWS, review_id)
        if review is None or review["is_deleted"]:
            raise NotFoundError(f"Review {review_id} not found")

        now = self.clock()
        response_id = self.store.add(RESPONSES, {
            "review_id": review_id,
            "response_text": payload.response_text,
            "responded_by": payload.responded_by,
            "responded_at": now,
        })

        elapsed = max((now - review["created_at"]).total_seconds(), 0)
        first = self.store.update(
            REVIEWS,
            review_id,
            {
                "response_status": ResponseStatus.RESPONDED.value,
                "response_time_minutes": math.floor(elapsed / 60),
                "responded_at": now,
            },
            expect={"response_status": ResponseStatus.PENDING.value},
        )
        if first:
            logger.info(f"Review {review_id} responded after {math.floor(elapsed / 60)} minutes")

        return self.store.get(RESPONSES, response_id)

    def list_responses(self, review_id: str) -> List[Dict[str, Any]]:
        responses = self.store.query(RESPONSES, [Equals("review_id", review_id)])
        responses.sort(key=lambda doc: doc["responded_at"])
        return responses
