# reviewiq/modules/reviews/services/external_review_source.py

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from reviewiq.core.config import settings
from reviewiq.modules.reviews.schemas.review_schemas import ExternalReview

logger = logging.getLogger(__name__)


class ExternalReviewSource(ABC):
    """Third-party listing that reviews can be pulled from"""

    @abstractmethod
    async def fetch_reviews(self, place_id: str) -> List[ExternalReview]:
        ...


class GooglePlacesReviewSource(ExternalReviewSource):
    """Reads the reviews attached to a place through Places API (New)"""

    FIELD_MASK = "reviews"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_places_api_key
        self.api_base = (api_base or settings.google_places_api_base).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.sync_http_timeout_seconds

    async def fetch_reviews(self, place_id: str) -> List[ExternalReview]:
        if not self.api_key:
            logger.warning("[SYNC] Google Places API key not configured, skipping fetch")
            return []

        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": self.FIELD_MASK,
        }

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.get(f"{self.api_base}/places/{place_id}", headers=headers)
            response.raise_for_status()
            data = response.json()

        reviews = []
        for raw in data.get("reviews", []):
            parsed = self._parse_review(raw)
            if parsed is not None:
                reviews.append(parsed)

        logger.info(f"[SYNC] Fetched {len(reviews)} reviews for place {place_id}")
        return reviews

    @staticmethod
    def _parse_review(raw: Dict[str, Any]) -> Optional[ExternalReview]:
        text = (raw.get("text") or raw.get("originalText") or {}).get("text")
        author = (raw.get("authorAttribution") or {}).get("displayName")

        values = {
            "rating": raw.get("rating"),
            "publish_time": raw.get("publishTime"),
        }
        if author:
            values["author_name"] = author
        if text:
            values["text"] = text

        try:
            return ExternalReview.model_validate(values)
        except PydanticValidationError as e:
            logger.warning(f"[SYNC] Skipping unreadable external review: {e.error_count()} error(s)")
            return None


def create_review_source() -> ExternalReviewSource:
    return GooglePlacesReviewSource()
