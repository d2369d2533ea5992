# reviewiq/modules/reviews/services/review_pipeline.py

"""
Review intake and enrichment.

A submission is validated, persisted as ``pending`` with a provisional
rating-only escalation, classified under a timeout and finalized exactly
once. Finalization is a compare-and-set on ``status == pending``, so a review
can never be finalized twice even when the pending sweep races a slow
submission. Side effects are dispatched only by whoever wins that write.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from fastapi import BackgroundTasks
from pydantic import ValidationError as PydanticValidationError

from reviewiq.core.config import settings
from reviewiq.core.exceptions import DuplicateError, NotFoundError, StoreError, ValidationError
from reviewiq.modules.reviews.models.review_models import (
    REVIEW_SCHEMA_VERSION,
    EscalationStatus,
    ResponseStatus,
    ReviewCategory,
    ReviewSource,
    ReviewStatus,
)
from reviewiq.modules.reviews.schemas.review_schemas import (
    ExternalReview,
    ReviewCreate,
    ReviewResult,
    SyncResult,
)
from reviewiq.modules.reviews.services.classifier_gateway import (
    ClassifierFailure,
    ClassifierOutcome,
    ClassifierResult,
)
from reviewiq.modules.reviews.services.escalation_policy import decide_escalation
from reviewiq.modules.reviews.services.external_review_source import ExternalReviewSource
from reviewiq.modules.reviews.services.fact_store import (
    BRANCHES,
    REVIEWS,
    Between,
    Equals,
    FactStore,
)
from reviewiq.modules.reviews.services.side_effects import SideEffectDispatcher

logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"
FALLBACK_SUFFIX = "Used fallback logic."
SWEEP_ERROR = "Enrichment never completed. Finalized by pending sweep using fallback logic."


class ReviewPipeline:
    def __init__(
        self,
        store: FactStore,
        classifier,
        side_effects: SideEffectDispatcher,
        review_source: Optional[ExternalReviewSource] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.store = store
        self.classifier = classifier
        self.side_effects = side_effects
        self.review_source = review_source
        self.clock = clock
        self.timer = timer

    async def submit_review(
        self,
        payload: Union[ReviewCreate, Dict[str, Any]],
        background_tasks: Optional[BackgroundTasks] = None,
        external_review_id: Optional[str] = None,
    ) -> ReviewResult:
        """
        Validate, persist, enrich and finalize one review.

        Raises ValidationError (nothing written), StoreError (initial write
        failed) or DuplicateError (external review already stored). Classifier
        trouble never raises; the rating fallback is used and recorded on the
        review.
        """
        review = self._validate(payload)
        external = {"external_review_id": external_review_id} if external_review_id else {}
        return await self._process(review, background_tasks, external)

    async def sync_external_reviews(self, branch_id: str) -> SyncResult:
        """Pull third-party reviews for a branch and submit the unseen ones"""
        branch = self.store.get(BRANCHES, branch_id)
        if branch is None:
            raise NotFoundError(f"Branch {branch_id} not found")

        result = SyncResult(branch_id=branch_id)
        place_id = branch.get("place_id")
        if not place_id:
            logger.info(f"[SYNC] Branch {branch_id} has no place ID, nothing to sync")
            return result
        if self.review_source is None:
            logger.warning(f"[SYNC] No external review source configured for {branch_id}")
            return result

        fetched = await self.review_source.fetch_reviews(place_id)
        result.fetched = len(fetched)

        seen = {
            doc["external_review_id"]
            for doc in self.store.query(REVIEWS, [Equals("branch_id", branch_id)])
            if doc.get("external_review_id")
        }

        for external in fetched:
            key = external.external_key
            if key in seen:
                result.duplicates += 1
                continue
            seen.add(key)

            try:
                review_result = await self._submit_external(branch_id, external)
            except DuplicateError:
                # Stored by a concurrent sync after the snapshot above
                result.duplicates += 1
                continue
            except ValidationError as e:
                result.failed += 1
                logger.warning(f"[SYNC] Rejected external review {key} for {branch_id}: {e.errors}")
                continue

            result.submitted += 1
            result.review_ids.append(review_result.review_id)

        logger.info(
            f"[SYNC] Branch {branch_id}: fetched={result.fetched} submitted={result.submitted} "
            f"duplicates={result.duplicates} failed={result.failed}"
        )
        return result

    def list_reviews(
        self, branch_id: Optional[str] = None, include_deleted: bool = False
    ) -> List[Dict[str, Any]]:
        where = []
        if branch_id:
            where.append(Equals("branch_id", branch_id))
        if not include_deleted:
            where.append(Equals("is_deleted", False))

        reviews = self.store.query(REVIEWS, where)
        reviews.sort(key=lambda doc: doc["created_at"], reverse=True)
        return reviews

    def get_review(self, review_id: str) -> Dict[str, Any]:
        review = self.store.get(REVIEWS, review_id)
        if review is None or review["is_deleted"]:
            raise NotFoundError(f"Review {review_id} not found")
        return review

    def override_category(
        self, review_id: str, category: Union[ReviewCategory, str]
    ) -> Dict[str, Any]:
        """Manually correct the category; enrichment state is left alone"""
        category = ReviewCategory(category)
        self.get_review(review_id)

        if not self.store.update(REVIEWS, review_id, {"category": category.value}):
            raise NotFoundError(f"Review {review_id} not found")

        logger.info(f"Category of review {review_id} overridden to {category.value}")
        return self.get_review(review_id)

    def soft_delete_review(self, review_id: str) -> None:
        self.get_review(review_id)
        self.store.update(REVIEWS, review_id, {"is_deleted": True})
        logger.info(f"Review {review_id} soft-deleted")

    async def finalize_stale_pending(self, max_age_minutes: Optional[int] = None) -> int:
        """
        Finalize reviews stuck in pending with the rating fallback.

        Used for submissions whose finalize write was lost. The classifier is
        not consulted again; the same compare-and-set guards the write, so a
        review finalized in the meantime is left untouched.
        """
        max_age = (
            max_age_minutes if max_age_minutes is not None
            else settings.pending_sweep_max_age_minutes
        )
        cutoff = self.clock() - timedelta(minutes=max_age)
        stale = self.store.query(
            REVIEWS,
            [Equals("status", ReviewStatus.PENDING.value)],
            Between("created_at", end=cutoff),
        )

        finalized = 0
        for doc in stale:
            decision = decide_escalation(doc["rating"])
            update = {
                "sentiment": decision.effective_sentiment.value,
                "category": doc.get("category") or UNCATEGORIZED,
                "is_escalated": decision.escalated,
                "escalation_status": decision.escalation_status.value,
                "status": decision.finalized_status.value,
                "ai_processed": False,
                "ai_processing_error": SWEEP_ERROR,
                "ai_processed_at": self.clock(),
            }
            try:
                won = self._finalize(doc["id"], update)
            except StoreError as e:
                logger.error(f"Pending sweep could not finalize review {doc['id']}: {e.detail}")
                continue
            if not won:
                continue

            finalized += 1
            result = ReviewResult(
                review_id=doc["id"],
                rating=doc["rating"],
                sentiment=decision.effective_sentiment,
                category=update["category"],
                is_escalated=decision.escalated,
                escalation_status=decision.escalation_status,
                processing_duration_ms=doc.get("ai_processing_duration_ms") or 0,
            )
            await self.side_effects.dispatch(
                doc["branch_id"], self._event_payload(result), result.is_escalated
            )

        if finalized:
            logger.warning(f"Pending sweep finalized {finalized} stale review(s)")
        return finalized

    # Private helper methods

    @staticmethod
    def _validate(payload: Union[ReviewCreate, Dict[str, Any]]) -> ReviewCreate:
        if isinstance(payload, ReviewCreate):
            return payload
        try:
            return ReviewCreate.model_validate(payload)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
                for error in e.errors()
            ]
            raise ValidationError(errors=errors)

    async def _submit_external(self, branch_id: str, external: ExternalReview) -> ReviewResult:
        review = self._validate({
            "branch_id": branch_id,
            "source": ReviewSource.GOOGLE.value,
            "rating": external.rating,
            "review_text": external.text,
            "author_name": external.author_name,
        })
        return await self._process(
            review,
            None,
            {
                "external_review_id": external.external_key,
                "external_timestamp": external.publish_ms,
                "synced_at": self.clock(),
            },
        )

    async def _process(
        self,
        review: ReviewCreate,
        background_tasks: Optional[BackgroundTasks],
        extra: Dict[str, Any],
    ) -> ReviewResult:
        provisional = decide_escalation(review.rating)
        fallback_category = review.category or UNCATEGORIZED

        review_id = self.store.add(REVIEWS, {
            "branch_id": review.branch_id,
            "source": review.source.value,
            "rating": review.rating,
            "review_text": review.review_text,
            "author_name": review.author_name,
            "contact": review.contact,
            "staff_tagged": review.staff_tagged,
            "category": fallback_category,
            "status": ReviewStatus.PENDING.value,
            "response_status": ResponseStatus.PENDING.value,
            "ai_processed": False,
            "sentiment": None,
            "sentiment_confidence": None,
            "category_confidence": None,
            "is_escalated": provisional.escalated,
            "escalation_status": provisional.escalation_status.value,
            "is_deleted": False,
            "schema_version": REVIEW_SCHEMA_VERSION,
            "created_at": self.clock(),
            **extra,
        })

        started = self.timer()
        outcome = await self.classifier.classify(review.review_text)
        duration_ms = int((self.timer() - started) * 1000)

        update, result = self._build_finalization(
            review_id, review.rating, fallback_category, outcome, duration_ms
        )

        try:
            won = self._finalize(review_id, update)
        except StoreError as e:
            logger.error(
                f"Finalize write failed for review {review_id}; left pending for the sweep: {e.detail}"
            )
            return result

        if not won:
            return self._stored_result(review_id, duration_ms) or result

        payload = self._event_payload(result)
        if not self.side_effects.schedule(
            review.branch_id, payload, result.is_escalated, background_tasks
        ):
            await self.side_effects.dispatch(review.branch_id, payload, result.is_escalated)

        return result

    def _build_finalization(
        self,
        review_id: str,
        rating: int,
        fallback_category: str,
        outcome: ClassifierOutcome,
        duration_ms: int,
    ) -> Tuple[Dict[str, Any], ReviewResult]:
        if isinstance(outcome, ClassifierResult):
            decision = decide_escalation(rating, outcome.sentiment)
            category = outcome.category
            sentiment_confidence = outcome.sentiment_confidence
            category_confidence = outcome.category_confidence
            update = {
                "ai_processed": True,
                "ai_processing_error": None,
                "sentiment_confidence": sentiment_confidence,
                "category_confidence": category_confidence,
            }
            logger.info(f"Classification succeeded for review {review_id} in {duration_ms}ms")
        else:
            decision = decide_escalation(rating)
            category = fallback_category
            sentiment_confidence = 0.0
            category_confidence = 0.0
            update = {
                "ai_processed": False,
                "ai_processing_error": self._fallback_error(outcome),
            }
            logger.warning(f"Classification failed for review {review_id}: {outcome.reason}. Fallback engaged.")

        update.update({
            "sentiment": decision.effective_sentiment.value,
            "category": category,
            "is_escalated": decision.escalated,
            "escalation_status": decision.escalation_status.value,
            "status": decision.finalized_status.value,
            "ai_processed_at": self.clock(),
            "ai_processing_duration_ms": duration_ms,
        })

        result = ReviewResult(
            review_id=review_id,
            rating=rating,
            sentiment=decision.effective_sentiment,
            sentiment_confidence=sentiment_confidence,
            category=category,
            category_confidence=category_confidence,
            is_escalated=decision.escalated,
            escalation_status=decision.escalation_status,
            processing_duration_ms=duration_ms,
        )
        return update, result

    def _finalize(self, review_id: str, update: Dict[str, Any]) -> bool:
        won = self.store.update(
            REVIEWS, review_id, update, expect={"status": ReviewStatus.PENDING.value}
        )
        if not won:
            logger.info(f"Review {review_id} was already finalized; keeping the stored result")
        return won

    def _stored_result(self, review_id: str, duration_ms: int) -> Optional[ReviewResult]:
        doc = self.store.get(REVIEWS, review_id)
        if doc is None or doc["status"] == ReviewStatus.PENDING.value:
            return None
        return ReviewResult(
            review_id=review_id,
            rating=doc["rating"],
            sentiment=doc["sentiment"],
            sentiment_confidence=doc.get("sentiment_confidence") or 0.0,
            category=doc.get("category") or UNCATEGORIZED,
            category_confidence=doc.get("category_confidence") or 0.0,
            is_escalated=doc["is_escalated"],
            escalation_status=EscalationStatus(doc["escalation_status"]),
            processing_duration_ms=doc.get("ai_processing_duration_ms") or duration_ms,
        )

    @staticmethod
    def _fallback_error(failure: ClassifierFailure) -> str:
        reason = failure.reason.rstrip(".")
        return f"{reason}. {FALLBACK_SUFFIX}"

    @staticmethod
    def _event_payload(result: ReviewResult) -> Dict[str, Any]:
        return result.model_dump(by_alias=True, mode="json")
