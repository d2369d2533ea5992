# reviewiq/modules/reviews/services/escalation_policy.py

"""
Escalation rules.

Rating and sentiment are independent signals and either one is enough to
escalate: a 5-star review whose text reads negative is escalated, and so is
a 1-star review the classifier reads as positive.
"""

from dataclasses import dataclass
from typing import Optional

from reviewiq.modules.reviews.models.review_models import (
    EscalationStatus, ReviewStatus, Sentiment
)

LOW_RATING_THRESHOLD = 2


@dataclass(frozen=True)
class EscalationDecision:
    effective_sentiment: Sentiment
    escalated: bool
    finalized_status: ReviewStatus

    @property
    def escalation_status(self) -> EscalationStatus:
        return EscalationStatus.ESCALATED if self.escalated else EscalationStatus.NONE


def fallback_sentiment(rating: int) -> Sentiment:
    """Sentiment implied by the star rating alone."""
    if rating <= LOW_RATING_THRESHOLD:
        return Sentiment.NEGATIVE
    if rating == 3:
        return Sentiment.NEUTRAL
    return Sentiment.POSITIVE


def decide_escalation(
    rating: int,
    classifier_sentiment: Optional[Sentiment] = None
) -> EscalationDecision:
    """Escalation decision for a review; pass no sentiment when the classifier failed."""
    effective = (
        Sentiment(classifier_sentiment)
        if classifier_sentiment is not None
        else fallback_sentiment(rating)
    )
    escalated = effective == Sentiment.NEGATIVE or rating <= LOW_RATING_THRESHOLD

    return EscalationDecision(
        effective_sentiment=effective,
        escalated=escalated,
        finalized_status=ReviewStatus.CRITICAL if escalated else ReviewStatus.NORMAL,
    )
