import pytest

from reviewiq.modules.reviews.models.review_models import (
    EscalationStatus, ReviewStatus, Sentiment
)
from reviewiq.modules.reviews.services.escalation_policy import (
    decide_escalation, fallback_sentiment
)


class TestFallbackSentiment:

    @pytest.mark.parametrize("rating,expected", [
        (1, Sentiment.NEGATIVE),
        (2, Sentiment.NEGATIVE),
        (3, Sentiment.NEUTRAL),
        (4, Sentiment.POSITIVE),
        (5, Sentiment.POSITIVE),
    ])
    def test_sentiment_follows_rating(self, rating, expected):
        assert fallback_sentiment(rating) == expected


class TestDecideEscalation:

    def test_negative_text_escalates_five_star_review(self):
        decision = decide_escalation(5, Sentiment.NEGATIVE)

        assert decision.escalated is True
        assert decision.escalation_status == EscalationStatus.ESCALATED
        assert decision.finalized_status == ReviewStatus.CRITICAL
        assert decision.effective_sentiment == Sentiment.NEGATIVE

    def test_low_rating_escalates_even_with_positive_text(self):
        decision = decide_escalation(1, Sentiment.POSITIVE)

        assert decision.escalated is True
        assert decision.effective_sentiment == Sentiment.POSITIVE
        assert decision.finalized_status == ReviewStatus.CRITICAL

    def test_neutral_three_star_is_not_escalated(self):
        decision = decide_escalation(3, Sentiment.NEUTRAL)

        assert decision.escalated is False
        assert decision.escalation_status == EscalationStatus.NONE
        assert decision.finalized_status == ReviewStatus.NORMAL

    def test_fallback_without_classifier(self):
        assert decide_escalation(2).escalated is True
        assert decide_escalation(2).effective_sentiment == Sentiment.NEGATIVE
        assert decide_escalation(4).escalated is False
        assert decide_escalation(4).effective_sentiment == Sentiment.POSITIVE

    def test_accepts_raw_sentiment_string(self):
        assert decide_escalation(4, "negative").escalated is True

    @pytest.mark.parametrize("rating", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("sentiment", [None, *Sentiment])
    def test_escalation_flags_always_agree(self, rating, sentiment):
        decision = decide_escalation(rating, sentiment)

        assert decision.escalated == (decision.escalation_status == EscalationStatus.ESCALATED)
        assert decision.escalated == (
            decision.effective_sentiment == Sentiment.NEGATIVE or rating <= 2
        )
