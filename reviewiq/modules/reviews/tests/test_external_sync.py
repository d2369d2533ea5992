import asyncio
from datetime import datetime, timezone

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from reviewiq.core.exceptions import NotFoundError
from reviewiq.modules.reviews.schemas.review_schemas import ExternalReview
from reviewiq.modules.reviews.services.external_review_source import GooglePlacesReviewSource
from reviewiq.modules.reviews.services.fact_store import BRANCHES, REVIEWS


def external(author, rating, minute, text="Solid food"):
    return ExternalReview(
        author_name=author,
        rating=rating,
        text=text,
        publish_time=datetime(2024, 6, 1, 10, minute, tzinfo=timezone.utc),
    )


class TestSyncExternalReviews:

    @pytest.mark.asyncio
    async def test_submits_unseen_reviews_and_counts_the_rest(
        self, pipeline, review_source, fact_store, branch
    ):
        already_stored = external("Ann", 4, 0)
        await pipeline.submit_review(
            {
                "branch_id": "branch-1",
                "source": "google",
                "rating": 4,
                "review_text": "Solid food",
            },
            external_review_id=already_stored.external_key,
        )

        review_source.reviews = [
            already_stored,
            external("Ben", 5, 1),
            external("Ben", 5, 1),
            external("Cat", None, 2),
            external("Dan", 1, 3, text="Cold and late"),
        ]

        result = await pipeline.sync_external_reviews("branch-1")

        assert review_source.place_ids == ["ChIJabc123"]
        assert result.fetched == 5
        assert result.duplicates == 2
        assert result.failed == 1
        assert result.submitted == 2
        assert len(result.review_ids) == 2

        synced = [fact_store.get(REVIEWS, review_id) for review_id in result.review_ids]
        assert {doc["source"] for doc in synced} == {"google"}
        assert {doc["author_name"] for doc in synced} == {"Ben", "Dan"}
        dan = next(doc for doc in synced if doc["author_name"] == "Dan")
        assert dan["external_review_id"] == external("Dan", 1, 3).external_key
        assert dan["external_timestamp"] == external("Dan", 1, 3).publish_ms
        assert dan["synced_at"] is not None
        assert dan["is_escalated"] is True

    @pytest.mark.asyncio
    async def test_second_sync_finds_only_duplicates(self, pipeline, review_source, branch):
        review_source.reviews = [external("Ben", 5, 1), external("Eve", 3, 4)]

        await pipeline.sync_external_reviews("branch-1")
        again = await pipeline.sync_external_reviews("branch-1")

        assert again.submitted == 0
        assert again.duplicates == 2

    @pytest.mark.asyncio
    async def test_concurrent_syncs_store_each_review_once(
        self, pipeline, classifier, review_source, fact_store, branch
    ):
        classifier.delay = 0.01
        review_source.reviews = [external("Ann", 4, 0), external("Ben", 5, 1), external("Cat", 3, 2)]

        first, second = await asyncio.gather(
            pipeline.sync_external_reviews("branch-1"),
            pipeline.sync_external_reviews("branch-1"),
        )

        stored = sorted(doc["external_review_id"] for doc in fact_store.query(REVIEWS))
        assert stored == sorted(review.external_key for review in review_source.reviews)
        assert first.submitted + second.submitted == 3
        assert first.duplicates + second.duplicates == 3

    @pytest.mark.asyncio
    async def test_unknown_branch_is_not_found(self, pipeline):
        with pytest.raises(NotFoundError):
            await pipeline.sync_external_reviews("nowhere")

    @pytest.mark.asyncio
    async def test_branch_without_place_id_is_skipped(self, pipeline, review_source, fact_store):
        fact_store.add(BRANCHES, {"id": "branch-2", "name": "Uptown"})

        result = await pipeline.sync_external_reviews("branch-2")

        assert result.fetched == 0
        assert result.submitted == 0
        assert review_source.place_ids == []


class TestGooglePlacesReviewSource:

    @pytest.mark.asyncio
    async def test_reads_reviews_from_place_details(self):
        source = GooglePlacesReviewSource(api_key="places-key", api_base="https://places.test/v1")
        body = {
            "reviews": [
                {
                    "rating": 5,
                    "text": {"text": "Best biryani in town", "languageCode": "en"},
                    "authorAttribution": {"displayName": "Priya"},
                    "publishTime": "2024-05-30T18:45:00Z",
                },
                {
                    "rating": 2,
                    "publishTime": "2024-05-31T08:00:00Z",
                },
                {"rating": 4},
            ]
        }
        response = httpx.Response(
            200, json=body, request=httpx.Request("GET", "https://places.test/v1/places/ChIJabc123")
        )

        with patch("httpx.AsyncClient.get", AsyncMock(return_value=response)) as mock_get:
            reviews = await source.fetch_reviews("ChIJabc123")

        mock_get.assert_awaited_once()
        args, kwargs = mock_get.call_args
        assert args[0] == "https://places.test/v1/places/ChIJabc123"
        assert kwargs["headers"]["X-Goog-Api-Key"] == "places-key"
        assert kwargs["headers"]["X-Goog-FieldMask"] == "reviews"

        assert len(reviews) == 2
        assert reviews[0].author_name == "Priya"
        assert reviews[0].text == "Best biryani in town"
        assert reviews[0].external_key == "Priya~1717094700000"
        assert reviews[1].author_name == "Google User"
        assert reviews[1].text == "No review text provided."

    @pytest.mark.asyncio
    async def test_http_error_is_raised(self):
        source = GooglePlacesReviewSource(api_key="places-key", api_base="https://places.test/v1")
        response = httpx.Response(
            403, json={}, request=httpx.Request("GET", "https://places.test/v1/places/x")
        )

        with patch("httpx.AsyncClient.get", AsyncMock(return_value=response)):
            with pytest.raises(httpx.HTTPStatusError):
                await source.fetch_reviews("x")

    @pytest.mark.asyncio
    async def test_missing_api_key_fetches_nothing(self):
        source = GooglePlacesReviewSource(api_key="")

        with patch("httpx.AsyncClient.get", AsyncMock()) as mock_get:
            assert await source.fetch_reviews("ChIJabc123") == []

        mock_get.assert_not_called()
