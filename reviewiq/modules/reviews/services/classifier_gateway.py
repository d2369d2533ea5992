# reviewiq/modules/reviews/services/classifier_gateway.py

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Set, Union

import aiohttp

from reviewiq.core.config import settings
from reviewiq.modules.reviews.models.review_models import Sentiment
from reviewiq.modules.reviews.services.prompt_templates import review_analysis_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierResult:
    """Structured classification of one review text"""
    sentiment: Sentiment
    sentiment_confidence: float
    category: str
    category_confidence: float


@dataclass(frozen=True)
class ClassifierFailure:
    """Definitive failure signal; the caller falls back to rating-based rules"""
    reason: str


ClassifierOutcome = Union[ClassifierResult, ClassifierFailure]


class MalformedClassification(ValueError):
    pass


class ClassifierGateway:
    """
    Time-boxed access to an OpenAI-compatible chat completions endpoint.

    classify() never raises: missing credentials, timeouts, transport errors
    and incomplete answers all come back as ClassifierFailure. The request is
    raced against a fixed timeout; when the timeout expires the request task
    is abandoned, not awaited, and any late error it raises is discarded.
    There are no retries.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        model: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.api_base = (api_base or settings.openai_api_base).rstrip("/")
        self.model = model or settings.classifier_model
        self.timeout_ms = timeout_ms or settings.classifier_timeout_ms
        self.temperature = (
            temperature if temperature is not None else settings.classifier_temperature
        )
        self._abandoned: Set[asyncio.Task] = set()

    async def classify(self, text: str) -> ClassifierOutcome:
        """Classify review text within the timeout"""

        if not self.api_key:
            logger.warning("Classifier API key is not configured. Falling back.")
            return ClassifierFailure("Classifier API key is not configured")

        request = asyncio.ensure_future(self._request_completion(text))
        done, _ = await asyncio.wait({request}, timeout=self.timeout_ms / 1000)

        if request not in done:
            self._abandon(request)
            logger.warning(f"Classifier timed out after {self.timeout_ms}ms")
            return ClassifierFailure(f"Classifier timeout exceeded {self.timeout_ms}ms")

        try:
            content = request.result()
            return self._parse_classification(content)
        except MalformedClassification as e:
            logger.error(f"Classifier returned a malformed result: {e}")
            return ClassifierFailure(f"Malformed classifier response: {e}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Classifier transport error: {e}")
            return ClassifierFailure(f"Classifier transport error: {e}")
        except Exception as e:
            logger.error(f"Classifier processing error: {e}", exc_info=True)
            return ClassifierFailure(f"Classifier processing error: {e}")

    async def _request_completion(self, text: str) -> str:
        """Issue one chat completion request and return the message content"""
        prompt = review_analysis_prompt(text, self.temperature)
        payload = {
            "model": self.model,
            "messages": prompt["messages"],
            "temperature": prompt["temperature"],
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async with aiohttp.ClientSession(headers=headers) as session:
            async with session.post(f"{self.api_base}/chat/completions", json=payload) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise aiohttp.ClientResponseError(
                        response.request_info,
                        response.history,
                        status=response.status,
                        message=body[:200],
                    )
                data = await response.json()

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedClassification(f"unexpected completion shape: {e}")

    def _parse_classification(self, content: Optional[str]) -> ClassifierResult:
        if not content:
            raise MalformedClassification("empty completion")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise MalformedClassification(f"invalid JSON: {e}")

        if not isinstance(parsed, dict):
            raise MalformedClassification("completion is not a JSON object")

        raw_sentiment = parsed.get("sentiment")
        category = parsed.get("category")
        if not raw_sentiment or not category:
            raise MalformedClassification("missing sentiment/category")

        try:
            sentiment = Sentiment(str(raw_sentiment).strip().lower())
        except ValueError:
            raise MalformedClassification(f"unknown sentiment {raw_sentiment!r}")

        return ClassifierResult(
            sentiment=sentiment,
            sentiment_confidence=self._confidence(parsed.get("sentimentConfidence")),
            category=str(category),
            category_confidence=self._confidence(parsed.get("categoryConfidence")),
        )

    @staticmethod
    def _confidence(value: Any) -> float:
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return 0.0
        if confidence != confidence:  # NaN
            return 0.0
        return min(max(confidence, 0.0), 1.0)

    def _abandon(self, request: asyncio.Task) -> None:
        # Hold a reference until the request settles so it is not collected mid-flight
        self._abandoned.add(request)
        request.add_done_callback(self._discard_abandoned)

    def _discard_abandoned(self, request: asyncio.Task) -> None:
        self._abandoned.discard(request)
        if request.cancelled():
            return
        error = request.exception()
        if error is not None:
            logger.debug(f"Abandoned classifier request failed late: {error}")


def create_classifier_gateway() -> ClassifierGateway:
    return ClassifierGateway()
