# reviewiq/modules/reviews/schemas/review_schemas.py

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime

from reviewiq.modules.reviews.models.review_models import (
    ReviewSource,
    Sentiment,
    ReviewStatus,
    EscalationStatus,
    ResponseStatus,
    ReviewCategory,
)


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes camelCase"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Intake
class ReviewCreate(CamelModel):
    """Schema for submitting a review"""

    branch_id: str = Field(..., min_length=1, max_length=64)
    source: ReviewSource
    rating: int = Field(..., ge=1, le=5, strict=True)
    review_text: str = Field(..., min_length=1, max_length=5000)
    category: Optional[str] = Field(None, max_length=100)
    author_name: Optional[str] = Field(None, max_length=255)
    contact: Optional[str] = Field(None, max_length=255)
    staff_tagged: Optional[str] = Field(None, max_length=64)

    @field_validator("branch_id", "review_text")
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class ReviewResult(CamelModel):
    """Caller-visible result of a submission; also the real-time event payload"""

    review_id: str
    rating: int
    sentiment: Sentiment
    sentiment_confidence: float = 0.0
    category: str
    category_confidence: float = 0.0
    is_escalated: bool
    escalation_status: EscalationStatus
    processing_duration_ms: int = 0


class ReviewRecord(CamelModel):
    """Stored review as returned by listing endpoints"""

    id: str
    branch_id: str
    source: ReviewSource
    rating: int
    review_text: str
    author_name: Optional[str] = None
    contact: Optional[str] = None
    staff_tagged: Optional[str] = None
    external_review_id: Optional[str] = None
    sentiment: Optional[Sentiment] = None
    sentiment_confidence: Optional[float] = None
    category: Optional[str] = None
    category_confidence: Optional[float] = None
    ai_processed: bool
    ai_processing_error: Optional[str] = None
    ai_processed_at: Optional[datetime] = None
    ai_processing_duration_ms: Optional[int] = None
    is_escalated: bool
    escalation_status: EscalationStatus
    status: ReviewStatus
    response_status: ResponseStatus
    response_time_minutes: Optional[int] = None
    responded_at: Optional[datetime] = None
    is_deleted: bool
    schema_version: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class CategoryOverride(CamelModel):
    """Manual category correction by staff"""

    category: ReviewCategory


# Responses
class ResponseCreate(CamelModel):
    response_text: str = Field(..., min_length=1, max_length=5000)
    responded_by: Optional[str] = Field(None, max_length=64)


class ResponseRecord(CamelModel):
    id: str
    review_id: str
    response_text: str
    responded_by: Optional[str] = None
    responded_at: datetime


# External sync
class ExternalReview(CamelModel):
    """Review pulled from a third-party listing"""

    author_name: str = "Google User"
    rating: Optional[int] = None
    text: str = "No review text provided."
    publish_time: datetime

    @property
    def publish_ms(self) -> int:
        return int(self.publish_time.timestamp() * 1000)

    @property
    def external_key(self) -> str:
        """Stable de-duplication key: author~publish time in epoch ms"""
        return f"{self.author_name}~{self.publish_ms}"


class SyncResult(CamelModel):
    branch_id: str
    fetched: int = 0
    submitted: int = 0
    duplicates: int = 0
    failed: int = 0
    review_ids: List[str] = Field(default_factory=list)
