# reviewiq/modules/reviews/models/review_models.py

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, JSON, Index, UniqueConstraint
)
from datetime import datetime
import enum

from reviewiq.core.database import Base
from reviewiq.core.mixins import TimestampMixin


REVIEW_SCHEMA_VERSION = 2


class ReviewSource(str, enum.Enum):
    """Channel a review arrived through"""
    INTERNAL = "internal"
    GOOGLE = "google"
    ZOMATO = "zomato"
    SWIGGY = "swiggy"


class Sentiment(str, enum.Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ReviewStatus(str, enum.Enum):
    """Enrichment state; pending until the classifier path resolves"""
    PENDING = "pending"
    NORMAL = "normal"
    CRITICAL = "critical"


class EscalationStatus(str, enum.Enum):
    NONE = "none"
    ESCALATED = "escalated"


class ResponseStatus(str, enum.Enum):
    PENDING = "pending"
    RESPONDED = "responded"


class ReviewCategory(str, enum.Enum):
    """Categories staff may assign when overriding the classifier"""
    FOOD = "Food"
    SERVICE = "Service"
    AMBIANCE = "Ambiance"
    CLEANLINESS = "Cleanliness"
    PRICE = "Price"


class BranchStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# Database Models
class Review(Base, TimestampMixin):
    """Customer review with classifier enrichment and escalation state"""
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True)

    # Immutable input
    branch_id = Column(String(64), nullable=False, index=True)
    source = Column(String(20), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=False)
    author_name = Column(String(255), nullable=True)
    contact = Column(String(255), nullable=True)
    staff_tagged = Column(String(64), nullable=True, index=True)

    # External sync tracking
    external_review_id = Column(String(512), nullable=True, index=True)
    external_timestamp = Column(Integer, nullable=True)  # epoch ms
    synced_at = Column(DateTime, nullable=True)

    # Classifier enrichment
    sentiment = Column(String(20), nullable=True, index=True)
    sentiment_confidence = Column(Float, nullable=True)
    category = Column(String(100), nullable=True)
    category_confidence = Column(Float, nullable=True)
    ai_processed = Column(Boolean, default=False, nullable=False)
    ai_processing_error = Column(Text, nullable=True)
    ai_processed_at = Column(DateTime, nullable=True)
    ai_processing_duration_ms = Column(Integer, nullable=True)

    # Escalation and lifecycle
    is_escalated = Column(Boolean, default=False, nullable=False)
    escalation_status = Column(String(20), default=EscalationStatus.NONE.value, nullable=False)
    status = Column(String(20), default=ReviewStatus.PENDING.value, nullable=False, index=True)

    # Response tracking
    response_status = Column(String(20), default=ResponseStatus.PENDING.value, nullable=False, index=True)
    response_time_minutes = Column(Integer, nullable=True)
    responded_at = Column(DateTime, nullable=True)

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    schema_version = Column(Integer, default=REVIEW_SCHEMA_VERSION, nullable=False)

    __table_args__ = (
        Index('idx_review_branch_created', 'branch_id', 'created_at'),
        Index('idx_review_branch_deleted', 'branch_id', 'is_deleted'),
        UniqueConstraint('branch_id', 'external_review_id', name='uq_review_branch_external'),
    )


class Branch(Base, TimestampMixin):
    """Restaurant branch; read-only from the pipeline's point of view"""
    __tablename__ = "branches"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    location = Column(String(500), nullable=True)
    manager_email = Column(String(255), nullable=True)
    place_id = Column(String(255), nullable=True)
    status = Column(String(20), default=BranchStatus.ACTIVE.value, nullable=False, index=True)


class Response(Base, TimestampMixin):
    """Staff reply to a review; only its timestamp matters for SLA math"""
    __tablename__ = "responses"

    id = Column(String(36), primary_key=True)
    review_id = Column(String(36), nullable=False, index=True)
    response_text = Column(Text, nullable=False)
    responded_by = Column(String(64), nullable=True, index=True)
    responded_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AuditLog(Base):
    """Audit trail for escalations and other system decisions"""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    actor_uid = Column(String(64), nullable=False)
    action = Column(String(64), nullable=False, index=True)
    target_id = Column(String(64), nullable=False)
    target_type = Column(String(32), nullable=False)
    branch_id = Column(String(64), nullable=True, index=True)
    audit_metadata = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_audit_branch_action", "branch_id", "action"),
    )
