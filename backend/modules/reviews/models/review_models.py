# backend/modules/reviews/models/review_models.py

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index,
    Integer, String, Text, UniqueConstraint, Uuid, text
)
from sqlalchemy.orm import relationship
import uuid

from core.database import Base
from core.mixins import TimestampMixin
from modules.establishments.models.establishment_models import Establishment  # noqa: F401


class Review(Base, TimestampMixin):
    """One author's opinion of one establishment"""
    __tablename__ = "reviews"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Author comes from the identity provider, establishment from the registry
    author_id = Column(String(64), nullable=False, index=True)
    establishment_id = Column(
        Uuid, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True
    )

    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)

    is_edited = Column(Boolean, nullable=False, default=False)

    # Soft delete state; inactive rows are kept for audit
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime, nullable=True)

    # Establishment partner's public reply
    partner_response = Column(Text, nullable=True)
    partner_responded_at = Column(DateTime, nullable=True)

    establishment = relationship("Establishment")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        # At most one active review per author and establishment
        Index(
            "uq_reviews_author_establishment_active",
            "author_id",
            "establishment_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_reviews_establishment_created", "establishment_id", "is_active", "created_at"),
        Index("idx_reviews_establishment_rating", "establishment_id", "is_active", "rating"),
    )

    def __repr__(self):
        return f"<Review {self.id} author={self.author_id} establishment={self.establishment_id}>"


class ReviewQuotaCounter(Base):
    """Review creations consumed by one user on one calendar day"""
    __tablename__ = "review_quota_counters"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    bucket_date = Column(Date, nullable=False)
    consumed = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "bucket_date", name="uq_review_quota_user_day"),
        CheckConstraint("consumed >= 0", name="ck_review_quota_consumed"),
    )
