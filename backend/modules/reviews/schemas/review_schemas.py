# backend/modules/reviews/schemas/review_schemas.py

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional
from datetime import datetime
from enum import Enum
import uuid

from core.response_models import PaginationMeta


class ReviewSort(str, Enum):
    """Orderings offered for public review listings"""
    NEWEST = "newest"
    HIGHEST = "highest"
    LOWEST = "lowest"


# Rating and content bounds are enforced by the review store so that each
# violation surfaces with its own error code. Ratings reach the store exactly
# as sent; no coercion from booleans or numeric strings.
class ReviewCreate(BaseModel):
    """Schema for creating a review"""
    establishment_id: uuid.UUID
    rating: Any = Field(..., description="Whole stars, 1 to 5")
    content: str = Field(..., description="Review text, at least 10 characters")


class ReviewUpdate(BaseModel):
    """Schema for editing a review; omitted fields are left unchanged"""
    rating: Optional[Any] = None
    content: Optional[str] = None


class PartnerResponseCreate(BaseModel):
    """Schema for the establishment partner's reply"""
    content: str = Field(..., min_length=1, max_length=1000)


class ReviewResponse(BaseModel):
    """Schema for review response"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    author_id: str
    establishment_id: uuid.UUID
    rating: int
    content: str
    is_edited: bool
    is_active: bool
    partner_response: Optional[str] = None
    partner_responded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ReviewListData(BaseModel):
    """Page of reviews with pagination metadata"""
    reviews: List[ReviewResponse]
    pagination: PaginationMeta


class AggregateSummary(BaseModel):
    """Rating statistics derived from an establishment's active reviews"""
    establishment_id: uuid.UUID
    review_count: int
    average_rating: float


class QuotaStatus(BaseModel):
    """A user's review creation budget for the current day"""
    daily_limit: int
    used: int
    remaining: int
    resets_at: datetime


class QuotaDecision(BaseModel):
    """Outcome of a check-and-consume on the daily quota"""
    allowed: bool
    remaining: int
    # False when the counter store was unreachable and the action was let through
    counted: bool = True
