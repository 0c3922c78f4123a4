# backend/modules/reviews/exceptions.py

"""
Errors raised by the review lifecycle.

Each error carries a stable machine readable code. Input problems are 400s,
ownership problems 403, invisible or missing records 404, the one active
review rule 409, the daily quota 429 and backing store outages 503.
"""

from datetime import datetime
from typing import Optional
import uuid

from fastapi import status

from core.exceptions import (
    APIError, ConflictError, NotFoundError, PermissionError,
    ServiceUnavailableError, ValidationError
)


class InvalidRatingError(ValidationError):
    def __init__(self, rating):
        super().__init__(
            detail="Rating must be an integer between 1 and 5",
            error_code="INVALID_RATING",
            details={"field": "rating", "value": rating},
        )


class ContentTooShortError(ValidationError):
    def __init__(self, min_length: int, actual_length: int):
        super().__init__(
            detail=f"Review content must be at least {min_length} characters",
            error_code="CONTENT_TOO_SHORT",
            details={"field": "content", "min_length": min_length, "length": actual_length},
        )


class ContentTooLongError(ValidationError):
    def __init__(self, max_length: int, actual_length: int):
        super().__init__(
            detail=f"Review content must be at most {max_length} characters",
            error_code="CONTENT_TOO_LONG",
            details={"field": "content", "max_length": max_length, "length": actual_length},
        )


class EstablishmentNotEligibleError(ValidationError):
    def __init__(self, establishment_id: uuid.UUID, establishment_status: Optional[str] = None):
        super().__init__(
            detail="Establishment is not accepting reviews",
            error_code="ESTABLISHMENT_NOT_ELIGIBLE",
            details={
                "establishment_id": str(establishment_id),
                "status": establishment_status,
            },
        )


class ReviewNotFoundError(NotFoundError):
    def __init__(self, review_id):
        super().__init__(
            detail=f"Review {review_id} not found",
            error_code="REVIEW_NOT_FOUND",
            details={"review_id": str(review_id)},
        )


class ReviewForbiddenError(PermissionError):
    def __init__(self, detail: str = "Only the author can modify this review"):
        super().__init__(detail=detail, error_code="FORBIDDEN")


class DuplicateActiveReviewError(ConflictError):
    def __init__(self, establishment_id: uuid.UUID, existing_review_id: Optional[uuid.UUID] = None):
        details = {"establishment_id": str(establishment_id)}
        if existing_review_id is not None:
            details["existing_review_id"] = str(existing_review_id)
        super().__init__(
            detail="You have already reviewed this establishment",
            error_code="DUPLICATE_REVIEW",
            details=details,
        )


class QuotaExceededError(APIError):
    def __init__(self, daily_limit: int, resets_at: datetime, retry_after_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Daily review limit of {daily_limit} reached",
            error_code="QUOTA_EXCEEDED",
            details={
                "daily_limit": daily_limit,
                "remaining": 0,
                "resets_at": resets_at.isoformat(),
            },
            headers={"Retry-After": str(max(retry_after_seconds, 1))},
        )


class StoreUnavailableError(ServiceUnavailableError):
    def __init__(self):
        super().__init__(
            detail="Review storage is temporarily unavailable",
            error_code="STORE_UNAVAILABLE",
        )


class CounterUnavailableError(ServiceUnavailableError):
    def __init__(self):
        super().__init__(
            detail="Review quota service is temporarily unavailable",
            error_code="COUNTER_UNAVAILABLE",
        )
