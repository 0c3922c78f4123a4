# backend/modules/reviews/services/review_store.py

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import asc, desc
from typing import List, Optional, Tuple
from datetime import datetime, timedelta
import logging
import uuid

from core.config import get_settings
from core.exceptions import ValidationError
from core.mixins import utcnow
from core.response_models import PaginationMeta
from modules.establishments.exceptions import EstablishmentNotFoundError
from modules.establishments.services.establishment_registry import EstablishmentRegistry
from modules.reviews.exceptions import (
    ContentTooLongError, ContentTooShortError, DuplicateActiveReviewError,
    EstablishmentNotEligibleError, InvalidRatingError, ReviewForbiddenError,
    ReviewNotFoundError
)
from modules.reviews.models.review_models import Review
from modules.reviews.schemas.review_schemas import ReviewSort

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class ReviewStore:
    """Persisted reviews, their soft delete state and the one-active-review rule.

    The store validates and flushes; committing or rolling back is left to the
    caller so a review mutation and its aggregate update share a transaction.
    """

    def __init__(self, db: Session, registry: Optional[EstablishmentRegistry] = None):
        settings = get_settings()
        self.db = db
        self.registry = registry or EstablishmentRegistry(db)
        self.min_content_length = settings.review_min_content_length
        self.max_content_length = settings.review_max_content_length
        self.max_page_size = settings.review_max_page_size

    # Validation

    def validate_rating(self, rating) -> int:
        if isinstance(rating, float) and rating.is_integer():
            rating = int(rating)
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidRatingError(rating)
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRatingError(rating)
        return rating

    def validate_content(self, content) -> str:
        """Return the stored form of the content (surrounding whitespace removed)"""
        if not isinstance(content, str):
            raise ContentTooShortError(self.min_content_length, 0)
        normalized = content.strip()
        if len(normalized) < self.min_content_length:
            raise ContentTooShortError(self.min_content_length, len(normalized))
        if len(normalized) > self.max_content_length:
            raise ContentTooLongError(self.max_content_length, len(normalized))
        return normalized

    def ensure_can_create(
        self,
        author_id: str,
        establishment_id: uuid.UUID,
        rating: int,
        content: str
    ) -> str:
        """Run every create precondition without writing. Returns normalized content."""
        self.validate_rating(rating)
        normalized = self.validate_content(content)

        establishment = self.registry.get(establishment_id)
        if establishment is None:
            raise EstablishmentNotFoundError(establishment_id)
        if not self.registry.is_eligible_for_review(establishment_id):
            raise EstablishmentNotEligibleError(establishment_id, establishment.status.value)

        existing = self.find_active(author_id, establishment_id)
        if existing is not None:
            raise DuplicateActiveReviewError(establishment_id, existing.id)

        return normalized

    # Mutations

    def create(
        self,
        author_id: str,
        establishment_id: uuid.UUID,
        rating: int,
        content: str
    ) -> Review:
        """Persist a new active review"""
        normalized = self.ensure_can_create(author_id, establishment_id, rating, content)
        rating = self.validate_rating(rating)

        now = utcnow()
        review = Review(
            id=uuid.uuid4(),
            author_id=author_id,
            establishment_id=establishment_id,
            rating=rating,
            content=normalized,
            is_edited=False,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(review)
        try:
            self.db.flush()
        except IntegrityError as e:
            # Lost a race against a concurrent create for the same pair
            logger.warning(
                f"Unique active review violation for author {author_id} "
                f"and establishment {establishment_id}: {e.orig}"
            )
            raise DuplicateActiveReviewError(establishment_id) from e

        logger.info(f"Created review {review.id} by {author_id} for establishment {establishment_id}")
        return review

    def update(
        self,
        review_id: uuid.UUID,
        requester_id: str,
        rating: Optional[int] = None,
        content: Optional[str] = None
    ) -> Tuple[Review, bool]:
        """Edit rating and/or content of an active review owned by the requester.

        Returns the review and whether its rating changed.
        """
        review = self.get(review_id)
        self._ensure_author(review, requester_id)

        if rating is None and content is None:
            raise ValidationError(
                "At least one of rating or content must be provided",
                details={"fields": ["rating", "content"]},
            )

        if rating is not None:
            rating = self.validate_rating(rating)
        normalized = self.validate_content(content) if content is not None else None

        rating_changed = rating is not None and rating != review.rating
        if rating is not None:
            review.rating = rating
        if normalized is not None:
            review.content = normalized
        review.is_edited = True
        review.updated_at = self._next_timestamp(review.updated_at)
        self.db.flush()

        logger.info(f"Updated review {review_id}")
        return review, rating_changed

    def soft_delete(self, review_id: uuid.UUID, requester_id: str) -> Review:
        """Hide an active review owned by the requester; the row is kept"""
        review = self.get(review_id)
        self._ensure_author(review, requester_id)

        now = self._next_timestamp(review.updated_at)
        review.is_active = False
        review.deleted_at = now
        review.updated_at = now
        self.db.flush()

        logger.info(f"Soft deleted review {review_id}")
        return review

    def set_partner_response(self, review_id: uuid.UUID, partner_id: str, response: str) -> Review:
        """Attach or replace the establishment partner's reply. Ratings are unaffected."""
        review = self.get(review_id)
        if not self.registry.is_partner(review.establishment_id, partner_id):
            logger.warning(f"User {partner_id} is not the partner for review {review_id}")
            raise ReviewForbiddenError("Only the establishment partner can respond to this review")

        review.partner_response = response.strip()
        review.partner_responded_at = utcnow()
        self.db.flush()

        logger.info(f"Partner response recorded on review {review_id}")
        return review

    # Reads

    def get(self, review_id: uuid.UUID, include_inactive: bool = False) -> Review:
        """Fetch a review. Soft deleted reviews are invisible unless include_inactive is set."""
        query = self.db.query(Review).filter(Review.id == review_id)
        if not include_inactive:
            query = query.filter(Review.is_active.is_(True))
        review = query.first()
        if review is None:
            raise ReviewNotFoundError(review_id)
        return review

    def find_active(self, author_id: str, establishment_id: uuid.UUID) -> Optional[Review]:
        return self.db.query(Review).filter(
            Review.author_id == author_id,
            Review.establishment_id == establishment_id,
            Review.is_active.is_(True),
        ).first()

    def list_for_establishment(
        self,
        establishment_id: uuid.UUID,
        page: int = 1,
        page_size: Optional[int] = None,
        sort: ReviewSort = ReviewSort.NEWEST
    ) -> Tuple[List[Review], PaginationMeta]:
        """Page through an establishment's active reviews"""
        query = self.db.query(Review).filter(
            Review.establishment_id == establishment_id,
            Review.is_active.is_(True),
        )
        query = query.order_by(*self._ordering(sort))
        return self._paginate(query, page, page_size)

    def list_for_author(
        self,
        author_id: str,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[Review], PaginationMeta]:
        """Page through an author's active reviews, newest first"""
        query = self.db.query(Review).filter(
            Review.author_id == author_id,
            Review.is_active.is_(True),
        )
        query = query.order_by(*self._ordering(ReviewSort.NEWEST))
        return self._paginate(query, page, page_size)

    # Private helper methods

    def _ensure_author(self, review: Review, requester_id: str) -> None:
        if review.author_id != requester_id:
            logger.warning(f"User {requester_id} attempted to modify review {review.id} they do not own")
            raise ReviewForbiddenError()

    def _ordering(self, sort: ReviewSort):
        # Creation time breaks rating ties, id keeps pages stable
        if sort == ReviewSort.HIGHEST:
            return desc(Review.rating), desc(Review.created_at), asc(Review.id)
        if sort == ReviewSort.LOWEST:
            return asc(Review.rating), desc(Review.created_at), asc(Review.id)
        return desc(Review.created_at), asc(Review.id)

    def _clamp_page_size(self, page_size: Optional[int]) -> int:
        if page_size is None:
            page_size = get_settings().review_default_page_size
        return max(1, min(page_size, self.max_page_size))

    def _paginate(self, query, page: int, page_size: Optional[int]) -> Tuple[List[Review], PaginationMeta]:
        page = max(page, 1)
        per_page = self._clamp_page_size(page_size)

        total = query.count()
        items = query.offset((page - 1) * per_page).limit(per_page).all()
        return items, PaginationMeta.build(page, per_page, total)

    def _next_timestamp(self, previous: Optional[datetime]) -> datetime:
        """Current time, nudged forward so updated_at strictly increases"""
        now = utcnow()
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now
