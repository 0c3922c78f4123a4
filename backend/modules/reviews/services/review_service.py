# backend/modules/reviews/services/review_service.py

from contextlib import contextmanager
from sqlalchemy.orm import Session
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy import text
from typing import Optional
import logging
import uuid

from core.config import get_settings
from modules.establishments.services.establishment_registry import EstablishmentRegistry
from modules.reviews.exceptions import QuotaExceededError, StoreUnavailableError
from modules.reviews.models.review_models import Review
from modules.reviews.schemas.review_schemas import (
    PartnerResponseCreate, QuotaStatus, ReviewCreate, ReviewListData,
    ReviewResponse, ReviewSort, ReviewUpdate
)
from modules.reviews.services.aggregation_service import AggregateMaintainer
from modules.reviews.services.quota_service import QuotaTracker, create_quota_tracker
from modules.reviews.services.review_store import ReviewStore

logger = logging.getLogger(__name__)


class ReviewLifecycleService:
    """Create, edit and delete reviews under the daily quota.

    Each mutation runs as one database transaction: the review change and
    the establishment's recomputed aggregates commit together or not at all.
    """

    def __init__(
        self,
        db: Session,
        quota_tracker: Optional[QuotaTracker] = None,
        registry: Optional[EstablishmentRegistry] = None
    ):
        self.db = db
        self.settings = get_settings()
        self.registry = registry or EstablishmentRegistry(db)
        self.store = ReviewStore(db, self.registry)
        self.aggregates = AggregateMaintainer(db, self.registry)
        self.quota = quota_tracker or create_quota_tracker(db)

    def create_review(self, author_id: str, review_data: ReviewCreate) -> ReviewResponse:
        """Create a review, consuming one unit of the author's daily quota"""
        daily_limit = self.settings.review_daily_limit
        establishment_id = review_data.establishment_id
        decision = None

        try:
            with self._transaction():
                # Everything that can reject the request runs before the quota is touched
                self.store.ensure_can_create(
                    author_id, establishment_id, review_data.rating, review_data.content
                )

                decision = self.quota.check_and_consume(author_id, daily_limit)
                if not decision.allowed:
                    raise QuotaExceededError(
                        daily_limit, self.quota.resets_at(), self.quota.seconds_until_reset()
                    )

                review = self.store.create(
                    author_id, establishment_id, review_data.rating, review_data.content
                )
                self.aggregates.recompute(establishment_id)
        except Exception:
            if decision is not None and decision.allowed and decision.counted \
                    and not self.quota.refunds_by_rollback:
                self.quota.refund(author_id)
            raise

        logger.info(
            f"Review {review.id} created by {author_id}, "
            f"{decision.remaining} reviews left today"
        )
        return self._format_review_response(review)

    def update_review(
        self,
        review_id: uuid.UUID,
        requester_id: str,
        update_data: ReviewUpdate
    ) -> ReviewResponse:
        """Edit a review; aggregates are recomputed only when the rating moved"""
        with self._transaction():
            review, rating_changed = self.store.update(
                review_id,
                requester_id,
                rating=update_data.rating,
                content=update_data.content,
            )
            if rating_changed:
                self.aggregates.recompute(review.establishment_id)

        return self._format_review_response(review)

    def delete_review(self, review_id: uuid.UUID, requester_id: str) -> None:
        """Soft delete a review and drop it from the establishment's aggregates"""
        with self._transaction():
            review = self.store.soft_delete(review_id, requester_id)
            self.aggregates.recompute(review.establishment_id)

    def respond_to_review(
        self,
        review_id: uuid.UUID,
        partner_id: str,
        response_data: PartnerResponseCreate
    ) -> ReviewResponse:
        with self._transaction():
            review = self.store.set_partner_response(review_id, partner_id, response_data.content)

        return self._format_review_response(review)

    def get_review(self, review_id: uuid.UUID) -> ReviewResponse:
        with self._transaction():
            review = self.store.get(review_id)
            return self._format_review_response(review)

    def list_establishment_reviews(
        self,
        establishment_id: uuid.UUID,
        page: int = 1,
        limit: Optional[int] = None,
        sort: ReviewSort = ReviewSort.NEWEST
    ) -> ReviewListData:
        """Public listing of an establishment's active reviews"""
        with self._transaction():
            self.registry.require(establishment_id)
            reviews, pagination = self.store.list_for_establishment(
                establishment_id, page=page, page_size=limit, sort=sort
            )
            return ReviewListData(
                reviews=[self._format_review_response(review) for review in reviews],
                pagination=pagination,
            )

    def list_user_reviews(
        self,
        author_id: str,
        page: int = 1,
        limit: Optional[int] = None
    ) -> ReviewListData:
        with self._transaction():
            reviews, pagination = self.store.list_for_author(author_id, page=page, page_size=limit)
            return ReviewListData(
                reviews=[self._format_review_response(review) for review in reviews],
                pagination=pagination,
            )

    def get_quota(self, user_id: str) -> QuotaStatus:
        """Today's review budget for the user"""
        return self.quota.status(user_id, self.settings.review_daily_limit)

    # Private helper methods

    @contextmanager
    def _transaction(self):
        """Commit on success, roll back on any error.

        Database connectivity failures surface as StoreUnavailableError; the
        review errors raised inside pass through unchanged.
        """
        try:
            self._apply_statement_timeout()
            yield
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        except DBAPIError as e:
            logger.error(f"Review store failure, rolling back: {e}", exc_info=True)
            self._safe_rollback()
            raise StoreUnavailableError() from e
        except Exception:
            self.db.rollback()
            raise

    def _apply_statement_timeout(self) -> None:
        if self.db.get_bind().dialect.name != "postgresql":
            return
        timeout_ms = int(self.settings.review_statement_timeout_ms)
        self.db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    def _safe_rollback(self) -> None:
        try:
            self.db.rollback()
        except DBAPIError as e:
            logger.error(f"Rollback failed after store failure: {e}")

    def _format_review_response(self, review: Review) -> ReviewResponse:
        return ReviewResponse.model_validate(review)


def create_review_service(db: Session) -> ReviewLifecycleService:
    """Create review lifecycle service instance"""
    return ReviewLifecycleService(db)
