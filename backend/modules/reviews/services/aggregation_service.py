# backend/modules/reviews/services/aggregation_service.py

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional
import logging
import uuid

from modules.establishments.services.establishment_registry import EstablishmentRegistry
from modules.reviews.models.review_models import Review
from modules.reviews.schemas.review_schemas import AggregateSummary

logger = logging.getLogger(__name__)

AVERAGE_PRECISION = 2


class AggregateMaintainer:
    """Keeps an establishment's review count and mean rating in step with its active reviews.

    The summary is always recomputed from scratch, never adjusted by deltas,
    so a missed or repeated call cannot leave it drifting.
    """

    def __init__(self, db: Session, registry: Optional[EstablishmentRegistry] = None):
        self.db = db
        self.registry = registry or EstablishmentRegistry(db)

    def calculate(self, establishment_id: uuid.UUID) -> AggregateSummary:
        """Compute count and mean over active reviews without storing them"""
        result = self.db.query(
            func.count(Review.id).label("review_count"),
            func.avg(Review.rating).label("average_rating")
        ).filter(
            Review.establishment_id == establishment_id,
            Review.is_active.is_(True)
        ).first()

        review_count = result.review_count or 0
        average_rating = round(float(result.average_rating), AVERAGE_PRECISION) if review_count else 0.0

        return AggregateSummary(
            establishment_id=establishment_id,
            review_count=review_count,
            average_rating=average_rating,
        )

    def recompute(self, establishment_id: uuid.UUID) -> AggregateSummary:
        """Recalculate and persist the summary. Must run in the mutating transaction."""
        # Lock the listing first so concurrent recomputes serialise
        self.registry.require(establishment_id, for_update=True)

        summary = self.calculate(establishment_id)
        self.registry.write_aggregate(
            establishment_id, summary.review_count, summary.average_rating
        )
        return summary
