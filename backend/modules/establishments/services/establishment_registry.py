# backend/modules/establishments/services/establishment_registry.py

from sqlalchemy.orm import Session
from typing import Optional
import logging
import uuid

from core.mixins import utcnow
from modules.establishments.exceptions import EstablishmentNotFoundError
from modules.establishments.models.establishment_models import (
    Establishment, EstablishmentStatus
)

logger = logging.getLogger(__name__)

# Only publicly visible listings can receive new reviews
REVIEWABLE_STATUSES = frozenset({EstablishmentStatus.ACTIVE})


class EstablishmentRegistry:
    """Read eligibility and write rating summaries for establishments"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, establishment_id: uuid.UUID, for_update: bool = False) -> Optional[Establishment]:
        return self.lookup_query(establishment_id, for_update=for_update).first()

    def lookup_query(self, establishment_id: uuid.UUID, for_update: bool = False):
        query = self.db.query(Establishment).filter(Establishment.id == establishment_id)
        if for_update:
            # FOR NO KEY UPDATE on PostgreSQL: serialises aggregate writers for the
            # listing while staying compatible with the FOR KEY SHARE lock that a
            # review insert holds on it through the foreign key
            query = query.with_for_update(key_share=True)
        return query

    def require(self, establishment_id: uuid.UUID, for_update: bool = False) -> Establishment:
        establishment = self.get(establishment_id, for_update=for_update)
        if establishment is None:
            raise EstablishmentNotFoundError(establishment_id)
        return establishment

    def is_eligible_for_review(self, establishment_id: uuid.UUID) -> bool:
        establishment = self.get(establishment_id)
        return establishment is not None and establishment.status in REVIEWABLE_STATUSES

    def is_partner(self, establishment_id: uuid.UUID, user_id: str) -> bool:
        establishment = self.get(establishment_id)
        return establishment is not None and establishment.partner_id == user_id

    def write_aggregate(
        self,
        establishment_id: uuid.UUID,
        review_count: int,
        average_rating: float
    ) -> Establishment:
        """Store a freshly computed rating summary on the listing"""
        establishment = self.require(establishment_id, for_update=True)
        establishment.review_count = review_count
        establishment.average_rating = average_rating
        establishment.updated_at = utcnow()
        self.db.flush()

        logger.info(
            f"Establishment {establishment_id} aggregates updated: "
            f"count={review_count} average={average_rating}"
        )
        return establishment
