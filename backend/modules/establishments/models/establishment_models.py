# backend/modules/establishments/models/establishment_models.py

from sqlalchemy import Column, Enum, Float, Index, Integer, String, Uuid
import uuid
import enum

from core.database import Base
from core.mixins import TimestampMixin


class EstablishmentStatus(str, enum.Enum):
    """Publication workflow of an establishment listing"""
    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class Establishment(Base, TimestampMixin):
    """Establishment listing, as far as the reviews core is concerned"""
    __tablename__ = "establishments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    partner_id = Column(String(64), nullable=False, index=True)  # Owner in the identity provider
    name = Column(String(255), nullable=False)
    status = Column(
        Enum(EstablishmentStatus, name="establishment_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EstablishmentStatus.DRAFT,
        index=True,
    )

    # Rating summary, written only by the reviews aggregate maintainer
    review_count = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        Index("idx_establishments_status_rating", "status", "average_rating"),
    )
