# backend/modules/reviews/dependencies.py

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from modules.reviews.services.review_service import ReviewLifecycleService, create_review_service


def get_review_service(db: Session = Depends(get_db)) -> ReviewLifecycleService:
    """One lifecycle service per request, bound to the request's session"""
    return create_review_service(db)
