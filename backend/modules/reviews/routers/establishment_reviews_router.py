# backend/modules/reviews/routers/establishment_reviews_router.py

from fastapi import APIRouter, Depends, Path, Query
from typing import Optional
import uuid

from core.response_models import StandardResponse
from modules.reviews.dependencies import get_review_service
from modules.reviews.services.review_service import ReviewLifecycleService
from modules.reviews.schemas.review_schemas import ReviewListData, ReviewSort

router = APIRouter(prefix="/establishments", tags=["Reviews"])


@router.get("/{establishment_id}/reviews", response_model=StandardResponse[ReviewListData])
async def list_establishment_reviews(
    establishment_id: uuid.UUID = Path(..., description="Establishment ID"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size, capped at 50"),
    sort: ReviewSort = Query(ReviewSort.NEWEST, description="newest, highest or lowest"),
    service: ReviewLifecycleService = Depends(get_review_service),
):
    """List an establishment's active reviews"""
    data = service.list_establishment_reviews(establishment_id, page=page, limit=limit, sort=sort)
    return StandardResponse.ok(data=data)
