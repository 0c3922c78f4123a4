# backend/modules/reviews/routers/user_reviews_router.py

from fastapi import APIRouter, Depends, Query
from typing import Optional

from core.auth import User, get_current_user
from core.response_models import StandardResponse
from modules.reviews.dependencies import get_review_service
from modules.reviews.services.review_service import ReviewLifecycleService
from modules.reviews.schemas.review_schemas import ReviewListData

router = APIRouter(prefix="/users", tags=["Reviews"])


@router.get("/me/reviews", response_model=StandardResponse[ReviewListData])
async def list_my_reviews(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    service: ReviewLifecycleService = Depends(get_review_service),
    current_user: User = Depends(get_current_user),
):
    """The caller's own active reviews, newest first"""
    data = service.list_user_reviews(current_user.id, page=page, limit=limit)
    return StandardResponse.ok(data=data)
