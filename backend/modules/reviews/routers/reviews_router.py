# backend/modules/reviews/routers/reviews_router.py

from fastapi import APIRouter, Depends, Path, status
import logging
import uuid

from core.auth import User, get_current_user
from core.response_models import StandardResponse
from modules.reviews.dependencies import get_review_service
from modules.reviews.services.review_service import ReviewLifecycleService
from modules.reviews.schemas.review_schemas import (
    PartnerResponseCreate,
    QuotaStatus,
    ReviewCreate,
    ReviewResponse,
    ReviewUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post(
    "",
    response_model=StandardResponse[ReviewResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    review_data: ReviewCreate,
    service: ReviewLifecycleService = Depends(get_review_service),
    current_user: User = Depends(get_current_user),
):
    """Create a review for an establishment. Counts against the daily quota."""
    review = service.create_review(current_user.id, review_data)
    return StandardResponse.ok(data=review, message="Review created")


# Declared before /{review_id} so "quota" is not parsed as an id
@router.get("/quota", response_model=StandardResponse[QuotaStatus])
async def get_review_quota(
    service: ReviewLifecycleService = Depends(get_review_service),
    current_user: User = Depends(get_current_user),
):
    """Remaining review creations for the current day"""
    return StandardResponse.ok(data=service.get_quota(current_user.id))


@router.get("/{review_id}", response_model=StandardResponse[ReviewResponse])
async def get_review(
    review_id: uuid.UUID = Path(..., description="Review ID"),
    service: ReviewLifecycleService = Depends(get_review_service),
):
    return StandardResponse.ok(data=service.get_review(review_id))


@router.put("/{review_id}", response_model=StandardResponse[ReviewResponse])
async def update_review(
    update_data: ReviewUpdate,
    review_id: uuid.UUID = Path(..., description="Review ID"),
    service: ReviewLifecycleService = Depends(get_review_service),
    current_user: User = Depends(get_current_user),
):
    """Edit your own review"""
    review = service.update_review(review_id, current_user.id, update_data)
    return StandardResponse.ok(data=review, message="Review updated")


@router.delete("/{review_id}", response_model=StandardResponse)
async def delete_review(
    review_id: uuid.UUID = Path(..., description="Review ID"),
    service: ReviewLifecycleService = Depends(get_review_service),
    current_user: User = Depends(get_current_user),
):
    """Delete your own review. The review is hidden, not erased."""
    service.delete_review(review_id, current_user.id)
    return StandardResponse.ok(message="Review deleted")


@router.post("/{review_id}/response", response_model=StandardResponse[ReviewResponse])
async def respond_to_review(
    response_data: PartnerResponseCreate,
    review_id: uuid.UUID = Path(..., description="Review ID"),
    service: ReviewLifecycleService = Depends(get_review_service),
    current_user: User = Depends(get_current_user),
):
    """Reply to a review as the establishment's partner"""
    review = service.respond_to_review(review_id, current_user.id, response_data)
    return StandardResponse.ok(data=review, message="Response saved")
