"""Review inbox endpoints: filtering, replying and triage flags."""

import math
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import get_current_user, get_owned_review
from reviewhub.api.models import (
    ErrorResponse,
    FlagRequest,
    MarkReadRequest,
    ReplyRequest,
    ReviewListResponse,
    ReviewResponse,
)
from reviewhub.db.base import utcnow
from reviewhub.db.enums import ReviewPlatform
from reviewhub.db.models import Business, Review, User
from reviewhub.db.session import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.get("", response_model=ReviewListResponse, summary="List reviews")
async def list_reviews(
    business_id: Optional[int] = Query(None, alias="businessId"),
    location_id: Optional[int] = Query(None, alias="locationId"),
    platform: Optional[str] = Query(None),
    sentiment: Optional[str] = Query(None),
    rating: Optional[int] = Query(None, ge=1, le=5),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    is_flagged: Optional[bool] = Query(None, alias="isFlagged"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReviewListResponse:
    """
    Reviews across the caller's businesses, newest review first.

    An unrecognised ``platform`` value is ignored rather than rejected.
    """
    query = (
        select(Review)
        .join(Business, Business.id == Review.business_id)
        .where(Business.user_id == user.id)
    )
    if business_id is not None:
        query = query.where(Review.business_id == business_id)
    if location_id is not None:
        query = query.where(Review.location_id == location_id)
    if platform:
        try:
            query = query.where(Review.platform == ReviewPlatform.parse(platform))
        except ValueError:
            logger.debug("review_filter_platform_ignored", platform=platform)
    if sentiment:
        query = query.where(Review.sentiment == sentiment)
    if rating is not None:
        query = query.where(Review.rating == rating)
    if is_read is not None:
        query = query.where(Review.is_read.is_(is_read))
    if is_flagged is not None:
        query = query.where(Review.is_flagged.is_(is_flagged))

    total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
    reviews = db.scalars(
        query.order_by(Review.review_date.desc(), Review.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()

    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
        total_count=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


@router.get(
    "/{review_id}",
    response_model=ReviewResponse,
    summary="Review detail",
    responses={404: {"model": ErrorResponse, "description": "Review not found"}},
)
async def get_review(review: Review = Depends(get_owned_review)) -> ReviewResponse:
    return ReviewResponse.model_validate(review)


@router.post("/{review_id}/reply", response_model=ReviewResponse, summary="Reply to a review")
async def reply_to_review(
    request: ReplyRequest,
    review: Review = Depends(get_owned_review),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    review.response_text = request.response_text
    review.response_date = utcnow()
    review.responder_id = user.id
    review.is_auto_replied = False
    db.commit()
    db.refresh(review)
    logger.info("review_replied", review_id=review.id, user_id=user.id)
    return ReviewResponse.model_validate(review)


@router.patch("/{review_id}/read", response_model=ReviewResponse, summary="Mark read or unread")
async def mark_review_read(
    request: MarkReadRequest,
    review: Review = Depends(get_owned_review),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    review.is_read = request.is_read
    db.commit()
    db.refresh(review)
    return ReviewResponse.model_validate(review)


@router.patch("/{review_id}/flag", response_model=ReviewResponse, summary="Flag or unflag")
async def flag_review(
    request: FlagRequest,
    review: Review = Depends(get_owned_review),
    db: Session = Depends(get_db),
) -> ReviewResponse:
    review.is_flagged = request.is_flagged
    db.commit()
    db.refresh(review)
    return ReviewResponse.model_validate(review)
