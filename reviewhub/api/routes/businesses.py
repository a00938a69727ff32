"""Business management endpoints.

A business belongs to exactly one owner; every route here is scoped to the
caller's own businesses.
"""

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import get_current_user, get_owned_business
from reviewhub.api.models import (
    BusinessCreate,
    BusinessDetailResponse,
    BusinessResponse,
    BusinessStats,
    BusinessSummaryResponse,
    BusinessUpdate,
    ConnectionSummary,
    ErrorResponse,
)
from reviewhub.db.models import Business, PlatformConnection, Review, User
from reviewhub.db.session import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/businesses", tags=["Businesses"])


@router.get("", response_model=list[BusinessSummaryResponse], summary="List businesses")
async def list_businesses(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BusinessSummaryResponse]:
    """Active businesses owned by the caller, newest first, with review counts."""
    businesses = db.scalars(
        select(Business)
        .where(Business.user_id == user.id)
        .where(Business.is_active.is_(True))
        .order_by(Business.created_at.desc(), Business.id.desc())
    ).all()

    summaries = []
    for business in businesses:
        review_count, avg_rating = db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(
                Review.business_id == business.id
            )
        ).one()
        connection_count = db.scalar(
            select(func.count(PlatformConnection.id))
            .where(PlatformConnection.business_id == business.id)
            .where(PlatformConnection.is_active.is_(True))
        ) or 0
        summary = BusinessSummaryResponse.model_validate(business)
        summary.reviews_count = review_count or 0
        summary.avg_rating = round(float(avg_rating or 0.0), 1)
        summary.platform_connections_count = connection_count
        summaries.append(summary)
    return summaries


@router.get(
    "/{business_id}",
    response_model=BusinessDetailResponse,
    summary="Business detail",
    responses={404: {"model": ErrorResponse, "description": "Business not found"}},
)
async def get_business(
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
) -> BusinessDetailResponse:
    reviews = db.scalars(select(Review).where(Review.business_id == business.id)).all()
    connections = [c for c in business.platform_connections if c.is_active]

    total = len(reviews)
    stats = BusinessStats(
        total_reviews=total,
        avg_rating=round(sum(r.rating for r in reviews) / total, 1) if total else 0.0,
        unread_reviews=sum(1 for r in reviews if not r.is_read),
        flagged_reviews=sum(1 for r in reviews if r.is_flagged),
    )
    base = BusinessResponse.model_validate(business).model_dump()
    return BusinessDetailResponse(
        **base,
        platform_connections=[ConnectionSummary.model_validate(c) for c in connections],
        stats=stats,
    )


@router.post("", response_model=BusinessResponse, status_code=201, summary="Create a business")
async def create_business(
    request: BusinessCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BusinessResponse:
    business = Business(
        user_id=user.id,
        organization_id=user.organization_id,
        is_active=True,
        **request.model_dump(),
    )
    db.add(business)
    db.commit()
    db.refresh(business)
    logger.info("business_created", business_id=business.id, user_id=user.id)
    return BusinessResponse.model_validate(business)


@router.put("/{business_id}", response_model=BusinessResponse, summary="Update a business")
async def update_business(
    request: BusinessUpdate,
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
) -> BusinessResponse:
    for field, value in request.model_dump(exclude_none=True).items():
        setattr(business, field, value)
    db.commit()
    db.refresh(business)
    return BusinessResponse.model_validate(business)


@router.delete("/{business_id}", status_code=204, summary="Deactivate a business")
async def delete_business(
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
) -> Response:
    """Soft delete; reviews and connections are retained."""
    business.is_active = False
    db.commit()
    logger.info("business_deactivated", business_id=business.id)
    return Response(status_code=204)
