"""AI assistant endpoints: reply drafting, insights and per-user AI settings."""

from datetime import timedelta

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import (
    get_ai,
    get_analytics_service,
    get_current_user,
    get_owned_business,
    get_owned_review,
)
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    AISettingsResponse,
    AISettingsUpdate,
    ErrorResponse,
    GeneratedResponse,
    ImproveResponseRequest,
    InsightsResponse,
    RecommendationsResponse,
    ReviewSummaryResponse,
    SocialPostResponse,
)
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.base import utcnow
from reviewhub.db.models import AISettings, Business, Competitor, Review, User
from reviewhub.db.session import get_db
from reviewhub.services.ai_service import AIService
from reviewhub.services.analytics import AnalyticsService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])

RECOMMENDATION_LOOKBACK = timedelta(days=90)

_AI_ERRORS = {
    502: {"model": ErrorResponse, "description": "AI provider request failed"},
    503: {"model": ErrorResponse, "description": "AI provider not configured"},
}


def get_or_create_ai_settings(db: Session, user_id: int) -> AISettings:
    settings = db.scalar(select(AISettings).where(AISettings.user_id == user_id))
    if settings is None:
        settings = AISettings(user_id=user_id)
        db.add(settings)
        db.commit()
        db.refresh(settings)
    return settings


# =============================================================================
# Settings
# =============================================================================


@router.get("/settings", response_model=AISettingsResponse, summary="AI settings")
async def get_ai_settings(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AISettingsResponse:
    return AISettingsResponse.model_validate(get_or_create_ai_settings(db, user.id))


@router.put("/settings", response_model=AISettingsResponse, summary="Update AI settings")
async def update_ai_settings(
    request: AISettingsUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AISettingsResponse:
    """Auto-replying to negative reviews cannot be switched on."""
    settings = get_or_create_ai_settings(db, user.id)
    for field, value in request.model_dump(exclude_none=True).items():
        setattr(settings, field, value)
    settings.auto_reply_to_negative = False
    db.commit()
    db.refresh(settings)
    logger.info("ai_settings_updated", user_id=user.id, auto_reply=settings.enable_auto_reply)
    return AISettingsResponse.model_validate(settings)


# =============================================================================
# Replies
# =============================================================================


@router.post(
    "/generate-response/{review_id}",
    response_model=GeneratedResponse,
    summary="Draft a reply",
    responses=_AI_ERRORS,
)
async def generate_response(
    review: Review = Depends(get_owned_review),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai),
) -> GeneratedResponse:
    """Drafts a reply in the caller's configured tone and length and stores it as the suggestion."""
    settings = get_or_create_ai_settings(db, user.id)
    try:
        draft = await ai.generate_review_response(
            review,
            business_name=review.business.name,
            tone=settings.response_tone,
            length=settings.response_length,
        )
    except ReviewHubError as e:
        raise http_error(e) from e

    review.ai_suggested_response = draft
    db.commit()
    return GeneratedResponse(review_id=review.id, response=draft)


@router.post(
    "/improve-response/{review_id}",
    response_model=GeneratedResponse,
    summary="Polish a reply",
    responses=_AI_ERRORS,
)
async def improve_response(
    request: ImproveResponseRequest,
    review: Review = Depends(get_owned_review),
    ai: AIService = Depends(get_ai),
) -> GeneratedResponse:
    text = request.response_text or review.response_text or review.ai_suggested_response
    if not text:
        raise HTTPException(status_code=400, detail="No response text to improve")
    try:
        improved = await ai.improve_review_response(text, request.instructions)
    except ReviewHubError as e:
        raise http_error(e) from e
    return GeneratedResponse(review_id=review.id, response=improved)


@router.post(
    "/generate-social-post/{review_id}",
    response_model=SocialPostResponse,
    summary="Turn a review into a social post",
    responses=_AI_ERRORS,
)
async def generate_social_post(
    platform: str = Query("Twitter"),
    review: Review = Depends(get_owned_review),
    ai: AIService = Depends(get_ai),
) -> SocialPostResponse:
    try:
        post = await ai.generate_social_media_post(review, review.business.name, platform)
    except ReviewHubError as e:
        raise http_error(e) from e
    return SocialPostResponse(review_id=review.id, platform=platform, post=post)


# =============================================================================
# Insights
# =============================================================================


@router.get(
    "/insights/analytics/{business_id}",
    response_model=InsightsResponse,
    summary="Narrative analytics insights",
    responses=_AI_ERRORS,
)
async def analytics_insights(
    business: Business = Depends(get_owned_business),
    analytics: AnalyticsService = Depends(get_analytics_service),
    ai: AIService = Depends(get_ai),
) -> InsightsResponse:
    stats = {
        "overview": analytics.overview(business.id),
        "platforms": analytics.platform_breakdown(business.id),
        "ratingTrend": analytics.rating_trend(business.id),
    }
    try:
        insights = await ai.generate_analytics_insights(stats)
    except ReviewHubError as e:
        raise http_error(e) from e
    return InsightsResponse(business_id=business.id, insights=insights)


@router.get(
    "/insights/competitors/{business_id}",
    response_model=InsightsResponse,
    summary="Competitive position",
    responses=_AI_ERRORS,
)
async def competitor_insights(
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
    analytics: AnalyticsService = Depends(get_analytics_service),
    ai: AIService = Depends(get_ai),
) -> InsightsResponse:
    overview = analytics.overview(business.id)
    competitors = db.scalars(
        select(Competitor)
        .where(Competitor.business_id == business.id)
        .where(Competitor.is_active.is_(True))
    ).all()
    try:
        insights = await ai.generate_competitor_insights(
            business.name,
            overview["averageRating"],
            overview["totalReviews"],
            competitors,
        )
    except ReviewHubError as e:
        raise http_error(e) from e
    return InsightsResponse(business_id=business.id, insights=insights)


@router.get(
    "/insights/review-summary/{business_id}",
    response_model=ReviewSummaryResponse,
    summary="Summary of recent reviews",
    responses=_AI_ERRORS,
)
async def review_summary(
    days: int = Query(30, ge=1, le=365),
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai),
) -> ReviewSummaryResponse:
    reviews = db.scalars(
        select(Review)
        .where(Review.business_id == business.id)
        .where(Review.review_date >= utcnow() - timedelta(days=days))
        .order_by(Review.review_date.desc())
    ).all()
    try:
        summary = await ai.generate_review_summary(reviews)
    except ReviewHubError as e:
        raise http_error(e) from e
    return ReviewSummaryResponse(
        business_id=business.id,
        days=days,
        review_count=len(reviews),
        summary=summary,
    )


@router.get(
    "/insights/recommendations/{business_id}",
    response_model=RecommendationsResponse,
    summary="Actionable recommendations",
    responses={503: _AI_ERRORS[503]},
)
async def recommendations(
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai),
) -> RecommendationsResponse:
    """Never fails on provider errors; a fixed fallback list is returned instead."""
    reviews = db.scalars(
        select(Review)
        .where(Review.business_id == business.id)
        .where(Review.review_date >= utcnow() - RECOMMENDATION_LOOKBACK)
        .order_by(Review.review_date.desc())
    ).all()
    items = await ai.generate_actionable_recommendations(reviews)
    return RecommendationsResponse(business_id=business.id, recommendations=items)
