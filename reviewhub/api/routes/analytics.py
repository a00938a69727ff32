"""Review analytics endpoints for a single business.

Every endpoint accepts an optional ``locationId`` to narrow the figures to
one location the caller can access.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from reviewhub.api.dependencies import (
    get_analytics_service,
    get_current_user,
    get_location_service,
    get_owned_business,
)
from reviewhub.db.models import Business, User
from reviewhub.services.analytics import AnalyticsService
from reviewhub.services.location_access import LocationService

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def location_scope(
    location_id: Optional[int] = Query(None, alias="locationId"),
    user: User = Depends(get_current_user),
    locations: LocationService = Depends(get_location_service),
) -> Optional[int]:
    if location_id is not None and not locations.user_has_access_to_location(user.id, location_id):
        raise HTTPException(status_code=403, detail="You don't have access to this location")
    return location_id


@router.get("/overview/{business_id}", summary="Headline review metrics")
async def overview(
    business: Business = Depends(get_owned_business),
    location_id: Optional[int] = Depends(location_scope),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict[str, Any]:
    return service.overview(business.id, location_id)


@router.get("/rating-trend/{business_id}", summary="Monthly average rating")
async def rating_trend(
    months: int = Query(6, ge=1, le=36),
    business: Business = Depends(get_owned_business),
    location_id: Optional[int] = Depends(location_scope),
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[dict[str, Any]]:
    return service.rating_trend(business.id, months, location_id)


@router.get("/platform-breakdown/{business_id}", summary="Reviews per platform")
async def platform_breakdown(
    business: Business = Depends(get_owned_business),
    location_id: Optional[int] = Depends(location_scope),
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[dict[str, Any]]:
    return service.platform_breakdown(business.id, location_id)


@router.get("/sentiment-analysis/{business_id}", summary="Daily sentiment")
async def sentiment_analysis(
    days: int = Query(30, ge=1, le=365),
    business: Business = Depends(get_owned_business),
    location_id: Optional[int] = Depends(location_scope),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict[str, Any]:
    return service.sentiment_analysis(business.id, days, location_id)


@router.get("/top-keywords/{business_id}", summary="Most frequent review words")
async def top_keywords(
    limit: int = Query(10, ge=1, le=50),
    business: Business = Depends(get_owned_business),
    location_id: Optional[int] = Depends(location_scope),
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[dict[str, Any]]:
    return service.top_keywords(business.id, limit, location_id)


@router.get("/response-time/{business_id}", summary="Reply latency")
async def response_time(
    business: Business = Depends(get_owned_business),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict[str, Any]:
    return service.response_time(business.id)


@router.get("/dashboard-summary/{business_id}", summary="Dashboard tiles")
async def dashboard_summary(
    business: Business = Depends(get_owned_business),
    user: User = Depends(get_current_user),
    location_id: Optional[int] = Depends(location_scope),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict[str, Any]:
    return service.dashboard_summary(business.id, user.subscription_plan, location_id)
