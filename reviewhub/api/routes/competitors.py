"""Competitor discovery and tracking endpoints (Google Places)."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from reviewhub.api.dependencies import get_competitor_service, get_current_user, get_owned_business
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    AddCompetitorRequest,
    CompetitorResponse,
    CreateCompetitorRequest,
    ErrorResponse,
    MessageResponse,
    UpdateCompetitorRequest,
)
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.models import Business, User
from reviewhub.services.competitors import (
    CompetitorDetails,
    CompetitorReview,
    CompetitorSearchResult,
    GooglePlacesCompetitorService,
    RatingComparison,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/competitors", tags=["Competitors"])


@router.get(
    "/search",
    response_model=list[CompetitorSearchResult],
    summary="Search nearby businesses",
    responses={503: {"model": ErrorResponse, "description": "Places API key not configured"}},
)
async def search_competitors(
    business_name: str = Query(..., alias="businessName", min_length=1),
    location: str = Query("", alias="location"),
    _user: User = Depends(get_current_user),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> list[CompetitorSearchResult]:
    try:
        return await service.search(business_name, location)
    except ReviewHubError as e:
        raise http_error(e) from e


@router.get("/details/{place_id}", response_model=CompetitorDetails, summary="Place details")
async def get_competitor_details(
    place_id: str,
    _user: User = Depends(get_current_user),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> CompetitorDetails:
    try:
        details = await service.get_details(place_id)
    except ReviewHubError as e:
        raise http_error(e) from e
    if details is None:
        raise HTTPException(status_code=404, detail="Place not found")
    return details


@router.get("/reviews/{place_id}", response_model=list[CompetitorReview], summary="Place reviews")
async def get_competitor_reviews(
    place_id: str,
    _user: User = Depends(get_current_user),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> list[CompetitorReview]:
    try:
        return await service.get_reviews(place_id)
    except ReviewHubError as e:
        raise http_error(e) from e


@router.get("/{business_id}", response_model=list[CompetitorResponse], summary="Tracked competitors")
async def list_competitors(
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> list[CompetitorResponse]:
    return [CompetitorResponse.model_validate(c) for c in service.list_competitors(business.id)]


@router.post(
    "/{business_id}/add",
    response_model=CompetitorResponse,
    status_code=201,
    summary="Track a competitor",
    responses={400: {"model": ErrorResponse, "description": "Already tracked"}},
)
async def add_competitor(
    request: AddCompetitorRequest,
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> CompetitorResponse:
    try:
        competitor = await service.add(business.id, request.place_id, request.name)
    except ReviewHubError as e:
        raise http_error(e) from e
    return CompetitorResponse.model_validate(competitor)


@router.post(
    "/{business_id}/refresh/{competitor_id}",
    response_model=CompetitorResponse,
    summary="Refresh a competitor's rating",
)
async def refresh_competitor(
    competitor_id: int,
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> CompetitorResponse:
    if not any(c.id == competitor_id for c in service.list_competitors(business.id)):
        raise HTTPException(status_code=404, detail="Competitor not found")
    try:
        competitor = await service.refresh(competitor_id)
    except ReviewHubError as e:
        raise http_error(e) from e
    return CompetitorResponse.model_validate(competitor)


@router.delete(
    "/{business_id}/{competitor_id}",
    response_model=MessageResponse,
    summary="Stop tracking a competitor",
)
async def remove_competitor(
    competitor_id: int,
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> MessageResponse:
    if not service.remove(competitor_id, business.id):
        raise HTTPException(status_code=404, detail="Competitor not found")
    return MessageResponse(message="Competitor removed successfully")


@router.get(
    "/comparison/{business_id}",
    response_model=RatingComparison,
    summary="Business rating against tracked competitors",
)
async def compare_with_competitors(
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> RatingComparison:
    return service.comparison(business)


@router.post(
    "/{business_id}",
    response_model=CompetitorResponse,
    status_code=201,
    summary="Track a competitor entered by hand",
    responses={400: {"model": ErrorResponse, "description": "Already tracked"}},
)
async def create_competitor(
    request: CreateCompetitorRequest,
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> CompetitorResponse:
    try:
        competitor = service.create(business.id, request.name, request.platform, request.platform_business_id)
    except ReviewHubError as e:
        raise http_error(e) from e
    return CompetitorResponse.model_validate(competitor)


@router.put("/{business_id}/{competitor_id}", response_model=CompetitorResponse, summary="Rename or re-point a competitor")
async def update_competitor(
    competitor_id: int,
    request: UpdateCompetitorRequest,
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> CompetitorResponse:
    try:
        competitor = service.update(competitor_id, business.id, request.name, request.platform_business_id)
    except ReviewHubError as e:
        raise http_error(e) from e
    return CompetitorResponse.model_validate(competitor)


@router.post(
    "/{business_id}/{competitor_id}/sync",
    response_model=CompetitorResponse,
    summary="Pull a competitor's current rating from its platform",
    responses={400: {"model": ErrorResponse, "description": "Platform has no live lookup"}},
)
async def sync_competitor(
    competitor_id: int,
    business: Business = Depends(get_owned_business),
    service: GooglePlacesCompetitorService = Depends(get_competitor_service),
) -> CompetitorResponse:
    try:
        competitor = await service.sync(competitor_id, business.id)
    except ReviewHubError as e:
        raise http_error(e) from e
    return CompetitorResponse.model_validate(competitor)
