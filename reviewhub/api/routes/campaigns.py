"""SMS campaign endpoints.

A campaign created without a future ``scheduledFor`` is sent straight away;
otherwise the campaign dispatch job sends it when it falls due.
"""

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import (
    get_campaign_service,
    get_current_user,
    get_owned_business,
    load_owned_business,
)
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    CampaignCreate,
    CampaignListResponse,
    CampaignResponse,
    CampaignUpdate,
    ErrorResponse,
    MessageResponse,
)
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.models import Business, User
from reviewhub.db.session import get_db
from reviewhub.services.campaigns import CampaignService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


@router.get("/detail/{campaign_id}", response_model=CampaignResponse, summary="Campaign detail")
async def get_campaign(
    campaign_id: int,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    try:
        return CampaignResponse.model_validate(service.get_owned(campaign_id, user.id))
    except ReviewHubError as e:
        raise http_error(e) from e


@router.get("/{business_id}", response_model=CampaignListResponse, summary="List campaigns")
async def list_campaigns(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    business: Business = Depends(get_owned_business),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignListResponse:
    campaigns, total, pages = service.list_campaigns(business.id, page, page_size)
    return CampaignListResponse(
        campaigns=[CampaignResponse.model_validate(c) for c in campaigns],
        total_count=total,
        page=page,
        page_size=page_size,
        total_pages=pages,
    )


@router.post(
    "",
    response_model=CampaignResponse,
    status_code=201,
    summary="Create a campaign",
    responses={400: {"model": ErrorResponse, "description": "SMS quota exceeded"}},
)
async def create_campaign(
    request: CampaignCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    """
    Create a campaign.

    **recipients** defaults to every customer of the business with a phone number.
    """
    business = load_owned_business(db, request.business_id, user)
    recipients = request.recipients or service.customer_phone_numbers(business.id)
    try:
        campaign = await service.create(
            business_id=business.id,
            plan=user.subscription_plan,
            name=request.name,
            message=request.message,
            recipients=recipients,
            scheduled_for=request.scheduled_for,
        )
    except ReviewHubError as e:
        raise http_error(e) from e
    return CampaignResponse.model_validate(campaign)


@router.post("/{campaign_id}/send", response_model=CampaignResponse, summary="Send a campaign now")
async def send_campaign(
    campaign_id: int,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    try:
        campaign = service.get_owned(campaign_id, user.id)
        campaign = await service.send(campaign, user.subscription_plan)
    except ReviewHubError as e:
        raise http_error(e) from e
    return CampaignResponse.model_validate(campaign)


@router.put("/{campaign_id}", response_model=CampaignResponse, summary="Update a campaign")
async def update_campaign(
    campaign_id: int,
    request: CampaignUpdate,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    try:
        campaign = service.get_owned(campaign_id, user.id)
        campaign = service.update(campaign, request.name, request.message, request.scheduled_for)
    except ReviewHubError as e:
        raise http_error(e) from e
    return CampaignResponse.model_validate(campaign)


@router.delete("/{campaign_id}", response_model=MessageResponse, summary="Delete a campaign")
async def delete_campaign(
    campaign_id: int,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(get_campaign_service),
) -> MessageResponse:
    try:
        service.delete(service.get_owned(campaign_id, user.id))
    except ReviewHubError as e:
        raise http_error(e) from e
    return MessageResponse(message="Campaign deleted successfully")
