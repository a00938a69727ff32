"""Direct SMS endpoints: single and bulk sends, history and monthly usage.

Every send is checked against the owner's plan allowance before Twilio is
called, and each delivered message is recorded so usage stays accurate.
"""

import math

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import get_current_user, get_owned_business, load_owned_business
from reviewhub.api.errors import http_error
from reviewhub.api.models import (
    ErrorResponse,
    SendBulkSmsRequest,
    SendBulkSmsResponse,
    SendSmsRequest,
    SendSmsResponse,
    SmsMessageListResponse,
    SmsMessageResponse,
    SmsUsageResponse,
)
from reviewhub.core.exceptions import ReviewHubError
from reviewhub.db.models import Business, SmsMessage, User
from reviewhub.db.session import get_db
from reviewhub.services.sms import TwilioSmsService, check_quota, get_sms_service, get_usage, record_sent_messages

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sms", tags=["SMS"])


@router.post(
    "/send",
    response_model=SendSmsResponse,
    summary="Send one SMS",
    responses={
        400: {"model": ErrorResponse, "description": "SMS quota exceeded"},
        502: {"model": ErrorResponse, "description": "Twilio rejected the message"},
    },
)
async def send_sms(
    request: SendSmsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    sms_service: TwilioSmsService = Depends(get_sms_service),
) -> SendSmsResponse:
    business = load_owned_business(db, request.business_id, user)
    try:
        check_quota(db, business.id, user.subscription_plan, 1)
        sid = await sms_service.send_sms(request.phone_number, request.message)
    except ReviewHubError as e:
        raise http_error(e) from e

    record_sent_messages(
        db,
        business.id,
        [(request.phone_number, sid)],
        request.message,
        from_number=sms_service.from_number,
        purpose="direct",
    )
    return SendSmsResponse(message_sid=sid, message="SMS sent successfully")


@router.post(
    "/send-bulk",
    response_model=SendBulkSmsResponse,
    summary="Send one SMS to many recipients",
    responses={400: {"model": ErrorResponse, "description": "SMS quota exceeded"}},
)
async def send_bulk_sms(
    request: SendBulkSmsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    sms_service: TwilioSmsService = Depends(get_sms_service),
) -> SendBulkSmsResponse:
    """Recipients that fail are reported in ``failed``; the rest are still sent."""
    business = load_owned_business(db, request.business_id, user)
    try:
        check_quota(db, business.id, user.subscription_plan, len(request.phone_numbers))
        result = await sms_service.send_bulk_sms(request.phone_numbers, request.message)
    except ReviewHubError as e:
        raise http_error(e) from e

    record_sent_messages(
        db,
        business.id,
        result.sent,
        request.message,
        from_number=sms_service.from_number,
        campaign_name=request.campaign_name,
        purpose="bulk",
    )
    total = len(request.phone_numbers)
    return SendBulkSmsResponse(
        sent_count=len(result.sent),
        total_requested=total,
        failed=result.failed,
        message=f"Successfully sent {len(result.sent)} out of {total} SMS messages",
    )


@router.get("/messages/{business_id}", response_model=SmsMessageListResponse, summary="SMS history")
async def list_messages(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
) -> SmsMessageListResponse:
    total = db.scalar(
        select(func.count(SmsMessage.id)).where(SmsMessage.business_id == business.id)
    ) or 0
    messages = db.scalars(
        select(SmsMessage)
        .where(SmsMessage.business_id == business.id)
        .order_by(SmsMessage.sent_at.desc(), SmsMessage.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return SmsMessageListResponse(
        messages=[SmsMessageResponse.model_validate(m) for m in messages],
        total_count=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


@router.get("/usage/{business_id}", response_model=SmsUsageResponse, summary="Monthly SMS usage")
async def get_sms_usage(
    business: Business = Depends(get_owned_business),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SmsUsageResponse:
    usage = get_usage(db, business.id, user.subscription_plan)
    return SmsUsageResponse(
        plan=usage.plan,
        sent_this_month=usage.sent_this_month,
        monthly_limit=usage.monthly_limit,
        remaining=usage.remaining,
        percentage_used=usage.percentage_used,
    )
