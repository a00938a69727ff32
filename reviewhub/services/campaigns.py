"""
SMS campaigns.

A campaign is a named message sent to many recipients. Campaigns scheduled
for the future wait in Scheduled status until the dispatch job picks them
up; everything else goes out as soon as it is created or sent.

Status flow: Draft/Scheduled -> Sending -> Sent, or Failed when the bulk
send raises.
"""

import math
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.core.exceptions import BusinessRuleError, NotFoundError, QuotaExceededError
from reviewhub.db.base import to_naive_utc, utcnow
from reviewhub.db.enums import CampaignStatus
from reviewhub.db.models import Business, Campaign, Customer, User
from reviewhub.services.sms import (
    TwilioSmsService,
    check_quota,
    get_sms_service,
    record_sent_messages,
)

logger = structlog.get_logger(__name__)


class CampaignService:
    def __init__(self, db: Session, sms_service: Optional[TwilioSmsService] = None):
        self.db = db
        self.sms = sms_service or get_sms_service()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_owned(self, campaign_id: int, user_id: int) -> Campaign:
        campaign = self.db.scalar(
            select(Campaign)
            .join(Business, Business.id == Campaign.business_id)
            .where(Campaign.id == campaign_id)
            .where(Business.user_id == user_id)
        )
        if campaign is None:
            raise NotFoundError("Campaign")
        return campaign

    def list_campaigns(
        self, business_id: int, page: int = 1, page_size: int = 20
    ) -> tuple[list[Campaign], int, int]:
        """Newest first. Returns (campaigns, total_count, total_pages)."""
        total = self.db.scalar(
            select(func.count(Campaign.id)).where(Campaign.business_id == business_id)
        ) or 0
        items = self.db.scalars(
            select(Campaign)
            .where(Campaign.business_id == business_id)
            .order_by(Campaign.created_at.desc(), Campaign.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return list(items), total, math.ceil(total / page_size) if page_size else 0

    def customer_phone_numbers(self, business_id: int) -> list[str]:
        return [
            phone
            for phone in self.db.scalars(
                select(Customer.phone_number)
                .where(Customer.business_id == business_id)
                .where(Customer.phone_number.is_not(None))
                .order_by(Customer.id)
            ).all()
            if phone
        ]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create(
        self,
        business_id: int,
        plan: Optional[str],
        name: str,
        message: str,
        recipients: list[str],
        scheduled_for: Optional[datetime] = None,
    ) -> Campaign:
        """Create a campaign; sends immediately unless scheduled for the future.

        Raises:
            QuotaExceededError: If the recipients do not fit this month's allowance.
        """
        check_quota(self.db, business_id, plan, len(recipients))

        now = utcnow()
        scheduled_for = to_naive_utc(scheduled_for) or now
        campaign = Campaign(
            business_id=business_id,
            name=name,
            message=message,
            scheduled_for=scheduled_for,
            status=CampaignStatus.SCHEDULED if scheduled_for > now else CampaignStatus.DRAFT,
            sent_count=0,
            total_recipients=len(recipients),
        )
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)

        logger.info(
            "campaign_created",
            campaign_id=campaign.id,
            business_id=business_id,
            status=campaign.status.value,
        )

        if campaign.scheduled_for <= utcnow():
            await self.execute(campaign, recipients)
        return campaign

    async def execute(self, campaign: Campaign, recipients: list[str]) -> Campaign:
        """Bulk send and record delivered messages. Never raises; failures mark the campaign Failed."""
        try:
            campaign.status = CampaignStatus.SENDING
            self.db.commit()

            result = await self.sms.send_bulk_sms(recipients, campaign.message)
            record_sent_messages(
                self.db,
                campaign.business_id,
                result.sent,
                campaign.message,
                from_number=self.sms.from_number,
                campaign_name=campaign.name,
                purpose="campaign",
            )

            campaign.status = CampaignStatus.SENT
            campaign.sent_count = len(result.sent)
            campaign.total_recipients = len(recipients)
            campaign.sent_at = utcnow()
            self.db.commit()

            logger.info(
                "campaign_sent",
                campaign_id=campaign.id,
                sent=len(result.sent),
                failed=len(result.failed),
            )
        except Exception as e:
            self.db.rollback()
            logger.error("campaign_execution_failed", campaign_id=campaign.id, error=str(e))
            campaign.status = CampaignStatus.FAILED
            self.db.commit()
        return campaign

    async def send(self, campaign: Campaign, plan: Optional[str]) -> Campaign:
        """Send a campaign to every customer of its business that has a phone number."""
        if campaign.status == CampaignStatus.SENT:
            raise BusinessRuleError("Campaign has already been sent")

        recipients = self.customer_phone_numbers(campaign.business_id)
        check_quota(self.db, campaign.business_id, plan, len(recipients))
        return await self.execute(campaign, recipients)

    def update(
        self,
        campaign: Campaign,
        name: str,
        message: str,
        scheduled_for: Optional[datetime] = None,
    ) -> Campaign:
        if campaign.status == CampaignStatus.SENT:
            raise BusinessRuleError("Cannot update a campaign that has already been sent")

        scheduled_for = to_naive_utc(scheduled_for)
        campaign.name = name
        campaign.message = message
        if scheduled_for is not None:
            campaign.scheduled_for = scheduled_for
        campaign.status = (
            CampaignStatus.SCHEDULED
            if scheduled_for is not None and scheduled_for > utcnow()
            else CampaignStatus.DRAFT
        )
        self.db.commit()
        self.db.refresh(campaign)
        return campaign

    def delete(self, campaign: Campaign) -> None:
        self.db.delete(campaign)
        self.db.commit()
        logger.info("campaign_deleted", campaign_id=campaign.id)

    # -------------------------------------------------------------------------
    # Scheduled dispatch
    # -------------------------------------------------------------------------

    async def dispatch_due(self) -> int:
        """Send every Scheduled campaign whose time has come. Returns how many were processed."""
        due = self.db.scalars(
            select(Campaign)
            .where(Campaign.status == CampaignStatus.SCHEDULED)
            .where(Campaign.scheduled_for <= utcnow())
            .order_by(Campaign.scheduled_for)
        ).all()

        for campaign in due:
            owner_plan = self.db.scalar(
                select(User.subscription_plan)
                .join(Business, Business.user_id == User.id)
                .where(Business.id == campaign.business_id)
            )
            try:
                await self.send(campaign, owner_plan)
            except QuotaExceededError as e:
                logger.warning("scheduled_campaign_over_quota", campaign_id=campaign.id, error=e.message)
                campaign.status = CampaignStatus.FAILED
                self.db.commit()

        if due:
            logger.info("scheduled_campaigns_dispatched", count=len(due))
        return len(due)
