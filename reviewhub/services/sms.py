"""
SMS delivery and monthly plan quotas.

TwilioSmsService talks to the Twilio Messages REST resource. The quota
helpers count a business's SmsMessage rows for the current UTC calendar
month against the owner's subscription plan.

Standalone usage:
    sms = TwilioSmsService()
    sid = await sms.send_sms("+15551234567", "Thanks for visiting!")
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx
import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.config.settings import get_settings
from reviewhub.core.exceptions import ConfigurationError, QuotaExceededError, SmsDeliveryError
from reviewhub.db.base import utcnow
from reviewhub.db.enums import SubscriptionPlan
from reviewhub.db.models import SmsMessage

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"

BULK_SEND_DELAY_SECONDS = 0.1

# None means unlimited
PLAN_SMS_LIMITS: dict[str, Optional[int]] = {
    SubscriptionPlan.FREE.value: 10,
    SubscriptionPlan.PRO.value: 500,
    SubscriptionPlan.ENTERPRISE.value: None,
}


# =============================================================================
# Twilio Transport
# =============================================================================


@dataclass
class BulkSmsResult:
    """Outcome of a bulk send. ``sent`` pairs each delivered number with its sid."""

    sent: list[tuple[str, str]] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def sids(self) -> list[str]:
        return [sid for _, sid in self.sent]


class TwilioSmsService:
    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.account_sid = account_sid or settings.twilio_account_sid
        self._auth_token = auth_token or (
            settings.twilio_auth_token.get_secret_value() if settings.twilio_auth_token else None
        )
        self.from_number = from_number or settings.twilio_from_number
        self._timeout = settings.http_timeout_seconds
        self._http_client = http_client

    def _require_config(self) -> None:
        if not self.account_sid or not self._auth_token or not self.from_number:
            raise ConfigurationError("Twilio credentials not configured", "twilio_account_sid")

    async def send_sms(self, to: str, body: str) -> str:
        """Send one message and return its Twilio sid.

        Raises:
            ConfigurationError: If Twilio credentials are missing.
            SmsDeliveryError: If Twilio rejects the message or is unreachable.
        """
        self._require_config()
        url = TWILIO_MESSAGES_URL.format(account_sid=self.account_sid)
        data = {"From": self.from_number, "To": to, "Body": body}
        auth = (self.account_sid, self._auth_token)

        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, data=data, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, data=data, auth=auth)
        except httpx.HTTPError as e:
            logger.error("sms_send_failed", to=to, error=str(e))
            raise SmsDeliveryError(to, str(e)) from e

        if response.status_code >= 400:
            payload = response.json() if response.content else {}
            logger.error(
                "sms_send_rejected",
                to=to,
                status_code=response.status_code,
                twilio_code=payload.get("code"),
            )
            raise SmsDeliveryError(
                to,
                payload.get("message", f"HTTP {response.status_code}"),
                {"status_code": response.status_code, "twilio_code": payload.get("code")},
            )

        sid = response.json()["sid"]
        logger.info("sms_sent", to=to, sid=sid)
        return sid

    async def send_bulk_sms(self, recipients: list[str], body: str) -> BulkSmsResult:
        """Send sequentially with a fixed delay; failures are collected, not retried."""
        result = BulkSmsResult()
        for number in recipients:
            try:
                sid = await self.send_sms(number, body)
            except SmsDeliveryError as e:
                logger.error("bulk_sms_recipient_failed", to=number, error=str(e))
                result.failed.append(number)
                continue
            result.sent.append((number, sid))
            await asyncio.sleep(BULK_SEND_DELAY_SECONDS)

        if result.failed:
            logger.warning(
                "bulk_sms_partial",
                sent=len(result.sent),
                total=len(recipients),
                failed=result.failed,
            )
        else:
            logger.info("bulk_sms_completed", sent=len(result.sent))
        return result


# =============================================================================
# Quotas
# =============================================================================


@dataclass
class SmsUsage:
    plan: str
    sent_this_month: int
    monthly_limit: Optional[int]

    @property
    def remaining(self) -> Optional[int]:
        if self.monthly_limit is None:
            return None
        return max(self.monthly_limit - self.sent_this_month, 0)

    @property
    def percentage_used(self) -> float:
        if not self.monthly_limit:
            return 0.0
        return round(self.sent_this_month / self.monthly_limit * 100, 1)


def monthly_limit(plan: Optional[str]) -> Optional[int]:
    """Unknown or missing plans get the Free allowance."""
    return PLAN_SMS_LIMITS.get(plan or SubscriptionPlan.FREE.value, PLAN_SMS_LIMITS["Free"])


def current_month_bounds(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    now = now or utcnow()
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def count_sent_this_month(db: Session, business_id: int) -> int:
    start, end = current_month_bounds()
    return db.scalar(
        select(func.count(SmsMessage.id))
        .where(SmsMessage.business_id == business_id)
        .where(SmsMessage.sent_at >= start)
        .where(SmsMessage.sent_at < end)
    ) or 0


def get_usage(db: Session, business_id: int, plan: Optional[str]) -> SmsUsage:
    plan = plan or SubscriptionPlan.FREE.value
    return SmsUsage(
        plan=plan,
        sent_this_month=count_sent_this_month(db, business_id),
        monthly_limit=monthly_limit(plan),
    )


def check_quota(db: Session, business_id: int, plan: Optional[str], requested: int) -> SmsUsage:
    """Ensure ``requested`` more messages fit in this month's allowance.

    Raises:
        QuotaExceededError: If sent + requested would exceed the plan limit.
    """
    usage = get_usage(db, business_id, plan)
    if usage.monthly_limit is not None and usage.sent_this_month + requested > usage.monthly_limit:
        logger.warning(
            "sms_quota_exceeded",
            business_id=business_id,
            plan=usage.plan,
            used=usage.sent_this_month,
            requested=requested,
        )
        raise QuotaExceededError(usage.plan, usage.monthly_limit, usage.sent_this_month, requested)
    return usage


def record_sent_messages(
    db: Session,
    business_id: int,
    sent: list[tuple[str, str]],
    body: str,
    from_number: Optional[str] = None,
    campaign_name: Optional[str] = None,
    purpose: Optional[str] = None,
) -> list[SmsMessage]:
    """Persist one SmsMessage per delivered (number, sid) pair."""
    now = utcnow()
    rows = [
        SmsMessage(
            business_id=business_id,
            to_phone_number=number,
            from_phone_number=from_number,
            body=body,
            twilio_sid=sid,
            status="sent",
            campaign_name=campaign_name,
            purpose=purpose,
            sent_at=now,
        )
        for number, sid in sent
    ]
    db.add_all(rows)
    db.commit()
    return rows


# =============================================================================
# Singleton
# =============================================================================

_sms_service: Optional[TwilioSmsService] = None


def get_sms_service() -> TwilioSmsService:
    """Get or create the singleton TwilioSmsService."""
    global _sms_service
    if _sms_service is None:
        _sms_service = TwilioSmsService()
    return _sms_service


def reset_sms_service() -> None:
    """Reset the singleton (for testing)."""
    global _sms_service
    _sms_service = None
