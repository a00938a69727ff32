"""Unit tests for Twilio delivery and monthly SMS quotas."""

from datetime import datetime, timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from reviewhub.core.exceptions import ConfigurationError, QuotaExceededError, SmsDeliveryError
from reviewhub.db.base import utcnow
from reviewhub.services import sms as sms_module
from reviewhub.services.sms import (
    SmsUsage,
    TwilioSmsService,
    check_quota,
    current_month_bounds,
    get_usage,
    monthly_limit,
    record_sent_messages,
)


@pytest.fixture
def business(make_user, make_business):
    return make_business(make_user())


@pytest.fixture(autouse=True)
def no_bulk_delay(monkeypatch):
    monkeypatch.setattr(sms_module, "BULK_SEND_DELAY_SECONDS", 0)


def _twilio(handler) -> TwilioSmsService:
    return TwilioSmsService(
        account_sid="AC123",
        auth_token="secret",
        from_number="+15559990000",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _record(db_session, business, n, sent_at=None):
    rows = record_sent_messages(
        db_session,
        business.id,
        [(f"+1555000{i:04d}", f"SM{i}") for i in range(n)],
        "Hello",
    )
    if sent_at is not None:
        for row in rows:
            row.sent_at = sent_at
        db_session.commit()
    return rows


class TestLimits:
    """Plan allowances."""

    @pytest.mark.parametrize(
        "plan, expected",
        [("Free", 10), ("Pro", 500), ("Enterprise", None), (None, 10), ("Legacy", 10)],
    )
    def test_monthly_limit(self, plan, expected):
        assert monthly_limit(plan) == expected

    def test_usage_properties(self):
        usage = SmsUsage(plan="Free", sent_this_month=4, monthly_limit=10)

        assert usage.remaining == 6
        assert usage.percentage_used == 40.0

    def test_unlimited_usage(self):
        usage = SmsUsage(plan="Enterprise", sent_this_month=900, monthly_limit=None)

        assert usage.remaining is None
        assert usage.percentage_used == 0.0

    def test_month_bounds_roll_over_december(self):
        start, end = current_month_bounds(datetime(2025, 12, 17, 15, 30))

        assert start == datetime(2025, 12, 1)
        assert end == datetime(2026, 1, 1)


class TestQuota:
    """Counting this month's messages against the plan."""

    def test_counts_only_current_month(self, db_session, business):
        """Messages from earlier months do not count."""
        _record(db_session, business, 3)
        last_month = current_month_bounds()[0] - timedelta(days=2)
        _record(db_session, business, 5, sent_at=last_month)

        assert get_usage(db_session, business.id, "Free").sent_this_month == 3

    def test_exact_fit_is_allowed(self, db_session, business):
        """Reaching the limit exactly passes."""
        _record(db_session, business, 7)

        usage = check_quota(db_session, business.id, "Free", 3)

        assert usage.sent_this_month == 7

    def test_over_limit_raises(self, db_session, business):
        """One message past the allowance is refused with the numbers attached."""
        _record(db_session, business, 8)

        with pytest.raises(QuotaExceededError) as exc_info:
            check_quota(db_session, business.id, "Free", 3)

        error = exc_info.value
        assert (error.plan, error.limit, error.used, error.requested) == ("Free", 10, 8, 3)
        assert "Free plan allows 10 SMS per month" in error.message

    def test_enterprise_is_unlimited(self, db_session, business):
        _record(db_session, business, 20)

        assert check_quota(db_session, business.id, "Enterprise", 10_000).monthly_limit is None

    def test_usage_is_per_business(self, db_session, business, make_user, make_business):
        other = make_business(make_user(), name="Other")
        _record(db_session, other, 10)

        assert get_usage(db_session, business.id, "Free").sent_this_month == 0

    def test_record_sent_messages_fields(self, db_session, business):
        (row,) = record_sent_messages(
            db_session,
            business.id,
            [("+15550001111", "SMabc")],
            "Thanks!",
            from_number="+15559990000",
            campaign_name="Spring",
            purpose="campaign",
        )

        assert row.id is not None
        assert row.twilio_sid == "SMabc"
        assert row.status == "sent"
        assert row.campaign_name == "Spring"
        assert row.sent_at <= utcnow()


class TestTwilioSmsService:
    """Twilio Messages REST calls."""

    @pytest.mark.asyncio
    async def test_send_posts_form_with_basic_auth(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM42"})

        sid = await _twilio(handler).send_sms("+15551234567", "Hi there")

        assert sid == "SM42"
        assert seen["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
        assert seen["auth"].startswith("Basic ")
        assert seen["form"] == {"From": ["+15559990000"], "To": ["+15551234567"], "Body": ["Hi there"]}

    @pytest.mark.asyncio
    async def test_rejection_raises_delivery_error(self):
        def handler(request):
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        with pytest.raises(SmsDeliveryError) as exc_info:
            await _twilio(handler).send_sms("bogus", "Hi")

        assert exc_info.value.to_number == "bogus"
        assert exc_info.value.details["twilio_code"] == 21211

    @pytest.mark.asyncio
    async def test_transport_error_raises_delivery_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(SmsDeliveryError):
            await _twilio(handler).send_sms("+15551234567", "Hi")

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        service = TwilioSmsService()

        with pytest.raises(ConfigurationError):
            await service.send_sms("+15551234567", "Hi")

    @pytest.mark.asyncio
    async def test_bulk_collects_failures(self):
        """Failed recipients are skipped; the rest are delivered in order."""

        def handler(request):
            to = parse_qs(request.content.decode())["To"][0]
            if to == "+15550000002":
                return httpx.Response(400, json={"code": 21614, "message": "Not a mobile number"})
            return httpx.Response(201, json={"sid": f"SM{to[-1]}"})

        result = await _twilio(handler).send_bulk_sms(
            ["+15550000001", "+15550000002", "+15550000003"], "Sale!"
        )

        assert result.sent == [("+15550000001", "SM1"), ("+15550000003", "SM3")]
        assert result.failed == ["+15550000002"]
        assert result.sids == ["SM1", "SM3"]
