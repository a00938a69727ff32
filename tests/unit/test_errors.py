"""Unit tests for the exception hierarchy and its HTTP mapping."""

import pytest

from reviewhub.api.errors import http_error, status_for
from reviewhub.core.exceptions import (
    AIServiceError,
    BusinessRuleError,
    CircuitBreakerOpenError,
    ConfigurationError,
    InvalidOAuthStateError,
    NotFoundError,
    PermanentError,
    PermissionDeniedError,
    PlatformAuthError,
    PlatformRateLimitError,
    QuotaExceededError,
    RetryableError,
    ReviewHubError,
    SmsDeliveryError,
    UnsupportedPlatformError,
)


@pytest.mark.parametrize(
    "error, expected",
    [
        (NotFoundError("Business"), 404),
        (PermissionDeniedError("nope"), 403),
        (BusinessRuleError("duplicate"), 400),
        (QuotaExceededError("Free", 10, 10, 1), 400),
        (InvalidOAuthStateError("bad state"), 400),
        (UnsupportedPlatformError("TripAdvisor"), 400),
        (ConfigurationError("missing", "openai_api_key"), 503),
        (CircuitBreakerOpenError("yelp", 12.0), 503),
        (PlatformAuthError("Google", "token revoked"), 502),
        (PlatformRateLimitError("Yelp", "slow down"), 502),
        (SmsDeliveryError("+15550000000", "rejected"), 502),
        (AIServiceError("provider down"), 502),
        (ReviewHubError("unexpected"), 500),
    ],
)
def test_status_for(error, expected):
    assert status_for(error) == expected


def test_http_error_carries_message():
    exc = http_error(NotFoundError("Review"))

    assert exc.status_code == 404
    assert exc.detail == "Review not found"


class TestHierarchy:
    def test_retry_categories(self):
        assert isinstance(PlatformRateLimitError("Yelp", "429"), RetryableError)
        assert isinstance(CircuitBreakerOpenError("yelp", 1.0), RetryableError)
        assert isinstance(PlatformAuthError("Google", "401"), PermanentError)
        assert isinstance(QuotaExceededError("Free", 10, 9, 2), BusinessRuleError)

    def test_details_in_str(self):
        error = ConfigurationError("Twilio credentials not configured", "twilio_account_sid")

        assert error.config_key == "twilio_account_sid"
        assert "twilio_account_sid" in str(error)

    def test_platform_prefix(self):
        error = UnsupportedPlatformError("Zomato")

        assert error.platform == "Zomato"
        assert error.message == "[Zomato] Zomato OAuth is not yet implemented"
