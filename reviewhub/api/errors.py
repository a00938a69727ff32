"""Translate ReviewHub domain errors into HTTP responses."""

from fastapi import HTTPException, status

from reviewhub.core.exceptions import (
    AIServiceError,
    BusinessRuleError,
    CircuitBreakerOpenError,
    ConfigurationError,
    InvalidOAuthStateError,
    NotFoundError,
    PermissionDeniedError,
    PlatformAuthError,
    PlatformError,
    ReviewHubError,
    SmsDeliveryError,
    UnsupportedPlatformError,
)

# Checked in order; the first matching class wins
_STATUS_BY_ERROR: list[tuple[type[ReviewHubError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (BusinessRuleError, status.HTTP_400_BAD_REQUEST),
    (InvalidOAuthStateError, status.HTTP_400_BAD_REQUEST),
    (UnsupportedPlatformError, status.HTTP_400_BAD_REQUEST),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CircuitBreakerOpenError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PlatformAuthError, status.HTTP_502_BAD_GATEWAY),
    (PlatformError, status.HTTP_502_BAD_GATEWAY),
    (SmsDeliveryError, status.HTTP_502_BAD_GATEWAY),
    (AIServiceError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(error: ReviewHubError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def http_error(error: ReviewHubError) -> HTTPException:
    """HTTPException carrying the domain error's message."""
    return HTTPException(status_code=status_for(error), detail=error.message)
