"""
ReviewHub error types.

Services raise these and the API layer maps them to status codes. The
Retryable/Permanent split tells the provider clients whether another attempt
can help.
"""

from typing import Any, Optional


# =============================================================================
# Base Exceptions
# =============================================================================


class ReviewHubError(Exception):
    """Base exception for all ReviewHub errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class RetryableError(ReviewHubError):
    """A later attempt may succeed (rate limit, timeout, provider 5xx)."""

    pass


class PermanentError(ReviewHubError):
    """Retrying cannot help (bad input, missing credentials, rejected token)."""

    pass


# =============================================================================
# Domain Errors
# =============================================================================


class NotFoundError(PermanentError):
    """Raised when a requested entity does not exist or is not visible."""

    def __init__(self, entity: str, message: Optional[str] = None):
        self.entity = entity
        super().__init__(message or f"{entity} not found", {"entity": entity})


class PermissionDeniedError(PermanentError):
    """Raised when the caller is not allowed to act on a resource."""

    pass


class BusinessRuleError(PermanentError):
    """Raised when a request violates a business rule (duplicate, bad state)."""

    pass


class QuotaExceededError(BusinessRuleError):
    """Raised when a plan's monthly SMS allowance would be exceeded."""

    def __init__(self, plan: str, limit: int, used: int, requested: int):
        self.plan = plan
        self.limit = limit
        self.used = used
        self.requested = requested
        super().__init__(
            f"SMS limit exceeded. Your {plan} plan allows {limit} SMS per month. "
            f"You have sent {used} this month and are trying to send {requested} more.",
            {"plan": plan, "limit": limit, "used": used, "requested": requested},
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PermanentError):
    """A credential or setting the operation needs is absent."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details)


# =============================================================================
# Platform Errors
# =============================================================================


class PlatformError(ReviewHubError):
    """Base exception for review platform (Google, Yelp, Facebook) errors."""

    def __init__(
        self,
        platform: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.platform = platform
        super().__init__(f"[{platform}] {message}", details)


class PlatformRateLimitError(PlatformError, RetryableError):
    """Raised when a platform API rate limits us."""

    pass


class PlatformTimeoutError(PlatformError, RetryableError):
    """Raised when a platform API call times out."""

    pass


class PlatformAuthError(PlatformError, PermanentError):
    """Raised when platform credentials are rejected."""

    pass


class PlatformUnavailableError(PlatformError, RetryableError):
    """Raised when a platform is temporarily unavailable."""

    pass


class UnsupportedPlatformError(PlatformError, PermanentError):
    """Raised for platforms without an OAuth integration."""

    def __init__(self, platform: str):
        super().__init__(platform, f"{platform} OAuth is not yet implemented")


class InvalidOAuthStateError(PermanentError):
    """Raised when an OAuth callback carries a malformed state value."""

    pass


# =============================================================================
# Messaging Errors
# =============================================================================


class SmsDeliveryError(ReviewHubError):
    """Raised when Twilio rejects or fails to accept a message."""

    def __init__(self, to_number: str, message: str, details: Optional[dict[str, Any]] = None):
        self.to_number = to_number
        super().__init__(f"SMS to {to_number} failed: {message}", details)


class AIServiceError(ReviewHubError):
    """Raised when the chat completion provider call fails."""

    pass


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitBreakerOpenError(RetryableError):
    """The upstream's breaker is open; calls fail fast until it recovers."""

    def __init__(self, service: str, recovery_time: float):
        self.service = service
        self.recovery_time = recovery_time
        super().__init__(
            f"Circuit breaker open for {service}. Recovery in {recovery_time:.1f}s",
            {"service": service, "recovery_time": recovery_time},
        )
