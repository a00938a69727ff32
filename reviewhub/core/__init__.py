"""
Core building blocks shared by services and the API.

- exceptions: ReviewHubError hierarchy with retry categorization
- circuit_breaker: per-upstream circuit breakers for provider calls
- logging: structlog configuration
"""

from reviewhub.core.exceptions import (
    BusinessRuleError,
    NotFoundError,
    PermanentError,
    PermissionDeniedError,
    RetryableError,
    ReviewHubError,
)

__all__ = [
    "ReviewHubError",
    "RetryableError",
    "PermanentError",
    "NotFoundError",
    "PermissionDeniedError",
    "BusinessRuleError",
]
