"""Shared OAuth and review-import behaviour for review platform adapters.

Adapters extend PlatformAdapter and implement the provider-specific token
exchange and review listing. The base class owns the HTTP transport
(circuit breaker, retries, status mapping), the OAuth state format,
connection upserts and the de-duplicating review import.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reviewhub.config.settings import get_settings
from reviewhub.core.circuit_breaker import get_circuit_breaker
from reviewhub.core.exceptions import (
    CircuitBreakerOpenError,
    InvalidOAuthStateError,
    NotFoundError,
    PlatformAuthError,
    PlatformError,
    PlatformRateLimitError,
    PlatformTimeoutError,
    PlatformUnavailableError,
)
from reviewhub.db.base import to_naive_utc, utcnow
from reviewhub.db.enums import ReviewPlatform, sentiment_for_rating
from reviewhub.db.models import PlatformConnection, Review

logger = structlog.get_logger(__name__)

TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


# =============================================================================
# Value Objects
# =============================================================================


@dataclass
class TokenGrant:
    """Normalised token endpoint response."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    platform_business_id: Optional[str] = None
    platform_business_name: Optional[str] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.expires_in is None:
            return None
        return utcnow() + timedelta(seconds=int(self.expires_in))


@dataclass
class PlatformReview:
    """One review as listed by a provider, before it is persisted."""

    platform_review_id: str
    rating: int
    review_date: datetime
    reviewer_name: str = "Anonymous"
    review_text: Optional[str] = None
    reviewer_avatar_url: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


def build_state(user_id: int, business_id: int) -> str:
    return f"{user_id}:{business_id}:{uuid.uuid4()}"


def parse_state(state: str) -> tuple[int, int]:
    """Extract (user_id, business_id) from an OAuth state value.

    Raises:
        InvalidOAuthStateError: If the state is not "user:business[:nonce]".
    """
    parts = (state or "").split(":")
    if len(parts) < 2:
        raise InvalidOAuthStateError("Invalid state parameter")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as e:
        raise InvalidOAuthStateError("Invalid state parameter") from e


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a provider timestamp into naive UTC; missing values mean now."""
    if not value:
        return utcnow()
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # Graph API style offsets ("+0000")
        parsed = datetime.strptime(text, "%Y-%m-%dT%H:%M:%S%z")
    return to_naive_utc(parsed)


# =============================================================================
# Base Adapter
# =============================================================================


class PlatformAdapter(ABC):
    """Base class for OAuth review platform integrations."""

    platform: ReviewPlatform
    display_name: str
    authorize_url: str
    token_url: str

    def __init__(self, db: Session, http_client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.settings = get_settings()
        self._client = http_client
        self._breaker = get_circuit_breaker(self.platform.name.lower())

    @property
    def redirect_uri(self) -> str:
        base = self.settings.api_base_url.rstrip("/")
        return f"{base}/api/v1/integrations/{self.platform.name.lower()}/callback"

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.http_timeout_seconds))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception_type((PlatformRateLimitError, PlatformTimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        access_token: Optional[str] = None,
    ) -> dict[str, Any]:
        """Make a provider API call with circuit breaker and retries.

        Raises:
            PlatformUnavailableError: When the circuit breaker is open.
            PlatformRateLimitError: When rate limited.
            PlatformAuthError: When credentials are rejected.
            PlatformError: On other API errors.
        """
        name = self.platform.name
        try:
            self._breaker.ensure_can_execute()
        except CircuitBreakerOpenError as e:
            logger.warning("platform_circuit_open", platform=name, recovery_time=e.recovery_time)
            raise PlatformUnavailableError(
                name,
                f"Circuit breaker open. Recovery in {e.recovery_time:.1f}s",
                {"url": url},
            ) from e

        client = await self._ensure_client()
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None

        try:
            response = await client.request(method, url, params=params, data=data, headers=headers)
        except httpx.TimeoutException as e:
            await self._breaker.record_failure()
            logger.error("platform_timeout", platform=name, url=url, error=str(e))
            raise PlatformTimeoutError(name, f"Request timeout: {e}", {"url": url})
        except httpx.RequestError as e:
            await self._breaker.record_failure()
            logger.error("platform_request_error", platform=name, url=url, error=str(e))
            raise PlatformError(name, f"Request failed: {e}", {"url": url})

        if response.status_code == 429:
            await self._breaker.record_failure()
            logger.warning("platform_rate_limited", platform=name, url=url)
            raise PlatformRateLimitError(name, "Rate limited", {"url": url})
        if response.status_code in (401, 403):
            raise PlatformAuthError(
                name,
                "Credentials rejected",
                {"url": url, "status_code": response.status_code},
            )
        if response.status_code >= 400:
            if response.status_code >= 500:
                await self._breaker.record_failure()
            logger.error(
                "platform_api_error",
                platform=name,
                status_code=response.status_code,
                url=url,
            )
            raise PlatformError(
                name,
                f"API error {response.status_code}: {response.text[:300]}",
                {"url": url, "status_code": response.status_code},
            )

        await self._breaker.record_success()
        return response.json() if response.content else {}

    # -------------------------------------------------------------------------
    # OAuth
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_authorization_url(self, user_id: int, business_id: int) -> str:
        """Provider consent URL carrying a build_state() value."""
        ...

    @abstractmethod
    async def _request_token(self, code: str) -> TokenGrant:
        ...

    @abstractmethod
    async def _request_refresh(self, connection: PlatformConnection) -> TokenGrant:
        ...

    @abstractmethod
    async def list_reviews(self, connection: PlatformConnection) -> list[PlatformReview]:
        """All reviews currently visible to the connection, newest data from the provider."""
        ...

    async def exchange_code_for_token(self, code: str, state: str) -> str:
        """Complete the OAuth callback and store the connection.

        Returns:
            A user-facing confirmation message.
        """
        _user_id, business_id = parse_state(state)
        grant = await self._request_token(code)

        connection = self.db.scalar(
            select(PlatformConnection)
            .where(PlatformConnection.business_id == business_id)
            .where(PlatformConnection.platform == self.platform)
        )
        if connection is None:
            connection = PlatformConnection(
                business_id=business_id,
                platform=self.platform,
                is_active=True,
                connected_at=utcnow(),
            )
            self.db.add(connection)

        connection.access_token = grant.access_token
        if grant.refresh_token:
            connection.refresh_token = grant.refresh_token
        connection.token_expires_at = grant.expires_at
        if grant.platform_business_id:
            connection.platform_business_id = grant.platform_business_id
        if grant.platform_business_name:
            connection.platform_business_name = grant.platform_business_name
        connection.is_active = True
        connection.last_synced_at = utcnow()
        self.db.commit()

        logger.info(
            "platform_connected",
            platform=self.platform.name,
            business_id=business_id,
            connection_id=connection.id,
        )
        return f"{self.display_name} connected successfully"

    async def refresh_access_token(self, connection: PlatformConnection) -> PlatformConnection:
        grant = await self._request_refresh(connection)
        connection.access_token = grant.access_token
        if grant.refresh_token:
            connection.refresh_token = grant.refresh_token
        connection.token_expires_at = grant.expires_at
        self.db.commit()

        logger.info("platform_token_refreshed", platform=self.platform.name, connection_id=connection.id)
        return connection

    # -------------------------------------------------------------------------
    # Review import
    # -------------------------------------------------------------------------

    def _needs_refresh(self, connection: PlatformConnection) -> bool:
        return (
            connection.token_expires_at is not None
            and connection.token_expires_at <= utcnow() + TOKEN_REFRESH_MARGIN
        )

    async def fetch_reviews(self, connection_id: int) -> list[Review]:
        """Import reviews the business does not have yet.

        Returns:
            The newly stored reviews (empty when nothing was new).
        """
        connection = self.db.get(PlatformConnection, connection_id)
        if connection is None:
            raise NotFoundError("Platform connection")

        if self._needs_refresh(connection):
            connection = await self.refresh_access_token(connection)

        listed = await self.list_reviews(connection)

        existing_ids = set(
            self.db.scalars(
                select(Review.platform_review_id)
                .where(Review.business_id == connection.business_id)
                .where(Review.platform == self.platform)
            ).all()
        )

        new_reviews: list[Review] = []
        for item in listed:
            if item.platform_review_id in existing_ids:
                continue
            existing_ids.add(item.platform_review_id)
            new_reviews.append(
                Review(
                    business_id=connection.business_id,
                    location_id=connection.location_id,
                    platform=self.platform,
                    platform_review_id=item.platform_review_id,
                    reviewer_name=item.reviewer_name or "Anonymous",
                    reviewer_avatar_url=item.reviewer_avatar_url,
                    rating=item.rating,
                    review_text=item.review_text,
                    review_date=item.review_date,
                    sentiment=sentiment_for_rating(item.rating).value,
                    is_read=False,
                    is_flagged=False,
                )
            )

        if new_reviews:
            self.db.add_all(new_reviews)
            connection.last_synced_at = utcnow()
            self.db.commit()
            logger.info(
                "platform_reviews_imported",
                platform=self.platform.name,
                business_id=connection.business_id,
                count=len(new_reviews),
            )

        return new_reviews
