"""Yelp adapter."""

from urllib.parse import urlencode

import structlog

from reviewhub.core.exceptions import ConfigurationError, PlatformAuthError
from reviewhub.db.enums import ReviewPlatform
from reviewhub.db.models import PlatformConnection
from reviewhub.services.platforms.base import (
    PlatformAdapter,
    PlatformReview,
    TokenGrant,
    build_state,
    parse_timestamp,
)
from reviewhub.services.platforms.registry import register_adapter

logger = structlog.get_logger(__name__)

YELP_AUTH_URL = "https://www.yelp.com/oauth2/v2/authorize"
YELP_TOKEN_URL = "https://api.yelp.com/oauth2/v2/token"
YELP_API_BASE = "https://api.yelp.com/v3"


@register_adapter(ReviewPlatform.Yelp)
class YelpAdapter(PlatformAdapter):
    platform = ReviewPlatform.Yelp
    display_name = "Yelp"
    authorize_url = YELP_AUTH_URL
    token_url = YELP_TOKEN_URL

    def _credentials(self) -> tuple[str, str]:
        client_id = self.settings.yelp_client_id
        secret = self.settings.yelp_client_secret
        if not client_id or not secret:
            raise ConfigurationError("Yelp OAuth credentials not configured", "yelp_client_id")
        return client_id, secret.get_secret_value()

    def get_authorization_url(self, user_id: int, business_id: int) -> str:
        client_id, _ = self._credentials()
        query = urlencode(
            {
                "client_id": client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "state": build_state(user_id, business_id),
            }
        )
        return f"{YELP_AUTH_URL}?{query}"

    async def _request_token(self, code: str) -> TokenGrant:
        client_id, secret = self._credentials()
        data = await self._request(
            "POST",
            YELP_TOKEN_URL,
            data={
                "code": code,
                "client_id": client_id,
                "client_secret": secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            platform_business_id=(data.get("business_ids") or [None])[0],
        )

    async def _request_refresh(self, connection: PlatformConnection) -> TokenGrant:
        if not connection.refresh_token:
            raise PlatformAuthError("Yelp", "No refresh token stored; reconnect required")
        client_id, secret = self._credentials()
        data = await self._request(
            "POST",
            YELP_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": secret,
                "refresh_token": connection.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
        )

    async def list_reviews(self, connection: PlatformConnection) -> list[PlatformReview]:
        business_alias = connection.platform_business_id
        if not business_alias:
            logger.warning("yelp_business_id_missing", connection_id=connection.id)
            return []

        payload = await self._request(
            "GET",
            f"{YELP_API_BASE}/businesses/{business_alias}/reviews",
            access_token=connection.access_token,
        )

        reviews: list[PlatformReview] = []
        for item in payload.get("reviews") or []:
            user = item.get("user") or {}
            reviews.append(
                PlatformReview(
                    platform_review_id=item["id"],
                    rating=int(item["rating"]),
                    review_date=parse_timestamp(item.get("time_created")),
                    reviewer_name=user.get("name") or "Anonymous",
                    reviewer_avatar_url=user.get("image_url"),
                    review_text=item.get("text"),
                    raw=item,
                )
            )
        return reviews
