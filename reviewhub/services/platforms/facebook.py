"""Facebook Pages adapter (Graph API v18.0)."""

from typing import Any
from urllib.parse import urlencode

import structlog

from reviewhub.core.exceptions import ConfigurationError, PlatformError
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

FB_AUTH_URL = "https://www.facebook.com/v18.0/dialog/oauth"
FB_TOKEN_URL = "https://graph.facebook.com/v18.0/oauth/access_token"
FB_API_BASE = "https://graph.facebook.com/v18.0"

FB_SCOPES = ["pages_show_list", "pages_read_engagement", "pages_manage_metadata"]
FB_RATING_FIELDS = "review_text,rating,reviewer,created_time"


@register_adapter(ReviewPlatform.Facebook)
class FacebookAdapter(PlatformAdapter):
    """Facebook has no refresh tokens; long-lived user tokens are re-exchanged instead."""

    platform = ReviewPlatform.Facebook
    display_name = "Facebook"
    authorize_url = FB_AUTH_URL
    token_url = FB_TOKEN_URL

    def _credentials(self) -> tuple[str, str]:
        app_id = self.settings.facebook_app_id
        secret = self.settings.facebook_app_secret
        if not app_id or not secret:
            raise ConfigurationError("Facebook app credentials not configured", "facebook_app_id")
        return app_id, secret.get_secret_value()

    def get_authorization_url(self, user_id: int, business_id: int) -> str:
        app_id, _ = self._credentials()
        query = urlencode(
            {
                "client_id": app_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": ",".join(FB_SCOPES),
                "state": build_state(user_id, business_id),
            }
        )
        return f"{FB_AUTH_URL}?{query}"

    async def _long_lived(self, short_lived_token: str) -> dict[str, Any]:
        app_id, secret = self._credentials()
        return await self._request(
            "GET",
            FB_TOKEN_URL,
            params={
                "grant_type": "fb_exchange_token",
                "client_id": app_id,
                "client_secret": secret,
                "fb_exchange_token": short_lived_token,
            },
        )

    async def _pages(self, user_token: str) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET", f"{FB_API_BASE}/me/accounts", params={"access_token": user_token}
        )
        return payload.get("data") or []

    async def _request_token(self, code: str) -> TokenGrant:
        app_id, secret = self._credentials()
        short_lived = await self._request(
            "GET",
            FB_TOKEN_URL,
            params={
                "client_id": app_id,
                "client_secret": secret,
                "redirect_uri": self.redirect_uri,
                "code": code,
            },
        )
        long_lived = await self._long_lived(short_lived["access_token"])
        grant = TokenGrant(
            access_token=long_lived["access_token"],
            expires_in=long_lived.get("expires_in"),
        )

        try:
            pages = await self._pages(grant.access_token)
        except PlatformError as e:
            logger.warning("facebook_pages_lookup_failed", error=str(e))
            pages = []
        if pages:
            grant.platform_business_id = pages[0].get("id")
            grant.platform_business_name = pages[0].get("name")
        return grant

    async def _request_refresh(self, connection: PlatformConnection) -> TokenGrant:
        data = await self._long_lived(connection.access_token)
        return TokenGrant(access_token=data["access_token"], expires_in=data.get("expires_in"))

    async def list_reviews(self, connection: PlatformConnection) -> list[PlatformReview]:
        pages = await self._pages(connection.access_token)
        if not pages:
            logger.warning("facebook_no_pages", connection_id=connection.id)
            return []

        reviews: list[PlatformReview] = []
        for page in pages:
            page_id = page["id"]
            try:
                payload = await self._request(
                    "GET",
                    f"{FB_API_BASE}/{page_id}/ratings",
                    params={"fields": FB_RATING_FIELDS, "access_token": page.get("access_token")},
                )
            except PlatformError as e:
                logger.warning("facebook_page_ratings_failed", page_id=page_id, error=str(e))
                continue

            for item in payload.get("data") or []:
                # Recommendations without a star rating are skipped
                if item.get("rating") is None:
                    continue
                created_time = item.get("created_time", "")
                reviewer = item.get("reviewer") or {}
                reviews.append(
                    PlatformReview(
                        platform_review_id=f"{page_id}_{created_time}",
                        rating=int(item["rating"]),
                        review_date=parse_timestamp(created_time),
                        reviewer_name=reviewer.get("name") or "Facebook User",
                        review_text=item.get("review_text") or "",
                        raw=item,
                    )
                )
        return reviews
