"""Google Business Profile adapter."""

from urllib.parse import urlencode

import structlog

from reviewhub.core.exceptions import ConfigurationError, PlatformAuthError, PlatformError
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

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_API_BASE = "https://mybusiness.googleapis.com/v4"

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/business.manage",
    "https://www.googleapis.com/auth/plus.business.manage",
]

STAR_RATINGS = {"FIVE": 5, "FOUR": 4, "THREE": 3, "TWO": 2, "ONE": 1}


@register_adapter(ReviewPlatform.Google)
class GoogleBusinessAdapter(PlatformAdapter):
    platform = ReviewPlatform.Google
    display_name = "Google Business Profile"
    authorize_url = GOOGLE_AUTH_URL
    token_url = GOOGLE_TOKEN_URL

    def _credentials(self) -> tuple[str, str]:
        client_id = self.settings.google_client_id
        secret = self.settings.google_client_secret
        if not client_id or not secret:
            raise ConfigurationError("Google OAuth credentials not configured", "google_client_id")
        return client_id, secret.get_secret_value()

    def get_authorization_url(self, user_id: int, business_id: int) -> str:
        client_id, _ = self._credentials()
        query = urlencode(
            {
                "client_id": client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": " ".join(GOOGLE_SCOPES),
                "state": build_state(user_id, business_id),
                "access_type": "offline",
                "prompt": "consent",
            }
        )
        return f"{GOOGLE_AUTH_URL}?{query}"

    async def _request_token(self, code: str) -> TokenGrant:
        client_id, secret = self._credentials()
        data = await self._request(
            "POST",
            GOOGLE_TOKEN_URL,
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
        )

    async def _request_refresh(self, connection: PlatformConnection) -> TokenGrant:
        if not connection.refresh_token:
            raise PlatformAuthError("Google", "No refresh token stored; reconnect required")
        client_id, secret = self._credentials()
        data = await self._request(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": secret,
                "refresh_token": connection.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        return TokenGrant(access_token=data["access_token"], expires_in=data.get("expires_in"))

    async def list_reviews(self, connection: PlatformConnection) -> list[PlatformReview]:
        token = connection.access_token

        accounts = (await self._request("GET", f"{GOOGLE_API_BASE}/accounts", access_token=token)).get(
            "accounts"
        ) or []
        if not accounts:
            logger.warning("google_no_accounts", connection_id=connection.id)
            return []

        # First account only; multi-account selection is not offered
        account_name = accounts[0]["name"]
        locations = (
            await self._request("GET", f"{GOOGLE_API_BASE}/{account_name}/locations", access_token=token)
        ).get("locations") or []
        if not locations:
            logger.warning("google_no_locations", connection_id=connection.id, account=account_name)
            return []

        reviews: list[PlatformReview] = []
        for location in locations:
            try:
                payload = await self._request(
                    "GET", f"{GOOGLE_API_BASE}/{location['name']}/reviews", access_token=token
                )
            except PlatformError as e:
                logger.warning("google_location_reviews_failed", location=location.get("name"), error=str(e))
                continue

            for item in payload.get("reviews") or []:
                rating = STAR_RATINGS.get(item.get("starRating", ""), 0)
                if rating == 0:
                    continue
                reviewer = item.get("reviewer") or {}
                reviews.append(
                    PlatformReview(
                        platform_review_id=item["reviewId"],
                        rating=rating,
                        review_date=parse_timestamp(item.get("createTime")),
                        reviewer_name=reviewer.get("displayName") or "Anonymous",
                        reviewer_avatar_url=reviewer.get("profilePhotoUrl"),
                        review_text=item.get("comment"),
                        raw=item,
                    )
                )
        return reviews
