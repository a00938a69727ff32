"""Adapter registry and platform catalogue.

Provides decorator-based registration of OAuth adapters and the metadata
shown on the integrations page for every ReviewPlatform.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import httpx
from sqlalchemy.orm import Session

from reviewhub.core.exceptions import UnsupportedPlatformError
from reviewhub.db.enums import ReviewPlatform

if TYPE_CHECKING:
    from reviewhub.services.platforms.base import PlatformAdapter


@dataclass(frozen=True)
class PlatformInfo:
    display_name: str
    description: str
    icon: str


PLATFORM_INFO: dict[ReviewPlatform, PlatformInfo] = {
    ReviewPlatform.Google: PlatformInfo(
        "Google Business Profile",
        "Connect your Google Business Profile to manage reviews and respond to customers",
        "google",
    ),
    ReviewPlatform.Yelp: PlatformInfo(
        "Yelp", "Sync Yelp reviews and respond to customer feedback", "yelp"
    ),
    ReviewPlatform.Facebook: PlatformInfo(
        "Facebook", "Manage Facebook page reviews and ratings", "facebook"
    ),
    ReviewPlatform.TripAdvisor: PlatformInfo(
        "TripAdvisor", "Track and respond to TripAdvisor reviews", "plane"
    ),
    ReviewPlatform.Zomato: PlatformInfo("Zomato", "Connect Zomato restaurant reviews", "utensils"),
    ReviewPlatform.Trustpilot: PlatformInfo(
        "Trustpilot", "Monitor Trustpilot ratings and feedback", "shield-check"
    ),
    ReviewPlatform.Amazon: PlatformInfo("Amazon", "Manage Amazon product reviews", "shopping-cart"),
    ReviewPlatform.BookingCom: PlatformInfo(
        "Booking.com", "Track Booking.com property reviews", "hotel"
    ),
    ReviewPlatform.OpenTable: PlatformInfo(
        "OpenTable", "Monitor OpenTable restaurant reviews", "calendar"
    ),
    ReviewPlatform.Foursquare: PlatformInfo(
        "Foursquare", "Track Foursquare tips and ratings", "map-pin"
    ),
}


_adapters: dict[ReviewPlatform, type["PlatformAdapter"]] = {}


def register_adapter(platform: ReviewPlatform):
    """Decorator to register an adapter class for a platform.

    Example:
        @register_adapter(ReviewPlatform.Yelp)
        class YelpAdapter(PlatformAdapter):
            ...
    """

    def decorator(cls: type["PlatformAdapter"]):
        _adapters[platform] = cls
        return cls

    return decorator


def supports_oauth(platform: ReviewPlatform) -> bool:
    return platform in _adapters


def get_platform_adapter(
    platform: ReviewPlatform,
    db: Session,
    http_client: Optional[httpx.AsyncClient] = None,
) -> "PlatformAdapter":
    """Instantiate the adapter for a platform.

    Raises:
        UnsupportedPlatformError: If the platform has no OAuth integration.
    """
    if platform not in _adapters:
        raise UnsupportedPlatformError(platform.name)
    return _adapters[platform](db, http_client=http_client)


def list_platforms() -> list[dict]:
    """Catalogue entries for every platform, in id order."""
    return [
        {
            "id": int(platform),
            "name": platform.name,
            "displayName": PLATFORM_INFO[platform].display_name,
            "description": PLATFORM_INFO[platform].description,
            "icon": PLATFORM_INFO[platform].icon,
            "supportsOAuth": supports_oauth(platform),
            "isComingSoon": not supports_oauth(platform),
        }
        for platform in ReviewPlatform
    ]
