"""Review platform integrations (OAuth connect + review import)."""

from reviewhub.services.platforms.base import PlatformAdapter, PlatformReview, TokenGrant, parse_state
from reviewhub.services.platforms.facebook import FacebookAdapter
from reviewhub.services.platforms.google import GoogleBusinessAdapter
from reviewhub.services.platforms.registry import (
    PLATFORM_INFO,
    get_platform_adapter,
    list_platforms,
    register_adapter,
    supports_oauth,
)
from reviewhub.services.platforms.yelp import YelpAdapter

__all__ = [
    "PlatformAdapter",
    "PlatformReview",
    "TokenGrant",
    "parse_state",
    "GoogleBusinessAdapter",
    "YelpAdapter",
    "FacebookAdapter",
    "PLATFORM_INFO",
    "get_platform_adapter",
    "list_platforms",
    "register_adapter",
    "supports_oauth",
]
