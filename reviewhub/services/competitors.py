"""
Competitor tracking backed by the Google Places web service.

Search, details and reviews are read-only lookups against Places; tracked
competitors are stored as Competitor rows and refreshed on demand. Lookup
failures are logged and degrade to empty results or None so the UI can
still render the tracked list.

API Reference: https://developers.google.com/maps/documentation/places/web-service/details
"""

from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.config.settings import get_settings
from reviewhub.core.exceptions import BusinessRuleError, ConfigurationError, NotFoundError
from reviewhub.db.base import utcnow
from reviewhub.db.enums import ReviewPlatform
from reviewhub.db.models import Business, Competitor, Review

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

PLACES_API_BASE = "https://maps.googleapis.com/maps/api/place"

DETAIL_FIELDS = (
    "place_id,name,formatted_address,rating,user_ratings_total,formatted_phone_number,"
    "website,url,photos,opening_hours,price_level,types"
)

MAX_PHOTOS = 5
PHOTO_MAX_WIDTH = 400


# =============================================================================
# Models
# =============================================================================


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompetitorSearchResult(_ApiModel):
    place_id: str
    name: str
    address: str = ""
    rating: Optional[float] = None
    total_reviews: Optional[int] = None
    is_open: bool = False
    price_level: Optional[str] = Field(None, description="'$' repeated by Google price level")


class CompetitorDetails(_ApiModel):
    place_id: str
    name: str
    address: str = ""
    rating: Optional[float] = None
    total_reviews: int = 0
    phone_number: Optional[str] = None
    website: Optional[str] = None
    google_maps_url: Optional[str] = None
    price_level: Optional[str] = None
    types: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)
    opening_hours: dict[str, str] = Field(default_factory=dict, description="Day name -> hours text")


class CompetitorReview(_ApiModel):
    author_name: str = "Anonymous"
    author_photo_url: str = ""
    rating: int
    text: str = ""
    time: datetime
    relative_time: str = ""


class BusinessRating(_ApiModel):
    name: str
    average_rating: float
    total_reviews: int


class CompetitorRating(_ApiModel):
    name: str
    platform: str
    current_rating: Optional[float] = None
    total_reviews: int = 0


class RatingComparison(_ApiModel):
    """The business against its tracked competitors.

    ``industry_average`` is the mean of the business average and every
    competitor rating that is known.
    """

    business: BusinessRating
    competitors: list[CompetitorRating]
    industry_average: float
    performance_vs_industry: float


def _price_level(value: Optional[int]) -> Optional[str]:
    return "$" * value if value is not None else None


def _parse_opening_hours(weekday_text: list[str]) -> dict[str, str]:
    """Map "Monday: 9:00 AM - 5:00 PM" to {"Monday": "9:00 AM - 5:00 PM"}, splitting on the first colon."""
    hours: dict[str, str] = {}
    for line in weekday_text:
        day, sep, text = line.partition(":")
        if sep:
            hours[day.strip()] = text.strip()
    return hours


# =============================================================================
# Service
# =============================================================================


class GooglePlacesCompetitorService:
    def __init__(
        self,
        db: Session,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.db = db
        self._api_key = api_key or (
            settings.google_places_api_key.get_secret_value()
            if settings.google_places_api_key
            else None
        )
        self._timeout = settings.http_timeout_seconds
        self._http_client = http_client

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self._api_key:
            raise ConfigurationError("Google Places API key not configured", "google_places_api_key")

        url = f"{PLACES_API_BASE}/{endpoint}"
        params = {**params, "key": self._api_key}
        if self._http_client is not None:
            response = await self._http_client.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    def _photo_url(self, reference: str) -> str:
        return (
            f"{PLACES_API_BASE}/photo?maxwidth={PHOTO_MAX_WIDTH}"
            f"&photoreference={reference}&key={self._api_key}"
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def search(self, business_name: str, location: str) -> list[CompetitorSearchResult]:
        query = f"{business_name} {location}".strip()
        try:
            data = await self._get("textsearch/json", {"query": query})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("competitor_search_failed", query=query, error=str(e))
            return []

        return [
            CompetitorSearchResult(
                place_id=item.get("place_id") or "",
                name=item.get("name") or "",
                address=item.get("formatted_address") or "",
                rating=item.get("rating"),
                total_reviews=item.get("user_ratings_total"),
                is_open=bool((item.get("opening_hours") or {}).get("open_now", False)),
                price_level=_price_level(item.get("price_level")),
            )
            for item in data.get("results") or []
        ]

    async def get_details(self, place_id: str) -> Optional[CompetitorDetails]:
        try:
            data = await self._get("details/json", {"place_id": place_id, "fields": DETAIL_FIELDS})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("competitor_details_failed", place_id=place_id, error=str(e))
            return None

        result = data.get("result")
        if not result:
            return None

        photos = [
            self._photo_url(photo["photo_reference"])
            for photo in (result.get("photos") or [])[:MAX_PHOTOS]
            if photo.get("photo_reference")
        ]
        return CompetitorDetails(
            place_id=result.get("place_id") or place_id,
            name=result.get("name") or "",
            address=result.get("formatted_address") or "",
            rating=result.get("rating"),
            total_reviews=result.get("user_ratings_total") or 0,
            phone_number=result.get("formatted_phone_number"),
            website=result.get("website"),
            google_maps_url=result.get("url"),
            price_level=_price_level(result.get("price_level")),
            types=result.get("types") or [],
            photos=photos,
            opening_hours=_parse_opening_hours(
                (result.get("opening_hours") or {}).get("weekday_text") or []
            ),
        )

    async def get_reviews(self, place_id: str) -> list[CompetitorReview]:
        try:
            data = await self._get("details/json", {"place_id": place_id, "fields": "reviews"})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("competitor_reviews_failed", place_id=place_id, error=str(e))
            return []

        return [
            CompetitorReview(
                author_name=item.get("author_name") or "Anonymous",
                author_photo_url=item.get("profile_photo_url") or "",
                rating=int(item.get("rating") or 0),
                text=item.get("text") or "",
                time=datetime.fromtimestamp(int(item.get("time") or 0), tz=timezone.utc).replace(tzinfo=None),
                relative_time=item.get("relative_time_description") or "",
            )
            for item in (data.get("result") or {}).get("reviews") or []
        ]

    # -------------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------------

    def _tracked(self, competitor_id: int, business_id: int) -> Competitor:
        competitor = self.db.scalar(
            select(Competitor)
            .where(Competitor.id == competitor_id)
            .where(Competitor.business_id == business_id)
        )
        if competitor is None:
            raise NotFoundError("Competitor")
        return competitor

    def _ensure_untracked(
        self,
        business_id: int,
        platform: ReviewPlatform,
        platform_business_id: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        query = (
            select(Competitor.id)
            .where(Competitor.business_id == business_id)
            .where(Competitor.platform == platform)
            .where(Competitor.platform_business_id == platform_business_id)
        )
        if exclude_id is not None:
            query = query.where(Competitor.id != exclude_id)
        if self.db.scalar(query) is not None:
            raise BusinessRuleError("This competitor is already being tracked")

    async def add(self, business_id: int, place_id: str, name: str) -> Competitor:
        """Track a Google place, filling name and rating from its details."""
        self._ensure_untracked(business_id, ReviewPlatform.Google, place_id)

        details = await self.get_details(place_id)
        competitor = Competitor(
            business_id=business_id,
            platform=ReviewPlatform.Google,
            platform_business_id=place_id,
            name=(details.name if details and details.name else name),
            current_rating=(details.rating if details and details.rating is not None else 0.0),
            total_reviews=details.total_reviews if details else 0,
            last_checked_at=utcnow(),
            is_active=True,
        )
        self.db.add(competitor)
        self.db.commit()
        self.db.refresh(competitor)

        logger.info("competitor_added", competitor_id=competitor.id, business_id=business_id)
        return competitor

    def create(
        self,
        business_id: int,
        name: str,
        platform: ReviewPlatform,
        platform_business_id: str,
    ) -> Competitor:
        """Track a competitor entered by hand. Rating stays unknown until a sync."""
        self._ensure_untracked(business_id, platform, platform_business_id)

        competitor = Competitor(
            business_id=business_id,
            name=name,
            platform=platform,
            platform_business_id=platform_business_id,
            current_rating=None,
            total_reviews=0,
            is_active=True,
        )
        self.db.add(competitor)
        self.db.commit()
        self.db.refresh(competitor)

        logger.info(
            "competitor_created",
            competitor_id=competitor.id,
            business_id=business_id,
            platform=platform.name,
        )
        return competitor

    def update(self, competitor_id: int, business_id: int, name: str, platform_business_id: str) -> Competitor:
        competitor = self._tracked(competitor_id, business_id)
        self._ensure_untracked(business_id, competitor.platform, platform_business_id, exclude_id=competitor.id)

        competitor.name = name
        competitor.platform_business_id = platform_business_id
        self.db.commit()
        self.db.refresh(competitor)
        return competitor

    async def refresh(self, competitor_id: int) -> Competitor:
        competitor = self.db.get(Competitor, competitor_id)
        if competitor is None:
            raise NotFoundError("Competitor")

        details = await self.get_details(competitor.platform_business_id)
        if details is not None:
            competitor.name = details.name or competitor.name
            competitor.total_reviews = details.total_reviews
            competitor.current_rating = details.rating if details.rating is not None else 0.0
            competitor.last_checked_at = utcnow()
            self.db.commit()
            self.db.refresh(competitor)
        return competitor

    async def sync(self, competitor_id: int, business_id: int) -> Competitor:
        """Refresh a tracked competitor from its platform.

        Raises:
            NotFoundError: If the competitor is not tracked by the business.
            BusinessRuleError: If its platform has no live lookup (only Google does).
        """
        competitor = self._tracked(competitor_id, business_id)
        if competitor.platform != ReviewPlatform.Google:
            raise BusinessRuleError(f"Live data is not available for {competitor.platform.name} competitors")
        return await self.refresh(competitor.id)

    def list_competitors(self, business_id: int) -> list[Competitor]:
        return list(
            self.db.scalars(
                select(Competitor)
                .where(Competitor.business_id == business_id)
                .order_by(Competitor.last_checked_at.desc())
            ).all()
        )

    def remove(self, competitor_id: int, business_id: int) -> bool:
        try:
            competitor = self._tracked(competitor_id, business_id)
        except NotFoundError:
            return False
        self.db.delete(competitor)
        self.db.commit()
        logger.info("competitor_removed", competitor_id=competitor_id, business_id=business_id)
        return True

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    def comparison(self, business: Business) -> RatingComparison:
        count, average = self.db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.business_id == business.id)
        ).one()
        business_average = round(float(average), 1) if count else 0.0

        competitors = self.db.scalars(
            select(Competitor).where(Competitor.business_id == business.id).order_by(Competitor.id)
        ).all()

        ratings = [business_average]
        ratings.extend(c.current_rating for c in competitors if c.current_rating is not None)
        industry_average = round(sum(ratings) / len(ratings), 1)

        return RatingComparison(
            business=BusinessRating(name=business.name, average_rating=business_average, total_reviews=count),
            competitors=[
                CompetitorRating(
                    name=c.name,
                    platform=c.platform.name,
                    current_rating=c.current_rating,
                    total_reviews=c.total_reviews or 0,
                )
                for c in competitors
            ],
            industry_average=industry_average,
            performance_vs_industry=round(business_average - industry_average, 1),
        )
