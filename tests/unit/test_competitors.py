"""Unit tests for Google Places competitor tracking."""

import httpx
import pytest

from reviewhub.core.exceptions import BusinessRuleError, ConfigurationError, NotFoundError
from reviewhub.db.enums import ReviewPlatform
from reviewhub.services.competitors import GooglePlacesCompetitorService

DETAILS = {
    "result": {
        "place_id": "place-1",
        "name": "Dockside Diner",
        "formatted_address": "1 Pier Rd",
        "rating": 4.4,
        "user_ratings_total": 321,
        "price_level": 2,
        "types": ["restaurant"],
        "photos": [{"photo_reference": f"ref{i}"} for i in range(7)],
        "opening_hours": {"weekday_text": ["Monday: 9:00 AM - 5:00 PM", "Tuesday: Closed"]},
        "reviews": [
            {
                "author_name": "Sam",
                "rating": 5,
                "text": "Great chowder",
                "time": 1700000000,
                "relative_time_description": "a month ago",
            }
        ],
    }
}

SEARCH = {
    "results": [
        {
            "place_id": "place-1",
            "name": "Dockside Diner",
            "formatted_address": "1 Pier Rd",
            "rating": 4.4,
            "user_ratings_total": 321,
            "opening_hours": {"open_now": True},
            "price_level": 3,
        },
        {"place_id": "place-2", "name": "Quay Grill"},
    ]
}


@pytest.fixture
def business(make_user, make_business):
    return make_business(make_user())


@pytest.fixture
def places(db_session):
    """Build a service whose HTTP calls are answered by ``handler``."""

    def factory(handler, api_key="places-key"):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return GooglePlacesCompetitorService(db_session, api_key=api_key, http_client=client)

    return factory


def places_handler(details=DETAILS, status_code=200, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if status_code != 200:
            return httpx.Response(status_code)
        if request.url.path.endswith("textsearch/json"):
            return httpx.Response(200, json=SEARCH)
        return httpx.Response(200, json=details)

    return handler


class TestLookups:
    @pytest.mark.asyncio
    async def test_search(self, places):
        calls = []

        results = await places(places_handler(calls=calls)).search("Diner", "Boston")

        assert [r.place_id for r in results] == ["place-1", "place-2"]
        assert results[0].is_open is True
        assert results[0].price_level == "$$$"
        assert results[1].rating is None
        assert calls[0].url.params["query"] == "Diner Boston"
        assert calls[0].url.params["key"] == "places-key"

    @pytest.mark.asyncio
    async def test_details(self, places):
        details = await places(places_handler()).get_details("place-1")

        assert details.name == "Dockside Diner"
        assert details.price_level == "$$"
        assert len(details.photos) == 5
        assert "photoreference=ref0" in details.photos[0]
        assert details.opening_hours == {"Monday": "9:00 AM - 5:00 PM", "Tuesday": "Closed"}

    @pytest.mark.asyncio
    async def test_reviews(self, places):
        (review,) = await places(places_handler()).get_reviews("place-1")

        assert review.author_name == "Sam"
        assert review.rating == 5
        assert review.time.year == 2023

    @pytest.mark.asyncio
    async def test_failures_degrade(self, places):
        service = places(places_handler(status_code=500))

        assert await service.search("Diner", "Boston") == []
        assert await service.get_details("place-1") is None
        assert await service.get_reviews("place-1") == []

    @pytest.mark.asyncio
    async def test_missing_key_raises(self, db_session):
        service = GooglePlacesCompetitorService(db_session)

        with pytest.raises(ConfigurationError):
            await service.search("Diner", "Boston")


class TestTracking:
    @pytest.mark.asyncio
    async def test_add_uses_place_details(self, places, business):
        competitor = await places(places_handler()).add(business.id, "place-1", "Typed name")

        assert competitor.name == "Dockside Diner"
        assert competitor.current_rating == 4.4
        assert competitor.total_reviews == 321
        assert competitor.is_active is True

    @pytest.mark.asyncio
    async def test_add_falls_back_when_details_fail(self, places, business):
        competitor = await places(places_handler(status_code=503)).add(business.id, "place-9", "Typed name")

        assert competitor.name == "Typed name"
        assert competitor.current_rating == 0.0
        assert competitor.total_reviews == 0

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, places, business):
        service = places(places_handler())
        await service.add(business.id, "place-1", "Dockside")

        with pytest.raises(BusinessRuleError):
            await service.add(business.id, "place-1", "Dockside")

    @pytest.mark.asyncio
    async def test_refresh_updates_rating(self, places, business):
        service = places(places_handler(status_code=503))
        competitor = await service.add(business.id, "place-1", "Dockside")

        refreshed = await places(places_handler()).refresh(competitor.id)

        assert refreshed.current_rating == 4.4
        assert refreshed.total_reviews == 321

    @pytest.mark.asyncio
    async def test_refresh_unknown(self, places):
        with pytest.raises(NotFoundError):
            await places(places_handler()).refresh(404)

    @pytest.mark.asyncio
    async def test_list_and_remove_scoped_to_business(self, places, business, make_user, make_business):
        service = places(places_handler())
        competitor = await service.add(business.id, "place-1", "Dockside")
        other = make_business(make_user(), name="Other")

        assert service.remove(competitor.id, other.id) is False
        assert [c.id for c in service.list_competitors(business.id)] == [competitor.id]
        assert service.remove(competitor.id, business.id) is True
        assert service.list_competitors(business.id) == []


class TestManualTracking:
    def test_create_leaves_rating_unknown(self, places, business):
        competitor = places(places_handler()).create(business.id, "Chowder Hut", ReviewPlatform.Yelp, "chowder-hut")

        assert competitor.platform == ReviewPlatform.Yelp
        assert competitor.current_rating is None
        assert competitor.total_reviews == 0
        assert competitor.last_checked_at is None

    def test_create_duplicate_rejected(self, places, business):
        service = places(places_handler())
        service.create(business.id, "Chowder Hut", ReviewPlatform.Yelp, "chowder-hut")

        with pytest.raises(BusinessRuleError):
            service.create(business.id, "Chowder Hut Again", ReviewPlatform.Yelp, "chowder-hut")

    def test_same_id_on_another_platform_is_allowed(self, places, business):
        service = places(places_handler())
        service.create(business.id, "Chowder Hut", ReviewPlatform.Yelp, "chowder-hut")

        assert service.create(business.id, "Chowder Hut", ReviewPlatform.Facebook, "chowder-hut").id

    def test_update(self, places, business):
        service = places(places_handler())
        competitor = service.create(business.id, "Chowder Hut", ReviewPlatform.Yelp, "chowder-hut")

        updated = service.update(competitor.id, business.id, "Chowder House", "chowder-house")

        assert (updated.name, updated.platform_business_id) == ("Chowder House", "chowder-house")

    def test_update_onto_tracked_id_rejected(self, places, business):
        service = places(places_handler())
        service.create(business.id, "Chowder Hut", ReviewPlatform.Yelp, "chowder-hut")
        second = service.create(business.id, "Quay Grill", ReviewPlatform.Yelp, "quay-grill")

        with pytest.raises(BusinessRuleError):
            service.update(second.id, business.id, "Quay Grill", "chowder-hut")

    def test_update_other_business_competitor(self, places, business, make_user, make_business):
        service = places(places_handler())
        competitor = service.create(business.id, "Chowder Hut", ReviewPlatform.Yelp, "chowder-hut")
        other = make_business(make_user(), name="Other")

        with pytest.raises(NotFoundError):
            service.update(competitor.id, other.id, "Mine now", "chowder-hut")

    @pytest.mark.asyncio
    async def test_sync_google_competitor(self, places, business):
        service = places(places_handler())
        competitor = service.create(business.id, "Dockside", ReviewPlatform.Google, "place-1")

        synced = await service.sync(competitor.id, business.id)

        assert synced.current_rating == 4.4
        assert synced.total_reviews == 321
        assert synced.last_checked_at is not None

    @pytest.mark.asyncio
    async def test_sync_without_live_lookup(self, places, business):
        calls = []
        service = places(places_handler(calls=calls))
        competitor = service.create(business.id, "Chowder Hut", ReviewPlatform.Yelp, "chowder-hut")

        with pytest.raises(BusinessRuleError):
            await service.sync(competitor.id, business.id)
        assert calls == []


class TestComparison:
    def test_industry_average_includes_business_and_known_ratings(
        self, places, business, make_review, db_session
    ):
        for rating in (5, 4, 4):
            make_review(business, rating=rating)
        service = places(places_handler())
        higher = service.create(business.id, "Dockside", ReviewPlatform.Google, "place-1")
        lower = service.create(business.id, "Quay Grill", ReviewPlatform.Yelp, "quay-grill")
        service.create(business.id, "Unrated", ReviewPlatform.Facebook, "unrated")
        higher.current_rating, lower.current_rating = 4.6, 3.8
        db_session.commit()

        result = service.comparison(business)

        assert result.business.average_rating == 4.3
        assert result.business.total_reviews == 3
        # (4.3 + 4.6 + 3.8) / 3
        assert result.industry_average == 4.2
        assert result.performance_vs_industry == 0.1
        assert [(c.name, c.platform, c.current_rating) for c in result.competitors] == [
            ("Dockside", "Google", 4.6),
            ("Quay Grill", "Yelp", 3.8),
            ("Unrated", "Facebook", None),
        ]

    def test_no_reviews_counts_as_zero(self, places, business, db_session):
        service = places(places_handler())
        rival = service.create(business.id, "Dockside", ReviewPlatform.Google, "place-1")
        rival.current_rating = 4.0
        db_session.commit()

        result = service.comparison(business)

        assert result.business.average_rating == 0.0
        assert result.industry_average == 2.0
        assert result.performance_vs_industry == -2.0

    def test_no_competitors(self, places, business, make_review):
        make_review(business, rating=3)

        result = places(places_handler()).comparison(business)

        assert result.competitors == []
        assert result.industry_average == 3.0
        assert result.performance_vs_industry == 0.0
