"""Unit tests for review import and Yelp polling."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from reviewhub.core.exceptions import NotFoundError, PlatformUnavailableError
from reviewhub.db.enums import ReviewPlatform
from reviewhub.services import review_sync
from reviewhub.services.review_sync import ReviewSyncService, YelpPollingService


@pytest.fixture
def business(make_user, make_business):
    return make_business(make_user())


@pytest.fixture
def notifications():
    service = MagicMock()
    service.send_review_notification = AsyncMock(return_value=None)
    return service


@pytest.fixture
def adapter(monkeypatch):
    """Adapter double returned by the registry for every platform."""
    fake = MagicMock()
    fake.fetch_reviews = AsyncMock(return_value=[])
    fake.aclose = AsyncMock()
    requested = []

    def get_adapter(platform, db, http_client=None):
        requested.append(platform)
        return fake

    monkeypatch.setattr(review_sync, "get_platform_adapter", get_adapter)
    fake.requested = requested
    return fake


class TestSyncConnection:
    @pytest.mark.asyncio
    async def test_notifies_per_new_review(
        self, db_session, business, make_connection, make_review, notifications, adapter
    ):
        connection = make_connection(business, platform=ReviewPlatform.Yelp, platform_business_id="harbor-cafe")
        imported = [make_review(business, rating=5), make_review(business, rating=2)]
        adapter.fetch_reviews.return_value = imported

        service = ReviewSyncService(db_session, notification_service=notifications)
        result = await service.sync_connection(connection.id)

        assert result == imported
        assert adapter.requested == [ReviewPlatform.Yelp]
        adapter.fetch_reviews.assert_awaited_once_with(connection.id)
        adapter.aclose.assert_awaited_once()
        assert notifications.send_review_notification.await_count == 2
        assert notifications.send_review_notification.await_args_list[0].args[:2] == (business.id, "Yelp")

    @pytest.mark.asyncio
    async def test_unknown_connection(self, db_session, notifications, adapter):
        with pytest.raises(NotFoundError):
            await ReviewSyncService(db_session, notification_service=notifications).sync_connection(999)

    @pytest.mark.asyncio
    async def test_adapter_closed_on_failure(self, db_session, business, make_connection, notifications, adapter):
        connection = make_connection(business)
        adapter.fetch_reviews.side_effect = PlatformUnavailableError("Google", "HTTP 503")

        with pytest.raises(PlatformUnavailableError):
            await ReviewSyncService(db_session, notification_service=notifications).sync_connection(connection.id)

        adapter.aclose.assert_awaited_once()
        notifications.send_review_notification.assert_not_awaited()

    def test_find_connection_matches_active_only(self, db_session, business, make_connection):
        active = make_connection(business, platform_business_id="accounts/1/locations/9")
        make_connection(business, platform_business_id="accounts/1/locations/8", is_active=False)
        service = ReviewSyncService(db_session, notification_service=MagicMock())

        assert service.find_connection(ReviewPlatform.Google, "accounts/1/locations/9").id == active.id
        assert service.find_connection(ReviewPlatform.Google, "accounts/1/locations/8") is None
        assert service.find_connection(ReviewPlatform.Yelp, "accounts/1/locations/9") is None


class TestYelpPolling:
    @pytest.mark.asyncio
    async def test_polls_active_auto_sync_yelp_connections(self, db_session, business, make_connection):
        polled = make_connection(business, platform=ReviewPlatform.Yelp, platform_business_id="a")
        make_connection(business, platform=ReviewPlatform.Yelp, platform_business_id="b", auto_sync=False)
        make_connection(business, platform=ReviewPlatform.Yelp, platform_business_id="c", is_active=False)
        make_connection(business, platform=ReviewPlatform.Google)
        sync = MagicMock()
        sync.sync_connection = AsyncMock(return_value=[object(), object()])

        imported = await YelpPollingService(db_session, sync_service=sync).poll_once()

        assert imported == 2
        sync.sync_connection.assert_awaited_once_with(polled.id)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_polling(self, db_session, business, make_connection):
        make_connection(business, platform=ReviewPlatform.Yelp, platform_business_id="a")
        make_connection(business, platform=ReviewPlatform.Yelp, platform_business_id="b")
        sync = MagicMock()
        sync.sync_connection = AsyncMock(side_effect=[PlatformUnavailableError("Yelp", "down"), [object()]])

        assert await YelpPollingService(db_session, sync_service=sync).poll_once() == 1
        assert sync.sync_connection.await_count == 2
