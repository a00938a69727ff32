"""API tests for platform connections, OAuth callbacks and manual syncs."""

from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from reviewhub.api.routes import integrations as integrations_routes
from reviewhub.config.settings import get_settings
from reviewhub.core.exceptions import PlatformUnavailableError
from reviewhub.db.enums import ReviewPlatform
from reviewhub.services import review_sync


def _redirect_params(response) -> dict[str, str]:
    location = response.headers["location"]
    assert location.startswith("http://frontend.test/integrations?")
    return {k: v[0] for k, v in parse_qs(urlparse(location).query).items()}


@pytest.fixture
def google_oauth(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "google-client")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "google-secret")
    get_settings.cache_clear()


@pytest.fixture
def sync_adapter(monkeypatch):
    """Adapter double used by the review sync service."""
    fake = MagicMock()
    fake.fetch_reviews = AsyncMock(return_value=[])
    fake.aclose = AsyncMock()
    monkeypatch.setattr(review_sync, "get_platform_adapter", lambda platform, db, http_client=None: fake)
    return fake


class TestCatalogue:
    def test_platforms(self, client):
        response = client.get("/api/v1/integrations/platforms")

        assert response.status_code == 200
        platforms = response.json()
        assert len(platforms) == 10
        google = next(p for p in platforms if p["name"] == "Google")
        assert google["supportsOAuth"] is True
        assert google["isComingSoon"] is False
        assert all(p["isComingSoon"] for p in platforms if not p["supportsOAuth"])

    def test_business_connections(self, client, headers, business, make_connection):
        make_connection(business)
        make_connection(business, platform=ReviewPlatform.Yelp, is_active=False)

        response = client.get(f"/api/v1/integrations/business/{business.id}", headers=headers)

        assert [c["platform"] for c in response.json()] == ["Google"]
        assert response.json()[0]["platformBusinessId"] == "accounts/1/locations/1"


class TestConnect:
    def test_returns_consent_url(self, client, headers, owner, business, google_oauth):
        response = client.post(
            "/api/v1/integrations/connect/google", json={"businessId": business.id}, headers=headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["platform"] == "Google"
        query = parse_qs(urlparse(body["authUrl"]).query)
        assert query["client_id"] == ["google-client"]
        assert query["state"][0].startswith(f"{owner.id}:{business.id}:")

    def test_unknown_platform(self, client, headers, business):
        response = client.post(
            "/api/v1/integrations/connect/myspace", json={"businessId": business.id}, headers=headers
        )

        assert response.status_code == 400

    def test_platform_without_integration(self, client, headers, business):
        response = client.post(
            "/api/v1/integrations/connect/tripadvisor", json={"businessId": business.id}, headers=headers
        )

        assert response.status_code == 400

    def test_missing_credentials(self, client, headers, business):
        response = client.post(
            "/api/v1/integrations/connect/google", json={"businessId": business.id}, headers=headers
        )

        assert response.status_code == 503

    def test_foreign_business(self, client, headers, make_business, outsider, google_oauth):
        theirs = make_business(outsider)

        response = client.post(
            "/api/v1/integrations/connect/google", json={"businessId": theirs.id}, headers=headers
        )

        assert response.status_code == 404


class TestCallback:
    """The provider redirect always lands back on the web client."""

    def test_provider_error(self, client):
        response = client.get(
            "/api/v1/integrations/google/callback", params={"error": "access_denied"}, follow_redirects=False
        )

        assert response.status_code == 302
        assert _redirect_params(response) == {"error": "true", "message": "access_denied"}

    def test_missing_code(self, client):
        response = client.get(
            "/api/v1/integrations/google/callback", params={"state": "1:2:x"}, follow_redirects=False
        )

        assert _redirect_params(response) == {"error": "true", "message": "Missing code or state"}

    def test_malformed_state(self, client):
        response = client.get(
            "/api/v1/integrations/google/callback",
            params={"code": "abc", "state": "garbage"},
            follow_redirects=False,
        )

        params = _redirect_params(response)
        assert params["error"] == "true"
        assert params["message"] == "Invalid state parameter"

    def test_success(self, client, monkeypatch):
        adapter = MagicMock()
        adapter.exchange_code_for_token = AsyncMock(return_value="Google Business Profile connected successfully")
        adapter.aclose = AsyncMock()
        monkeypatch.setattr(integrations_routes, "get_platform_adapter", lambda platform, db: adapter)

        response = client.get(
            "/api/v1/integrations/google/callback",
            params={"code": "abc", "state": "1:2:nonce"},
            follow_redirects=False,
        )

        assert _redirect_params(response) == {
            "success": "true",
            "platform": "Google",
            "message": "Google Business Profile connected successfully",
        }
        adapter.exchange_code_for_token.assert_awaited_once_with("abc", "1:2:nonce")
        adapter.aclose.assert_awaited_once()


class TestConnectionActions:
    def test_disconnect(self, client, headers, db_session, business, make_connection):
        connection = make_connection(business)

        response = client.delete(f"/api/v1/integrations/{connection.id}", headers=headers)

        assert response.status_code == 200
        db_session.refresh(connection)
        assert connection.is_active is False

    def test_disconnect_foreign_connection(self, client, headers, make_business, make_connection, outsider):
        connection = make_connection(make_business(outsider))

        response = client.delete(f"/api/v1/integrations/{connection.id}", headers=headers)

        assert response.status_code == 404

    def test_sync_imports_and_notifies(
        self, client, headers, owner, business, make_connection, make_review, sync_adapter
    ):
        connection = make_connection(business)
        sync_adapter.fetch_reviews.return_value = [make_review(business, rating=5), make_review(business, rating=1)]

        response = client.post(f"/api/v1/integrations/{connection.id}/sync", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Synced 2 new reviews", "newReviews": 2}
        assert client.get("/api/v1/notifications/unread-count", headers=headers).json()["count"] == 2

    def test_sync_inactive_connection(self, client, headers, business, make_connection, sync_adapter):
        connection = make_connection(business, is_active=False)

        response = client.post(f"/api/v1/integrations/{connection.id}/sync", headers=headers)

        assert response.status_code == 400
        sync_adapter.fetch_reviews.assert_not_awaited()

    def test_sync_platform_failure(self, client, headers, business, make_connection, sync_adapter):
        connection = make_connection(business)
        sync_adapter.fetch_reviews.side_effect = PlatformUnavailableError("Google", "HTTP 503")

        response = client.post(f"/api/v1/integrations/{connection.id}/sync", headers=headers)

        assert response.status_code == 502
