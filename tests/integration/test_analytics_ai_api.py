"""API tests for analytics and the AI assistant endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from reviewhub.api.dependencies import get_ai
from reviewhub.core.exceptions import AIServiceError
from reviewhub.db.enums import ReviewPlatform


@pytest.fixture
def ai(app):
    """AIService double injected through the get_ai dependency."""
    service = MagicMock()
    service.generate_review_response = AsyncMock(return_value="Thank you for the kind words!")
    service.improve_review_response = AsyncMock(return_value="Polished reply.")
    service.generate_social_media_post = AsyncMock(return_value="Our guests love us! #harborcafe")
    service.generate_analytics_insights = AsyncMock(return_value="Ratings are climbing.")
    service.generate_competitor_insights = AsyncMock(return_value="You lead the harbor.")
    service.generate_review_summary = AsyncMock(return_value="Guests praise the coffee.")
    service.generate_actionable_recommendations = AsyncMock(return_value=["Reply faster"])
    app.dependency_overrides[get_ai] = lambda: service
    return service


# =============================================================================
# Analytics
# =============================================================================


class TestAnalytics:
    def test_overview(self, client, headers, business, make_review):
        make_review(business, rating=5, response_text="Thanks!")
        make_review(business, rating=1)

        response = client.get(f"/api/v1/analytics/overview/{business.id}", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["totalReviews"] == 2
        assert body["averageRating"] == 3.0
        assert body["responseRate"] == 50.0

    @pytest.mark.parametrize(
        "endpoint",
        [
            "overview",
            "rating-trend",
            "platform-breakdown",
            "sentiment-analysis",
            "top-keywords",
            "response-time",
            "dashboard-summary",
        ],
    )
    def test_every_report_is_scoped_to_owned_business(
        self, client, headers, make_business, outsider, business, endpoint
    ):
        theirs = make_business(outsider)

        assert client.get(f"/api/v1/analytics/{endpoint}/{business.id}", headers=headers).status_code == 200
        assert client.get(f"/api/v1/analytics/{endpoint}/{theirs.id}", headers=headers).status_code == 404

    def test_platform_breakdown(self, client, headers, business, make_review):
        make_review(business, rating=5, platform=ReviewPlatform.Yelp)
        make_review(business, rating=4, platform=ReviewPlatform.Google)
        make_review(business, rating=2, platform=ReviewPlatform.Google)

        rows = client.get(f"/api/v1/analytics/platform-breakdown/{business.id}", headers=headers).json()

        assert [r["platform"] for r in rows] == ["Google", "Yelp"]

    def test_dashboard_uses_callers_plan(self, client, auth_headers, make_user, make_business):
        user = make_user(plan="Pro")
        business = make_business(user)

        summary = client.get(f"/api/v1/analytics/dashboard-summary/{business.id}", headers=auth_headers(user)).json()

        assert summary["subscriptionPlan"] == "Pro"
        assert summary["smsUsage"]["limit"] == 500

    def test_location_scope_requires_access(
        self, client, auth_headers, make_organization, make_user, make_business, make_location, grant, make_review
    ):
        org = make_organization()
        user = make_user(organization=org)
        business = make_business(user)
        mine = make_location(org, "Mine")
        hidden = make_location(org, "Hidden")
        grant(user, org, location=mine)
        make_review(business, rating=5, location=mine)
        make_review(business, rating=1, location=hidden)

        scoped = client.get(
            f"/api/v1/analytics/overview/{business.id}", params={"locationId": mine.id}, headers=auth_headers(user)
        )
        refused = client.get(
            f"/api/v1/analytics/overview/{business.id}", params={"locationId": hidden.id}, headers=auth_headers(user)
        )

        assert scoped.json()["totalReviews"] == 1
        assert refused.status_code == 403


# =============================================================================
# AI
# =============================================================================


class TestAISettings:
    def test_defaults_created_on_first_read(self, client, headers):
        response = client.get("/api/v1/ai/settings", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["enableAutoReply"] is False
        assert body["autoReplyToNegative"] is False

    def test_negative_auto_reply_cannot_be_enabled(self, client, headers):
        response = client.put(
            "/api/v1/ai/settings",
            json={"enableAutoReply": True, "autoReplyToNegative": True, "responseTone": "Friendly"},
            headers=headers,
        )

        body = response.json()
        assert body["enableAutoReply"] is True
        assert body["responseTone"] == "Friendly"
        assert body["autoReplyToNegative"] is False

    def test_unknown_tone_is_rejected(self, client, headers):
        response = client.put("/api/v1/ai/settings", json={"responseTone": "Sarcastic"}, headers=headers)

        assert response.status_code == 422


class TestReplies:
    def test_generate_response_uses_settings_and_stores_draft(
        self, client, headers, db_session, business, make_review, ai
    ):
        review = make_review(business, rating=5)
        client.put("/api/v1/ai/settings", json={"responseTone": "Casual", "responseLength": "Long"}, headers=headers)

        response = client.post(f"/api/v1/ai/generate-response/{review.id}", headers=headers)

        assert response.json() == {"reviewId": review.id, "response": "Thank you for the kind words!"}
        kwargs = ai.generate_review_response.await_args.kwargs
        assert (kwargs["business_name"], kwargs["tone"], kwargs["length"]) == ("Harbor Cafe", "Casual", "Long")
        db_session.refresh(review)
        assert review.ai_suggested_response == "Thank you for the kind words!"

    def test_provider_failure(self, client, headers, business, make_review, ai):
        review = make_review(business)
        ai.generate_review_response.side_effect = AIServiceError("provider down")

        response = client.post(f"/api/v1/ai/generate-response/{review.id}", headers=headers)

        assert response.status_code == 502

    def test_ai_not_configured(self, client, headers, business, make_review):
        review = make_review(business)

        response = client.post(f"/api/v1/ai/generate-response/{review.id}", headers=headers)

        assert response.status_code == 503

    def test_improve_response(self, client, headers, business, make_review, ai):
        review = make_review(business, response_text="thx")

        response = client.post(
            f"/api/v1/ai/improve-response/{review.id}", json={"instructions": "Warmer"}, headers=headers
        )

        assert response.json()["response"] == "Polished reply."
        ai.improve_review_response.assert_awaited_once_with("thx", "Warmer")

    def test_improve_without_text(self, client, headers, business, make_review, ai):
        review = make_review(business)

        response = client.post(f"/api/v1/ai/improve-response/{review.id}", json={}, headers=headers)

        assert response.status_code == 400

    def test_social_post(self, client, headers, business, make_review, ai):
        review = make_review(business)

        response = client.post(
            f"/api/v1/ai/generate-social-post/{review.id}", params={"platform": "Instagram"}, headers=headers
        )

        assert response.json()["platform"] == "Instagram"
        assert response.json()["post"] == "Our guests love us! #harborcafe"


class TestInsights:
    def test_review_summary_window(self, client, headers, business, make_review, ai):
        make_review(business, days_ago=2)
        make_review(business, days_ago=60)

        response = client.get(
            f"/api/v1/ai/insights/review-summary/{business.id}", params={"days": 30}, headers=headers
        )

        assert response.json()["reviewCount"] == 1
        assert response.json()["summary"] == "Guests praise the coffee."

    def test_analytics_insights(self, client, headers, business, ai):
        response = client.get(f"/api/v1/ai/insights/analytics/{business.id}", headers=headers)

        assert response.json()["insights"] == "Ratings are climbing."
        stats = ai.generate_analytics_insights.await_args.args[0]
        assert set(stats) == {"overview", "platforms", "ratingTrend"}

    def test_competitor_insights(self, client, headers, business, make_review, ai):
        make_review(business, rating=4)

        response = client.get(f"/api/v1/ai/insights/competitors/{business.id}", headers=headers)

        assert response.json()["insights"] == "You lead the harbor."
        assert ai.generate_competitor_insights.await_args.args[:3] == ("Harbor Cafe", 4.0, 1)

    def test_recommendations(self, client, headers, business, ai):
        response = client.get(f"/api/v1/ai/insights/recommendations/{business.id}", headers=headers)

        assert response.json() == {"businessId": business.id, "recommendations": ["Reply faster"]}
