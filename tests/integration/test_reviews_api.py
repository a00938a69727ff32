"""API tests for the review inbox."""

import pytest

from reviewhub.db.enums import ReviewPlatform


@pytest.fixture
def inbox(business, make_review):
    """Three reviews of the owner's business, newest first."""
    return [
        make_review(business, rating=5, platform=ReviewPlatform.Google, days_ago=1),
        make_review(business, rating=1, platform=ReviewPlatform.Yelp, days_ago=2, is_flagged=True),
        make_review(business, rating=3, platform=ReviewPlatform.Facebook, days_ago=3, is_read=True),
    ]


class TestListReviews:
    def test_newest_first_with_paging(self, client, headers, inbox):
        response = client.get("/api/v1/reviews", params={"pageSize": 2}, headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["totalCount"] == 3
        assert body["totalPages"] == 2
        assert [r["id"] for r in body["reviews"]] == [inbox[0].id, inbox[1].id]
        assert body["reviews"][0]["platform"] == "Google"

    @pytest.mark.parametrize(
        "params, expected_index",
        [
            ({"platform": "Yelp"}, 1),
            ({"rating": 3}, 2),
            ({"sentiment": "Negative"}, 1),
            ({"isFlagged": "true"}, 1),
            ({"isRead": "true"}, 2),
        ],
    )
    def test_filters(self, client, headers, inbox, params, expected_index):
        response = client.get("/api/v1/reviews", params=params, headers=headers)

        assert [r["id"] for r in response.json()["reviews"]] == [inbox[expected_index].id]

    def test_unknown_platform_filter_is_ignored(self, client, headers, inbox):
        response = client.get("/api/v1/reviews", params={"platform": "Myspace"}, headers=headers)

        assert response.json()["totalCount"] == 3

    def test_only_own_reviews(self, client, headers, inbox, make_business, make_review, outsider):
        make_review(make_business(outsider, name="Rival"), rating=5)

        response = client.get("/api/v1/reviews", headers=headers)

        assert response.json()["totalCount"] == 3

    def test_location_filter(self, client, headers, business, make_review, make_organization, make_location):
        location = make_location(make_organization())
        at_location = make_review(business, location=location)
        make_review(business)

        response = client.get("/api/v1/reviews", params={"locationId": location.id}, headers=headers)

        assert [r["id"] for r in response.json()["reviews"]] == [at_location.id]


class TestReviewActions:
    def test_detail_of_foreign_review(self, client, headers, make_business, make_review, outsider):
        theirs = make_review(make_business(outsider))

        response = client.get(f"/api/v1/reviews/{theirs.id}", headers=headers)

        assert response.status_code == 404

    def test_reply(self, client, headers, owner, inbox):
        response = client.post(
            f"/api/v1/reviews/{inbox[1].id}/reply",
            json={"responseText": "We're sorry to hear that."},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["responseText"] == "We're sorry to hear that."
        assert body["responseDate"] is not None
        assert body["isAutoReplied"] is False

    def test_reply_requires_text(self, client, headers, inbox):
        response = client.post(f"/api/v1/reviews/{inbox[0].id}/reply", json={"responseText": ""}, headers=headers)

        assert response.status_code == 422

    def test_mark_read_and_flag(self, client, headers, inbox):
        read = client.patch(f"/api/v1/reviews/{inbox[0].id}/read", json={"isRead": True}, headers=headers)
        flagged = client.patch(f"/api/v1/reviews/{inbox[0].id}/flag", json={"isFlagged": True}, headers=headers)
        unflagged = client.patch(f"/api/v1/reviews/{inbox[1].id}/flag", json={"isFlagged": False}, headers=headers)

        assert read.json()["isRead"] is True
        assert flagged.json()["isFlagged"] is True
        assert unflagged.json()["isFlagged"] is False
