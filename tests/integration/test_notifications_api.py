"""API tests for the notification inbox and delivery preferences."""

import pytest

from reviewhub.db.enums import NotificationType
from reviewhub.services.notifications import NotificationService


@pytest.fixture
def notify(db_session):
    service = NotificationService(db_session)

    def factory(user, title="New Google Review", type=NotificationType.NEW_REVIEW):
        return service.create_notification(user.id, type, title, "Jamie left a 5-star review", {"reviewId": 1})

    return factory


class TestInbox:
    def test_list_with_unread_count(self, client, headers, owner, outsider, notify):
        first = notify(owner, "First")
        second = notify(owner, "Second", type=NotificationType.LOW_RATING_ALERT)
        notify(outsider, "Not mine")
        client.put(f"/api/v1/notifications/{first.id}/read", headers=headers)

        response = client.get("/api/v1/notifications", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["totalCount"] == 2
        assert body["unreadCount"] == 1
        titles = {n["title"]: n for n in body["notifications"]}
        assert titles["Second"]["type"] == "LowRatingAlert"
        assert titles["Second"]["data"] == {"reviewId": 1}
        assert titles["First"]["isRead"] is True
        assert titles["First"]["readAt"] is not None
        assert second.id in {n["id"] for n in body["notifications"]}

    def test_unread_only(self, client, headers, owner, notify):
        read = notify(owner, "Read")
        notify(owner, "Unread")
        client.put(f"/api/v1/notifications/{read.id}/read", headers=headers)

        response = client.get("/api/v1/notifications", params={"unreadOnly": "true"}, headers=headers)

        assert [n["title"] for n in response.json()["notifications"]] == ["Unread"]

    def test_mark_all_read(self, client, headers, owner, notify):
        notify(owner)
        notify(owner)

        response = client.put("/api/v1/notifications/mark-all-read", headers=headers)

        assert response.json()["message"] == "Marked 2 notifications as read"
        assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"count": 0}

    def test_delete(self, client, headers, owner, notify):
        notification = notify(owner)

        response = client.delete(f"/api/v1/notifications/{notification.id}", headers=headers)

        assert response.json()["message"] == "Notification deleted"
        assert client.get("/api/v1/notifications", headers=headers).json()["totalCount"] == 0

    @pytest.mark.parametrize("method, suffix", [("put", "/read"), ("delete", "")])
    def test_other_users_notification(self, client, headers, outsider, notify, method, suffix):
        theirs = notify(outsider)

        response = getattr(client, method)(f"/api/v1/notifications/{theirs.id}{suffix}", headers=headers)

        assert response.status_code == 404


class TestPreferences:
    def test_defaults_created_on_first_read(self, client, headers):
        response = client.get("/api/v1/notifications/preferences", headers=headers)

        assert response.json() == {
            "emailEnabled": True,
            "pushEnabled": False,
            "smsEnabled": False,
            "notifyOnNewReview": True,
            "notifyOnReviewReply": True,
            "notifyOnLowRating": True,
        }

    def test_partial_update(self, client, headers):
        response = client.put(
            "/api/v1/notifications/preferences",
            json={"emailEnabled": False, "notifyOnLowRating": False},
            headers=headers,
        )

        body = response.json()
        assert body["emailEnabled"] is False
        assert body["notifyOnLowRating"] is False
        assert body["notifyOnNewReview"] is True
