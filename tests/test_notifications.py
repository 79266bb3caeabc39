"""In-app notifications: inbox, read state, announcements and delivery records."""

import pytest
from helpers import API

from tourhub.models_notification import Notification


def announce(client, admin, **overrides):
    payload = {"title": "Festival week", "message": "Expect crowds in the old town this weekend.", **overrides}
    return client.post(f"{API}/notifications/announcements", json=payload, headers=admin["headers"])


def inbox(client, actor, **params):
    return client.get(f"{API}/notifications", params=params, headers=actor["headers"]).json()["data"]


@pytest.fixture
def notification(client, admin, traveler):
    announce(client, admin, recipientIds=[traveler["user"]["id"]], priority="high")
    return inbox(client, traveler)["notifications"][0]


class TestInbox:
    def test_list_and_unread_count(self, client, traveler, notification):
        data = inbox(client, traveler)
        assert data["unreadCount"] == 1
        assert data["pagination"]["totalNotifications"] == 1
        assert notification["type"] == "system_announcement"
        assert notification["category"] == "system"
        assert notification["priority"] == "high"
        assert notification["isRead"] is False
        assert notification["deliverySummary"] == {"total": 0, "delivered": 0, "failed": 0, "pending": 0}

    def test_type_filter(self, client, traveler, notification):
        assert inbox(client, traveler, type="booking_confirmed")["notifications"] == []

    def test_mark_read(self, client, traveler, notification):
        response = client.put(f"{API}/notifications/{notification['id']}/read", headers=traveler["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["isRead"] is True
        assert response.json()["data"]["readAt"] is not None

        data = inbox(client, traveler, unreadOnly="true")
        assert data["notifications"] == []
        assert data["unreadCount"] == 0

    def test_mark_all_read(self, client, admin, traveler):
        for _ in range(2):
            announce(client, admin, recipientIds=[traveler["user"]["id"]])
        response = client.put(f"{API}/notifications/read-all", headers=traveler["headers"])
        assert response.json()["data"] == {"updated": 2}
        assert inbox(client, traveler)["unreadCount"] == 0

    def test_other_users_cannot_read(self, client, other_traveler, notification):
        url = f"{API}/notifications/{notification['id']}"
        assert client.get(url, headers=other_traveler["headers"]).status_code == 403
        assert client.put(f"{url}/read", headers=other_traveler["headers"]).status_code == 403

    def test_admin_may_inspect_but_not_mark_read(self, client, admin, notification):
        url = f"{API}/notifications/{notification['id']}"
        assert client.get(url, headers=admin["headers"]).status_code == 200
        assert client.put(f"{url}/read", headers=admin["headers"]).status_code == 403

    def test_missing_notification(self, client, traveler):
        assert client.get(f"{API}/notifications/9999", headers=traveler["headers"]).status_code == 404


class TestAnnouncements:
    def test_reaches_every_active_user(self, client, db, admin, traveler, other_traveler):
        response = announce(client, admin, data={"$where": "1", "event.name": "fiesta"})
        assert response.status_code == 201
        assert response.json()["data"] == {"recipients": 3}

        stored = db.query(Notification).filter(Notification.recipient_id == traveler["user"]["id"]).one()
        assert stored.sender_id == admin["user"]["id"]
        assert stored.data == {"_where": "1", "event_name": "fiesta"}

    def test_admin_only(self, client, traveler):
        assert announce(client, traveler).status_code == 403

    def test_markup_is_stripped(self, client, admin, traveler):
        announce(client, admin, title="<i>Festival</i> week", recipientIds=[traveler["user"]["id"]])
        assert inbox(client, traveler)["notifications"][0]["title"] == "Festival week"


class TestDelivery:
    def test_record_each_channel_once(self, client, admin, notification):
        url = f"{API}/notifications/{notification['id']}/delivery"

        response = client.post(url, json={"channel": "email", "status": "delivered"}, headers=admin["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["channels"]["email"]["deliveryStatus"] == "delivered"
        assert data["deliverySummary"]["delivered"] == 1

        failed = client.post(
            url,
            json={"channel": "sms", "status": "failed", "errorMessage": "Carrier rejected"},
            headers=admin["headers"],
        ).json()["data"]
        assert failed["deliverySummary"] == {"total": 2, "delivered": 1, "failed": 1, "pending": 0}

        again = client.post(url, json={"channel": "email", "status": "delivered"}, headers=admin["headers"])
        assert again.status_code == 400

    def test_unknown_channel(self, client, admin, notification):
        response = client.post(
            f"{API}/notifications/{notification['id']}/delivery",
            json={"channel": "pigeon", "status": "delivered"},
            headers=admin["headers"],
        )
        assert response.status_code == 400

    def test_recipients_cannot_record_delivery(self, client, traveler, notification):
        response = client.post(
            f"{API}/notifications/{notification['id']}/delivery",
            json={"channel": "push", "status": "delivered"},
            headers=traveler["headers"],
        )
        assert response.status_code == 403
