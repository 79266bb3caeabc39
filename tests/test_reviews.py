"""Verified reviews, rating aggregates, votes, reports and moderation."""

import pytest
from helpers import API, register

from tourhub.models import AuditLog
from tourhub.models_notification import Notification

RATING = {"value": 4, "service": 5, "cleanliness": 3, "location": 5, "communication": 4}


def complete(client, owner, booking):
    for status in ("confirmed", "completed"):
        response = client.put(
            f"{API}/bookings/{booking['id']}/status", json={"status": status}, headers=owner["headers"]
        )
        assert response.status_code == 200, response.text


def review_payload(booking, **overrides):
    payload = {"bookingId": booking["id"], "rating": RATING, "comment": "Great sunset and a friendly crew."}
    payload.update(overrides)
    return payload


@pytest.fixture
def completed_booking(client, owner, booking):
    complete(client, owner, booking)
    return booking


@pytest.fixture
def review(client, traveler, completed_booking):
    response = client.post(f"{API}/reviews", json=review_payload(completed_booking), headers=traveler["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateReview:
    def test_overall_and_aggregates(self, client, review, plan, business):
        assert review["rating"]["overall"] == 4.2
        assert review["isVerified"] is True
        assert review["moderationStatus"] == "approved"

        stored_plan = client.get(f"{API}/plans/{plan['id']}").json()["data"]
        assert stored_plan["rating"] == {"average": 4.2, "count": 1}
        stored_business = client.get(f"{API}/business/{business['id']}").json()["data"]
        assert stored_business["rating"] == {"average": 4.2, "count": 1}

    def test_client_overall_is_ignored(self, client, traveler, completed_booking):
        rating = {**RATING, "overall": 5}
        response = client.post(
            f"{API}/reviews", json=review_payload(completed_booking, rating=rating), headers=traveler["headers"]
        )
        assert response.json()["data"]["rating"]["overall"] == 4.2

    def test_business_is_notified(self, client, db, owner, review):
        notification = db.query(Notification).filter(Notification.type == "review_received").one()
        assert notification.recipient_id == owner["user"]["id"]
        assert db.query(AuditLog).filter(AuditLog.action == "review_create").count() == 1

    def test_one_review_per_booking(self, client, traveler, other_traveler, review, completed_booking):
        for actor in (traveler, other_traveler):
            response = client.post(
                f"{API}/reviews", json=review_payload(completed_booking), headers=actor["headers"]
            )
            assert response.status_code == 409

    def test_booking_must_be_completed(self, client, traveler, booking):
        response = client.post(f"{API}/reviews", json=review_payload(booking), headers=traveler["headers"])
        assert response.status_code == 400

    def test_only_the_customer_may_review(self, client, other_traveler, completed_booking):
        response = client.post(
            f"{API}/reviews", json=review_payload(completed_booking), headers=other_traveler["headers"]
        )
        assert response.status_code == 403

    def test_unknown_booking(self, client, traveler):
        response = client.post(f"{API}/reviews", json=review_payload({"id": 9999}), headers=traveler["headers"])
        assert response.status_code == 404

    def test_rating_out_of_range(self, client, traveler, completed_booking):
        rating = {**RATING, "service": 6}
        response = client.post(
            f"{API}/reviews", json=review_payload(completed_booking, rating=rating), headers=traveler["headers"]
        )
        assert response.status_code == 400

    def test_anonymous_review_hides_author(self, client, traveler, completed_booking):
        response = client.post(
            f"{API}/reviews",
            json=review_payload(completed_booking, isAnonymous=True),
            headers=traveler["headers"],
        )
        data = response.json()["data"]
        assert data["isAnonymous"] is True
        assert data["user"] is None

    def test_author_is_shown_otherwise(self, review, traveler):
        assert review["user"]["name"] == "Ana Viajera"
        assert "reportedBy" not in review


class TestListing:
    def test_plan_reviews(self, client, plan, review):
        response = client.get(f"{API}/reviews/plan/{plan['id']}")
        data = response.json()["data"]
        assert [r["id"] for r in data["reviews"]] == [review["id"]]
        assert data["pagination"]["totalReviews"] == 1

        filtered = client.get(f"{API}/reviews/plan/{plan['id']}", params={"minRating": 4.5}).json()["data"]
        assert filtered["reviews"] == []


class TestEditing:
    def test_author_edits_and_aggregates_follow(self, client, traveler, plan, review):
        response = client.put(
            f"{API}/reviews/{review['id']}",
            json={"rating": {"value": 5, "service": 5, "cleanliness": 5, "location": 5, "communication": 5}},
            headers=traveler["headers"],
        )
        assert response.status_code == 200
        assert response.json()["data"]["rating"]["overall"] == 5
        assert client.get(f"{API}/plans/{plan['id']}").json()["data"]["rating"]["average"] == 5

    def test_others_cannot_edit(self, client, other_traveler, review):
        response = client.put(
            f"{API}/reviews/{review['id']}",
            json={"comment": "Rewritten by someone else"},
            headers=other_traveler["headers"],
        )
        assert response.status_code == 403

    def test_moderated_review_is_locked(self, client, admin, traveler, review):
        client.put(f"{API}/reviews/{review['id']}/moderate", json={"status": "flagged"}, headers=admin["headers"])
        response = client.put(
            f"{API}/reviews/{review['id']}",
            json={"comment": "Changing my story after the flag."},
            headers=traveler["headers"],
        )
        assert response.status_code == 403

    def test_delete_resets_aggregates(self, client, traveler, plan, review):
        response = client.delete(f"{API}/reviews/{review['id']}", headers=traveler["headers"])
        assert response.status_code == 200
        assert client.get(f"{API}/plans/{plan['id']}").json()["data"]["rating"] == {"average": 0, "count": 0}


class TestCommunity:
    def test_helpful_votes_are_idempotent(self, client, other_traveler, review):
        url = f"{API}/reviews/{review['id']}/helpful"
        client.post(url, headers=other_traveler["headers"])
        response = client.post(url, headers=other_traveler["headers"])
        assert response.json()["data"] == {"helpfulVotesCount": 1, "isHelpful": True}

        removed = client.delete(url, headers=other_traveler["headers"])
        assert removed.json()["data"] == {"helpfulVotesCount": 0, "isHelpful": False}

    def test_three_reports_flag_and_hide(self, client, plan, review):
        for index in range(3):
            reporter = register(client, f"reporter{index}@example.com")
            response = client.post(
                f"{API}/reviews/{review['id']}/report", json={"reason": "spam"}, headers=reporter["headers"]
            )
            assert response.status_code == 200

        assert client.get(f"{API}/reviews/{review['id']}").json()["data"]["moderationStatus"] == "flagged"
        assert client.get(f"{API}/reviews/plan/{plan['id']}").json()["data"]["reviews"] == []
        assert client.get(f"{API}/plans/{plan['id']}").json()["data"]["rating"]["count"] == 0

    def test_duplicate_report(self, client, other_traveler, review):
        url = f"{API}/reviews/{review['id']}/report"
        client.post(url, json={"reason": "spam"}, headers=other_traveler["headers"])
        response = client.post(url, json={"reason": "spam"}, headers=other_traveler["headers"])
        assert response.status_code == 409

    def test_cannot_report_own_review(self, client, traveler, review):
        response = client.post(
            f"{API}/reviews/{review['id']}/report", json={"reason": "spam"}, headers=traveler["headers"]
        )
        assert response.status_code == 400

    def test_business_responds(self, client, owner, other_traveler, review):
        response = client.post(
            f"{API}/reviews/{review['id']}/response",
            json={"message": "Thank you for sailing with us!"},
            headers=owner["headers"],
        )
        assert response.status_code == 200
        assert response.json()["data"]["businessResponse"]["respondedBy"] == owner["user"]["id"]

        denied = client.post(
            f"{API}/reviews/{review['id']}/response",
            json={"message": "Fake reply"},
            headers=other_traveler["headers"],
        )
        assert denied.status_code == 403


class TestModeration:
    def test_admin_queue_and_decision(self, client, db, admin, plan, review):
        client.put(f"{API}/reviews/{review['id']}/moderate", json={"status": "flagged"}, headers=admin["headers"])
        queue = client.get(f"{API}/reviews/moderation", headers=admin["headers"]).json()["data"]
        assert [r["id"] for r in queue["reviews"]] == [review["id"]]

        response = client.put(
            f"{API}/reviews/{review['id']}/moderate",
            json={"status": "approved", "notes": "Checked"},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        assert client.get(f"{API}/plans/{plan['id']}").json()["data"]["rating"]["count"] == 1
        assert db.query(AuditLog).filter(AuditLog.action == "review_moderate").count() == 2

    def test_moderation_is_admin_only(self, client, traveler, review):
        assert client.get(f"{API}/reviews/moderation", headers=traveler["headers"]).status_code == 403
        response = client.put(
            f"{API}/reviews/{review['id']}/moderate", json={"status": "rejected"}, headers=traveler["headers"]
        )
        assert response.status_code == 403
