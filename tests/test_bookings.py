"""Booking lifecycle: pricing, access, status changes and cancellation."""

from datetime import timedelta

import pytest
from helpers import API, future_iso, plan_payload

from tourhub import models_booking
from tourhub.models import AuditLog
from tourhub.models_notification import Notification
from tourhub.models_plan import Business, Plan
from tourhub.utils.dates import utcnow


def book(client, actor, plan, **overrides):
    payload = {"planId": plan["id"], "dateRequested": future_iso(), "guests": {"adults": 1}}
    payload.update(overrides)
    return client.post(f"{API}/bookings", json=payload, headers=actor["headers"])


def set_status(client, actor, booking, status):
    return client.put(f"{API}/bookings/{booking['id']}/status", json={"status": status}, headers=actor["headers"])


class TestCreateBooking:
    def test_pricing_and_defaults(self, booking, traveler, plan, business):
        assert booking["pricing"] == {
            "subtotal": 300000.0,
            "taxes": 57000.0,
            "fees": 0.0,
            "discounts": 0,
            "total": 357000.0,
            "currency": "COP",
        }
        assert booking["status"] == "pending"
        assert booking["totalGuests"] == 3
        assert booking["businessId"] == business["id"]
        assert booking["confirmationCode"].startswith("TOL")
        assert booking["customerInfo"]["email"] == "traveler@example.com"
        assert booking["customerInfo"]["name"] == "Ana Viajera"
        assert [h["status"] for h in booking["statusHistory"]] == ["pending"]
        assert booking["version"] == 1

    def test_infants_travel_free(self, client, traveler, plan):
        response = book(client, traveler, plan, guests={"adults": 1, "infants": 2})
        data = response.json()["data"]
        assert data["pricing"]["subtotal"] == 100000
        assert data["totalGuests"] == 3

    def test_counters(self, client, db, booking, plan, business):
        stored_plan = db.query(Plan).filter(Plan.id == plan["id"]).first()
        stored_business = db.query(Business).filter(Business.id == business["id"]).first()
        assert stored_plan.stats["bookings"] == 1
        assert stored_business.stats["totalBookings"] == 1

    def test_codes_are_unique(self, client, traveler, plan, booking):
        second = book(client, traveler, plan).json()["data"]
        assert second["confirmationCode"] != booking["confirmationCode"]

    def test_past_date(self, client, traveler, plan):
        past = (utcnow() - timedelta(days=1)).isoformat()
        response = book(client, traveler, plan, dateRequested=past)
        assert response.status_code == 400
        assert response.json()["error"]["details"]["errors"][0]["field"] == "dateRequested"

    def test_over_capacity(self, client, traveler, plan):
        response = book(client, traveler, plan, guests={"adults": 8, "children": 3})
        assert response.status_code == 400

    def test_at_least_one_adult(self, client, traveler, plan):
        response = book(client, traveler, plan, guests={"adults": 0, "children": 2})
        assert response.status_code == 400

    def test_blackout_date(self, client, owner, traveler, business):
        day = utcnow() + timedelta(days=10)
        payload = plan_payload(
            business["id"], schedule={"blackoutDates": [day.date().isoformat()]}
        )
        blocked = client.post(f"{API}/plans", json=payload, headers=owner["headers"]).json()["data"]

        response = book(client, traveler, blocked, dateRequested=day.replace(microsecond=0).isoformat())
        assert response.status_code == 400

    def test_plan_without_business(self, client, owner, traveler):
        orphan = client.post(f"{API}/plans", json=plan_payload(), headers=owner["headers"]).json()["data"]
        response = book(client, traveler, orphan)
        assert response.status_code == 400

    def test_unknown_plan(self, client, traveler):
        response = book(client, traveler, {"id": 9999})
        assert response.status_code == 404

    def test_invalid_time_slot(self, client, traveler, plan):
        response = book(client, traveler, plan, timeSlot={"start": "9am", "end": "11:00"})
        assert response.status_code == 400

    def test_code_collision_is_retried(self, monkeypatch, client, db, traveler, plan, booking):
        codes = iter([booking["confirmationCode"], "TOLFRESH0001"])
        monkeypatch.setattr(models_booking, "generate_confirmation_code", lambda now=None: next(codes))

        response = book(client, traveler, plan)

        assert response.status_code == 201
        assert response.json()["data"]["confirmationCode"] == "TOLFRESH0001"
        stored_plan = db.query(Plan).filter(Plan.id == plan["id"]).first()
        assert stored_plan.stats["bookings"] == 2

    def test_code_collision_gives_up(self, monkeypatch, client, traveler, plan, booking):
        monkeypatch.setattr(models_booking, "generate_confirmation_code", lambda now=None: booking["confirmationCode"])

        response = book(client, traveler, plan)

        assert response.status_code == 409
        assert response.json()["error"]["details"]["field"] == "confirmation_code"


class TestAccess:
    def test_customer_and_business_can_read(self, client, traveler, owner, booking):
        for actor in (traveler, owner):
            response = client.get(f"{API}/bookings/{booking['id']}", headers=actor["headers"])
            assert response.status_code == 200

    def test_strangers_cannot_read(self, client, other_traveler, booking):
        response = client.get(f"{API}/bookings/{booking['id']}", headers=other_traveler["headers"])
        assert response.status_code == 403

    def test_listing_is_scoped(self, client, traveler, other_traveler, owner, admin, booking):
        def count(actor, **params):
            response = client.get(f"{API}/bookings", params=params, headers=actor["headers"])
            return response.json()["data"]["pagination"]["totalBookings"]

        assert count(traveler) == 1
        assert count(owner) == 1
        assert count(other_traveler) == 0
        assert count(admin) == 1
        assert count(traveler, status="confirmed") == 0


class TestStatusChanges:
    def test_business_confirms_then_completes(self, client, db, owner, traveler, business, booking):
        confirmed = set_status(client, owner, booking, "confirmed")
        assert confirmed.status_code == 200
        assert confirmed.json()["data"]["confirmedAt"] is not None

        completed = set_status(client, owner, booking, "completed").json()["data"]
        assert [h["status"] for h in completed["statusHistory"]] == ["pending", "confirmed", "completed"]

        notification = db.query(Notification).filter(Notification.recipient_id == traveler["user"]["id"]).one()
        assert notification.type == "booking_confirmed"
        assert notification.priority == "high"

        stored = db.query(Business).filter(Business.id == business["id"]).first()
        assert stored.stats["totalRevenue"] == 357000

        actions = {entry.action for entry in db.query(AuditLog).all()}
        assert {"booking_confirm", "booking_complete"} <= actions

    def test_customer_cannot_confirm(self, client, traveler, booking):
        assert set_status(client, traveler, booking, "confirmed").status_code == 403

    def test_pending_cannot_be_completed(self, client, owner, booking):
        response = set_status(client, owner, booking, "completed")
        assert response.status_code == 400

    def test_cancelled_is_terminal(self, client, owner, traveler, booking):
        client.put(f"{API}/bookings/{booking['id']}/cancel", headers=traveler["headers"])
        assert set_status(client, owner, booking, "confirmed").status_code == 400


class TestCancellation:
    @pytest.mark.parametrize("hours, expected", [(23, 400), (25, 200)])
    def test_cancellation_window(self, client, traveler, plan, hours, expected):
        when = (utcnow() + timedelta(hours=hours)).replace(microsecond=0).isoformat()
        created = book(client, traveler, plan, dateRequested=when).json()["data"]

        response = client.put(
            f"{API}/bookings/{created['id']}/cancel",
            json={"reason": "Change of plans"},
            headers=traveler["headers"],
        )

        assert response.status_code == expected
        if expected == 200:
            cancelled = response.json()["data"]
            assert cancelled["status"] == "cancelled"
            assert cancelled["cancellationReason"] == "Change of plans"
            assert [h["status"] for h in cancelled["statusHistory"]] == ["pending", "cancelled"]

    def test_customer_cancel_notifies_business(self, client, db, owner, traveler, booking):
        response = client.put(f"{API}/bookings/{booking['id']}/cancel", headers=traveler["headers"])
        assert response.status_code == 200

        owner_notes = db.query(Notification).filter(Notification.recipient_id == owner["user"]["id"]).all()
        assert [n.type for n in owner_notes] == ["booking_cancelled"]
        assert db.query(Notification).filter(Notification.recipient_id == traveler["user"]["id"]).count() == 0

        entry = db.query(AuditLog).filter(AuditLog.action == "booking_cancel").one()
        assert entry.changes["before"] == {"status": "pending"}
        assert entry.changes["after"] == {"status": "cancelled"}

    def test_business_cancel_notifies_customer(self, client, db, owner, traveler, booking):
        client.put(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "Storm"}, headers=owner["headers"])
        notification = db.query(Notification).filter(Notification.recipient_id == traveler["user"]["id"]).one()
        assert notification.type == "booking_cancelled"

    def test_cannot_cancel_twice(self, client, traveler, booking):
        client.put(f"{API}/bookings/{booking['id']}/cancel", headers=traveler["headers"])
        response = client.put(f"{API}/bookings/{booking['id']}/cancel", headers=traveler["headers"])
        assert response.status_code == 400


class TestModification:
    def test_changing_guests_reprices(self, client, traveler, booking):
        response = client.put(
            f"{API}/bookings/{booking['id']}",
            json={"guests": {"adults": 1}, "version": booking["version"]},
            headers=traveler["headers"],
        )
        data = response.json()["data"]
        assert response.status_code == 200
        assert data["pricing"]["total"] == 119000
        assert data["version"] == 2

    def test_stale_version(self, client, traveler, booking):
        response = client.put(
            f"{API}/bookings/{booking['id']}",
            json={"specialRequests": "Window seat", "version": booking["version"] + 5},
            headers=traveler["headers"],
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "STALE_WRITE"

    def test_inside_modification_window(self, client, traveler, plan):
        when = (utcnow() + timedelta(hours=30)).replace(microsecond=0).isoformat()
        created = book(client, traveler, plan, dateRequested=when).json()["data"]
        response = client.put(
            f"{API}/bookings/{created['id']}", json={"specialRequests": "Vegan"}, headers=traveler["headers"]
        )
        assert response.status_code == 400

    def test_new_date_must_leave_the_modification_window(self, client, traveler, booking):
        soon = (utcnow() + timedelta(hours=2)).replace(microsecond=0).isoformat()
        response = client.put(
            f"{API}/bookings/{booking['id']}", json={"dateRequested": soon}, headers=traveler["headers"]
        )
        assert response.status_code == 400
        assert response.json()["error"]["details"]["errors"][0]["field"] == "dateRequested"

    def test_business_cannot_modify_guest_details(self, client, owner, booking):
        response = client.put(
            f"{API}/bookings/{booking['id']}", json={"specialRequests": "Upsell"}, headers=owner["headers"]
        )
        assert response.status_code == 403


class TestCommunications:
    def test_message_log(self, client, owner, traveler, booking):
        response = client.post(
            f"{API}/bookings/{booking['id']}/communications",
            json={"type": "whatsapp", "message": "See you at the pier at 5pm"},
            headers=owner["headers"],
        )
        assert response.status_code == 201
        messages = response.json()["data"]["communications"]
        assert messages[0]["sentBy"] == owner["user"]["id"]

        reply = client.post(
            f"{API}/bookings/{booking['id']}/communications",
            json={"message": "hi"},
            headers=traveler["headers"],
        )
        assert reply.status_code == 201
