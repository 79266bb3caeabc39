"""Plan catalogue: creation, listing, ownership and favorites."""

import re

from helpers import API, plan_payload

from tourhub.models import AuditLog
from tourhub.models_plan import Business


class TestCreatePlan:
    def test_create_derives_slug_and_tags(self, client, db, plan, business):
        assert re.fullmatch(r"sunset-sailing-tour-[0-9a-z]{6}", plan["slug"])
        assert plan["tags"] == ["sailing", "sunset"]
        assert plan["price"]["currency"] == "COP"
        assert plan["businessId"] == business["id"]
        assert plan["stats"] == {"views": 0, "bookings": 0, "favorites": 0}

        stored = db.query(Business).filter(Business.id == business["id"]).first()
        assert stored.stats["totalPlans"] == 1
        assert db.query(AuditLog).filter(AuditLog.action == "plan_create").count() == 1

    def test_same_title_gets_a_distinct_slug(self, client, owner, business, plan):
        response = client.post(f"{API}/plans", json=plan_payload(business["id"]), headers=owner["headers"])
        assert response.status_code == 201
        assert response.json()["data"]["slug"] != plan["slug"]

    def test_travelers_cannot_create_plans(self, client, traveler):
        response = client.post(f"{API}/plans", json=plan_payload(), headers=traveler["headers"])
        assert response.status_code == 403

    def test_cannot_attach_to_someone_elses_business(self, client, business):
        other_owner = client.post(
            f"{API}/auth/register",
            json={"name": "Rival", "email": "rival@example.com", "password": "Rival12345", "role": "business_owner"},
        ).json()["data"]["tokens"]
        headers = {"Authorization": f"Bearer {other_owner['accessToken']}"}

        response = client.post(f"{API}/plans", json=plan_payload(business["id"]), headers=headers)
        assert response.status_code == 403

    def test_capacity_max_below_min(self, client, owner):
        payload = plan_payload(capacity={"min": 6, "max": 2})
        response = client.post(f"{API}/plans", json=payload, headers=owner["headers"])
        body = response.json()
        assert response.status_code == 400
        assert "capacity.max" in [e["field"] for e in body["error"]["details"]["errors"]]

    def test_unknown_category(self, client, owner):
        response = client.post(f"{API}/plans", json=plan_payload(category="nightlife"), headers=owner["headers"])
        assert response.status_code == 400

    def test_description_markup_is_stripped(self, client, owner):
        description = "<script>alert(1)</script>" + "A calm walk through the old town with a local guide and snacks."
        response = client.post(f"{API}/plans", json=plan_payload(description=description), headers=owner["headers"])
        assert response.status_code == 201
        assert "<script>" not in response.json()["data"]["description"]


class TestReadPlans:
    def test_get_counts_views(self, client, plan):
        client.get(f"{API}/plans/{plan['id']}")
        response = client.get(f"{API}/plans/{plan['id']}")
        assert response.json()["data"]["stats"]["views"] == 2

    def test_missing_plan(self, client):
        response = client.get(f"{API}/plans/9999")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND_ERROR"

    def test_list_filters(self, client, owner, business, plan):
        cheap = plan_payload(business["id"], title="City walking tour", price={"amount": 20000}, category="cultural")
        client.post(f"{API}/plans", json=cheap, headers=owner["headers"])

        everything = client.get(f"{API}/plans").json()["data"]
        assert everything["pagination"]["totalPlans"] == 2

        cultural = client.get(f"{API}/plans", params={"category": "cultural"}).json()["data"]["plans"]
        assert [p["title"] for p in cultural] == ["City walking tour"]

        pricey = client.get(f"{API}/plans", params={"minPrice": 50000}).json()["data"]["plans"]
        assert [p["id"] for p in pricey] == [plan["id"]]

        by_price = client.get(f"{API}/plans", params={"sortBy": "price", "sortOrder": "asc"}).json()["data"]["plans"]
        assert by_price[0]["title"] == "City walking tour"

    def test_search(self, client, plan):
        found = client.get(f"{API}/plans", params={"search": "SAILING"}).json()["data"]["plans"]
        assert [p["id"] for p in found] == [plan["id"]]


class TestManagePlans:
    def test_owner_updates_plan(self, client, owner, plan):
        response = client.put(
            f"{API}/plans/{plan['id']}",
            json={"title": "Sunset catamaran cruise", "price": {"amount": 120000, "currency": "COP"}},
            headers=owner["headers"],
        )
        updated = response.json()["data"]
        assert response.status_code == 200
        assert updated["price"]["amount"] == 120000
        assert updated["slug"].startswith("sunset-catamaran-cruise-")

    def test_other_user_cannot_update(self, client, traveler, plan):
        response = client.put(f"{API}/plans/{plan['id']}", json={"title": "Mine now"}, headers=traveler["headers"])
        assert response.status_code == 403

    def test_delete_is_soft(self, client, db, owner, business, plan):
        response = client.delete(f"{API}/plans/{plan['id']}", headers=owner["headers"])
        assert response.status_code == 200

        assert client.get(f"{API}/plans/{plan['id']}").status_code == 404
        assert client.get(f"{API}/plans/{plan['id']}", headers=owner["headers"]).status_code == 200
        assert client.get(f"{API}/plans").json()["data"]["plans"] == []

        stored = db.query(Business).filter(Business.id == business["id"]).first()
        assert stored.stats["totalPlans"] == 0

    def test_deleting_twice_keeps_the_plan_counter(self, client, db, owner, business, plan):
        second = plan_payload(business["id"], title="City walking tour")
        client.post(f"{API}/plans", json=second, headers=owner["headers"])
        client.delete(f"{API}/plans/{plan['id']}", headers=owner["headers"])

        again = client.delete(f"{API}/plans/{plan['id']}", headers=owner["headers"])

        assert again.status_code == 404
        stored = db.query(Business).filter(Business.id == business["id"]).first()
        assert stored.stats["totalPlans"] == 1
        assert db.query(AuditLog).filter(AuditLog.action == "plan_delete").count() == 1


class TestFavoritePlans:
    def test_toggle(self, client, traveler, plan):
        url = f"{API}/plans/{plan['id']}/favorite"

        first = client.post(url, headers=traveler["headers"]).json()["data"]
        assert first == {"isFavorite": True}
        favorites = client.get(f"{API}/users/me/favorites", headers=traveler["headers"]).json()["data"]["favorites"]
        assert favorites[0]["destinationType"] == "plan"
        assert client.get(f"{API}/plans/{plan['id']}").json()["data"]["stats"]["favorites"] == 1

        second = client.post(url, headers=traveler["headers"]).json()["data"]
        assert second == {"isFavorite": False}
        assert client.get(f"{API}/plans/{plan['id']}").json()["data"]["stats"]["favorites"] == 0
