"""Business profiles, verification and ownership rules."""

from helpers import API, business_payload, plan_payload

from tourhub.models import AuditLog
from tourhub.models_notification import Notification

BANKING = {
    "accountNumber": "0012345678",
    "bankName": "Banco del Caribe",
    "accountType": "business",
    "accountHolder": "Caribe Tours SAS",
}


class TestCreateBusiness:
    def test_create(self, business, owner):
        assert business["ownerId"] == owner["user"]["id"]
        assert business["contactInfo"]["email"] == "hola@caribetours.co"
        assert business["legalInfo"] == {"registrationNumber": "RN-0001", "taxId": "900123456", "type": "company"}
        assert business["isVerified"] is False
        assert business["stats"] == {"totalPlans": 0, "totalBookings": 0, "totalRevenue": 0}

    def test_banking_details_are_never_returned(self, client, owner):
        response = client.post(
            f"{API}/business", json=business_payload(bankingInfo=BANKING), headers=owner["headers"]
        )
        assert response.status_code == 201
        assert "bankingInfo" not in response.json()["data"]

    def test_duplicate_legal_identity(self, client, owner, business):
        response = client.post(
            f"{API}/business",
            json=business_payload(name="Caribe Tours Dos"),
            headers=owner["headers"],
        )
        assert response.status_code == 409
        assert response.json()["error"]["details"]["field"] == "legalInfo"

    def test_travelers_cannot_register_businesses(self, client, traveler):
        response = client.post(f"{API}/business", json=business_payload(), headers=traveler["headers"])
        assert response.status_code == 403

    def test_operating_hours_must_be_valid_times(self, client, owner):
        payload = business_payload(operatingHours={"monday": {"open": "25:00", "close": "18:00"}})
        response = client.post(f"{API}/business", json=payload, headers=owner["headers"])
        assert response.status_code == 400

    def test_closed_day_needs_no_hours(self, client, owner):
        payload = business_payload(
            operatingHours={"sunday": {"isClosed": True}, "monday": {"open": "08:00", "close": "18:00"}}
        )
        response = client.post(f"{API}/business", json=payload, headers=owner["headers"])
        assert response.status_code == 201
        assert response.json()["data"]["operatingHours"]["sunday"]["isClosed"] is True


class TestReadBusiness:
    def test_public_profile(self, client, business):
        response = client.get(f"{API}/business/{business['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Caribe Tours"

    def test_list_and_filter(self, client, business):
        listed = client.get(f"{API}/business", params={"city": "cartagena"}).json()["data"]
        assert [b["id"] for b in listed["businesses"]] == [business["id"]]
        assert listed["pagination"]["totalBusinesses"] == 1

        verified = client.get(f"{API}/business", params={"isVerified": "true"}).json()["data"]
        assert verified["businesses"] == []

    def test_mine(self, client, owner, business):
        response = client.get(f"{API}/business/mine", headers=owner["headers"])
        assert [b["id"] for b in response.json()["data"]["businesses"]] == [business["id"]]


class TestManageBusiness:
    def test_owner_updates(self, client, owner, business):
        response = client.put(
            f"{API}/business/{business['id']}",
            json={"description": "Guided boat and walking experiences in Cartagena."},
            headers=owner["headers"],
        )
        assert response.status_code == 200
        assert response.json()["data"]["description"].startswith("Guided boat")

    def test_legal_info_is_immutable(self, client, owner, business):
        response = client.put(
            f"{API}/business/{business['id']}",
            json={"legalInfo": {"registrationNumber": "X", "taxId": "Y", "type": "company"}},
            headers=owner["headers"],
        )
        assert response.status_code == 400

    def test_stranger_cannot_update(self, client, traveler, business):
        response = client.put(
            f"{API}/business/{business['id']}", json={"name": "Hijacked"}, headers=traveler["headers"]
        )
        assert response.status_code == 403

    def test_delete_deactivates_plans(self, client, owner, business, plan):
        response = client.delete(f"{API}/business/{business['id']}", headers=owner["headers"])
        assert response.status_code == 200

        assert client.get(f"{API}/business/{business['id']}").status_code == 404
        assert client.get(f"{API}/plans/{plan['id']}").status_code == 404
        new_plan = client.post(f"{API}/plans", json=plan_payload(business["id"]), headers=owner["headers"])
        assert new_plan.status_code == 404


class TestVerification:
    def test_admin_verifies(self, client, db, admin, owner, business):
        response = client.put(f"{API}/business/{business['id']}/verify", headers=admin["headers"])
        data = response.json()["data"]
        assert response.status_code == 200
        assert data["isVerified"] is True
        assert data["verifiedAt"] is not None

        notification = db.query(Notification).filter(Notification.recipient_id == owner["user"]["id"]).one()
        assert notification.type == "business_verified"
        assert notification.related_entity == {"type": "business", "id": business["id"]}

        entry = db.query(AuditLog).filter(AuditLog.action == "business_verify").one()
        assert entry.category == "business"
        assert entry.is_sensitive

    def test_verify_twice(self, client, admin, business):
        client.put(f"{API}/business/{business['id']}/verify", headers=admin["headers"])
        response = client.put(f"{API}/business/{business['id']}/verify", headers=admin["headers"])
        assert response.status_code == 409

    def test_owner_cannot_self_verify(self, client, owner, business):
        response = client.put(f"{API}/business/{business['id']}/verify", headers=owner["headers"])
        assert response.status_code == 403
