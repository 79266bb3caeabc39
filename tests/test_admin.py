"""Audit trail queries and the maintenance cleanup job."""

from datetime import timedelta

from helpers import API

from tourhub.models import AuditLog, AuthSession
from tourhub.models_notification import Notification
from tourhub.utils.dates import utcnow


def audit_logs(client, admin, **params):
    response = client.get(f"{API}/admin/audit-logs", params=params, headers=admin["headers"])
    assert response.status_code == 200, response.text
    return response.json()["data"]


class TestAuditLogs:
    def test_filters(self, client, admin, traveler):
        everything = audit_logs(client, admin)
        assert everything["pagination"]["totalLogs"] >= 2

        mine = audit_logs(client, admin, userId=traveler["user"]["id"], action="register")
        assert len(mine["logs"]) == 1
        entry = mine["logs"][0]
        assert entry["resource"] == "user"
        assert entry["statusCode"] == 201
        assert entry["category"] == "system"

        assert audit_logs(client, admin, category="business")["logs"] == []
        assert audit_logs(client, admin, severity="critical")["logs"] == []

    def test_time_window(self, client, admin, traveler):
        later = (utcnow() + timedelta(hours=1)).isoformat()
        assert audit_logs(client, admin, since=later)["logs"] == []
        assert audit_logs(client, admin, until=later)["pagination"]["totalLogs"] >= 2

    def test_admin_only(self, client, traveler):
        response = client.get(f"{API}/admin/audit-logs", headers=traveler["headers"])
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTHORIZATION_ERROR"

    def test_requires_authentication(self, client):
        assert client.get(f"{API}/admin/audit-logs").status_code == 401


class TestCleanup:
    def test_purges_stale_records(self, client, db, admin, traveler):
        traveler_id = traveler["user"]["id"]
        announcement = {"title": "Old news", "message": "This will expire", "recipientIds": [traveler_id]}
        client.post(f"{API}/notifications/announcements", json=announcement, headers=admin["headers"])
        client.post(f"{API}/auth/logout", headers=traveler["headers"])

        long_ago = utcnow() - timedelta(days=400)
        db.query(AuditLog).filter(AuditLog.user_id == traveler_id).update(
            {AuditLog.created_at: long_ago}, synchronize_session=False
        )
        db.query(AuthSession).filter(AuthSession.user_id == traveler_id).update(
            {AuthSession.revoked_at: long_ago}, synchronize_session=False
        )
        db.query(Notification).update({Notification.expires_at: long_ago}, synchronize_session=False)
        db.commit()

        response = client.post(f"{API}/admin/maintenance/cleanup", headers=admin["headers"])

        assert response.status_code == 200
        assert response.json()["data"] == {"auditLogs": 2, "sessions": 1, "notifications": 1}
        db.expire_all()
        assert db.query(AuditLog).filter(AuditLog.user_id == traveler_id).count() == 0
        entry = db.query(AuditLog).filter(AuditLog.action == "maintenance_cleanup").one()
        assert entry.category == "system"
        assert entry.user_id == admin["user"]["id"]

    def test_nothing_to_purge(self, client, admin):
        response = client.post(f"{API}/admin/maintenance/cleanup", headers=admin["headers"])
        assert response.json()["data"] == {"auditLogs": 0, "sessions": 0, "notifications": 0}

    def test_admin_only(self, client, traveler):
        response = client.post(f"{API}/admin/maintenance/cleanup", headers=traveler["headers"])
        assert response.status_code == 403
