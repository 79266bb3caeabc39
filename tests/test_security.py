"""HTTP hardening: headers, body limits, rate limiting and the error envelope."""

import pytest
from fastapi.testclient import TestClient
from helpers import API, make_settings

from tourhub.main import create_app


def client_for(**overrides):
    return TestClient(create_app(make_settings(**overrides)))


class TestSecurityHeaders:
    def test_headers_on_every_response(self, client):
        response = client.get("/health")
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "frame-ancestors 'self'" in response.headers["Content-Security-Policy"]
        assert "camera=()" in response.headers["Permissions-Policy"]
        assert response.headers["Cache-Control"].startswith("no-store")
        assert "Strict-Transport-Security" not in response.headers

    def test_hsts_in_production(self):
        with client_for(environment="production") as client:
            response = client.get("/health")
        assert response.headers["Strict-Transport-Security"].startswith("max-age=31536000")

    def test_headers_can_be_disabled(self):
        with client_for(security_headers_enabled=False) as client:
            response = client.get("/health")
        assert "X-Frame-Options" not in response.headers


class TestRequestLimits:
    def test_oversized_body(self):
        with client_for(max_request_bytes=64) as client:
            response = client.post(f"{API}/auth/login", json={"email": "a" * 100 + "@example.com", "password": "x"})
        assert response.status_code == 413
        assert response.json()["error"]["code"] == "PAYLOAD_TOO_LARGE"

    def test_auth_rate_limit(self):
        credentials = {"email": "nobody@example.com", "password": "Wrong12345"}
        with client_for(auth_rate_limit_max_requests=2) as client:
            statuses = [client.post(f"{API}/auth/login", json=credentials).status_code for _ in range(2)]
            blocked = client.post(f"{API}/auth/login", json=credentials)

        assert statuses == [401, 401]
        assert blocked.status_code == 429
        assert blocked.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert int(blocked.headers["Retry-After"]) > 0
        assert blocked.json()["error"]["details"]["retryAfter"] == int(blocked.headers["Retry-After"])

    def test_limits_are_per_client(self):
        credentials = {"email": "nobody@example.com", "password": "Wrong12345"}
        with client_for(auth_rate_limit_max_requests=1) as client:
            client.post(f"{API}/auth/login", json=credentials, headers={"X-Forwarded-For": "10.0.0.1"})
            other = client.post(f"{API}/auth/login", json=credentials, headers={"X-Forwarded-For": "10.0.0.2"})
        assert other.status_code == 401

    def test_rate_limit_can_be_disabled(self):
        credentials = {"email": "nobody@example.com", "password": "Wrong12345"}
        with client_for(auth_rate_limit_max_requests=1, rate_limit_enabled=False) as client:
            statuses = {client.post(f"{API}/auth/login", json=credentials).status_code for _ in range(3)}
        assert statuses == {401}


class TestErrorEnvelope:
    def test_unknown_route(self, client):
        response = client.get(f"{API}/volcanoes")
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "message": f"Route {API}/volcanoes not found",
            "error": {"code": "ROUTE_NOT_FOUND"},
        }

    def test_validation_errors_name_fields(self, client):
        response = client.post(f"{API}/auth/register", json={"email": "not-an-email", "password": "Short1"})
        body = response.json()
        assert response.status_code == 400
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        fields = {error["field"] for error in body["error"]["details"]["errors"]}
        assert "name" in fields

    @pytest.mark.parametrize("header", ["Bearer", "Token abc", "Bearer not.a.jwt"])
    def test_bad_authorization_header(self, client, header):
        response = client.get(f"{API}/auth/me", headers={"Authorization": header})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["success"] is True
        assert body["database"] == "connected"
        assert body["environment"] == "test"
        assert body["timestamp"].endswith("Z")
