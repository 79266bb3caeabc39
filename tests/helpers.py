"""Request payloads and helpers shared by the API tests."""

from datetime import timedelta

from tourhub.config import Settings
from tourhub.utils.dates import utcnow

API = "/api/v1"
PASSWORD = "Traveler123"


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "test",
        "database_url": "sqlite://",
        "bcrypt_rounds": 4,
        "db_log_slow_queries": False,
        "rate_limit_max_requests": 10_000,
        "auth_rate_limit_max_requests": 1_000,
        "secret_key": "test-secret-key-with-enough-entropy-0123456789",
    }
    values.update(overrides)
    return Settings(**values)


def auth_headers(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


def register(client, email, role="user", name="Test Traveler", password=PASSWORD, **extra):
    payload = {"name": name, "email": email, "password": password, "role": role, **extra}
    response = client.post(f"{API}/auth/register", json=payload)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return {"user": data["user"], "tokens": data["tokens"], "headers": auth_headers(data["tokens"])}


def business_payload(**overrides):
    payload = {
        "name": "Caribe Tours",
        "description": "Guided experiences around the walled city.",
        "contactInfo": {"email": "Hola@CaribeTours.co", "phone": "+57 300 123 4567"},
        "location": {"city": "Cartagena", "address": "Calle del Arsenal 10"},
        "legalInfo": {"registrationNumber": "RN-0001", "taxId": "900123456", "type": "company"},
    }
    payload.update(overrides)
    return payload


def plan_payload(business_id=None, **overrides):
    payload = {
        "title": "Sunset sailing tour",
        "description": "A relaxed two hour sail around the bay with drinks and snacks included for every guest.",
        "shortDescription": "Sail the bay at golden hour",
        "category": "adventure",
        "tags": ["Sailing", " Sunset "],
        "price": {"amount": 100000, "currency": "COP"},
        "duration": {"value": 2, "unit": "hours"},
        "location": {"city": "Cartagena", "address": "Muelle de los Pegasos"},
        "capacity": {"min": 1, "max": 10},
        "cancellationPolicy": "Free cancellation up to 24 hours before departure.",
    }
    if business_id is not None:
        payload["businessId"] = business_id
    payload.update(overrides)
    return payload


def future_iso(days=5):
    return (utcnow() + timedelta(days=days)).replace(microsecond=0).isoformat()

