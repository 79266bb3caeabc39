"""Shared fixtures: an app on a private in-memory database plus ready-made actors."""

import pytest
from fastapi.testclient import TestClient
from helpers import API, business_payload, future_iso, make_settings, plan_payload, register

from tourhub.main import create_app
from tourhub.models import User


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(app, client):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def traveler(client):
    return register(client, "traveler@example.com", name="Ana Viajera")


@pytest.fixture
def other_traveler(client):
    return register(client, "other@example.com", name="Luis Turista")


@pytest.fixture
def owner(client):
    return register(client, "owner@example.com", role="business_owner", name="Olga Operadora")


@pytest.fixture
def admin(client, db):
    actor = register(client, "admin@example.com", name="Admin Root")
    user = db.query(User).filter(User.id == actor["user"]["id"]).first()
    user.role = "admin"
    db.commit()
    return actor


@pytest.fixture
def business(client, owner):
    response = client.post(f"{API}/business", json=business_payload(), headers=owner["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def plan(client, owner, business):
    response = client.post(f"{API}/plans", json=plan_payload(business["id"]), headers=owner["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def booking(client, traveler, plan):
    payload = {"planId": plan["id"], "dateRequested": future_iso(), "guests": {"adults": 2, "children": 1}}
    response = client.post(f"{API}/bookings", json=payload, headers=traveler["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]
