"""Shared fixtures: an app on an in-memory database and an authenticated client."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salon_manager import create_app  # noqa: E402
from salon_manager.extensions import db  # noqa: E402

TEST_EMAIL = "owner@salon.test"
TEST_PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client):
    response = client.post("/auth/register", json={
        "name": "Salon Owner",
        "email": TEST_EMAIL,
        "password": TEST_PASSWORD,
        "confirm_password": TEST_PASSWORD,
    })
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def make_client(client, auth_headers):
    def _make(name="Maria Silva", phone="11987654321"):
        response = client.post("/clients", json={"name": name, "phone": phone}, headers=auth_headers)
        assert response.status_code == 201
        return response.get_json()["client"]

    return _make


@pytest.fixture
def make_service(client, auth_headers):
    def _make(name="Haircut", price_cents=5000):
        response = client.post(
            "/services", json={"name": name, "price_cents": price_cents}, headers=auth_headers
        )
        assert response.status_code == 201
        return response.get_json()["service"]

    return _make


@pytest.fixture
def make_item(client, auth_headers):
    def _make(name="Shampoo", quantity=10, cost_price_cents=1000, selling_price_cents=2500, category=None):
        payload = {
            "name": name,
            "quantity": quantity,
            "cost_price_cents": cost_price_cents,
            "selling_price_cents": selling_price_cents,
        }
        if category is not None:
            payload["category"] = category
        response = client.post("/inventory", json=payload, headers=auth_headers)
        assert response.status_code == 201
        return response.get_json()["item"]

    return _make
