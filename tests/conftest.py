"""Shared fixtures: an app on a throwaway SQLite file and two registered users."""

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'expenses-test.db'}",
        secret_key="test-secret",
        notifier_queue_size=10,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def _register(client, username):
    response = client.post(
        "/api/auth/register", json={"username": username, "password": "s3cret-pass"}
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["access_token"]


@pytest.fixture
def alice_token(client):
    return _register(client, "alice")


@pytest.fixture
def bob_token(client):
    return _register(client, "bob")


@pytest.fixture
def alice(alice_token):
    return {"Authorization": f"Bearer {alice_token}"}


@pytest.fixture
def bob(bob_token):
    return {"Authorization": f"Bearer {bob_token}"}


@pytest.fixture
def make_expense(client):
    """Create an expense through the API and return its wire payload."""

    def _make(headers, **overrides):
        body = {
            "description": "Coffee",
            "amount": 4.5,
            "category": "Food",
            "date": "2024-01-15",
        }
        body.update(overrides)
        response = client.post("/api/expenses", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _make
