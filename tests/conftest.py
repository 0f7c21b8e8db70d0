"""Shared fixtures: stubbed store collections wired into the FastAPI app.

Tests never run the application lifespan, so no MongoDB connection is
attempted. The route dependencies that hand out collections are overridden
with in-memory stubs and the carousel registry is emptied between tests.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.helpers.mongo_stub import FakeCollection


@pytest.fixture
def receipts_collection() -> FakeCollection:
    return FakeCollection("receipts")


@pytest.fixture
def users_collection() -> FakeCollection:
    return FakeCollection("users")


@pytest.fixture
def app(receipts_collection: FakeCollection, users_collection: FakeCollection):
    import main
    import routes
    from utils.rate_limit import limiter

    main.app.dependency_overrides[routes.get_receipts_collection] = lambda: receipts_collection
    main.app.dependency_overrides[routes.get_users_collection] = lambda: users_collection
    main.app_state["carousels"].clear()
    limiter.enabled = False
    yield main.app
    main.app.dependency_overrides.clear()
    main.app_state["carousels"].clear()
    limiter.enabled = True


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def logged_in(client: TestClient) -> dict:
    """Signs up and logs in a user; returns the session user payload."""
    creds = {"email": "ada@example.com", "password": "secret123", "name": "Ada"}
    assert client.post("/api/auth/signup", json=creds).status_code == 200
    response = client.post("/api/auth/login", json={"email": creds["email"], "password": creds["password"]})
    assert response.status_code == 200
    return response.json()
