"""Shared fixtures: temporary database, API client and admin credentials."""

import os
import tempfile

# Settings are read on import, so the environment has to be in place first.
_test_db = tempfile.NamedTemporaryFile(suffix='.db', delete=False)
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db.name}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

from routeadmin.database import DatabaseManager
from routeadmin.main import app
from routeadmin.security import get_db

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "s3cret-pass"


@pytest.fixture
def db_manager(tmp_path):
    """Fresh SQLite database per test."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'routes.db'}")
    manager.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)
    return manager


@pytest.fixture
def client(db_manager):
    app.dependency_overrides[get_db] = lambda: db_manager
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    response = client.post(
        "/api/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
