# tests/conftest.py

from __future__ import annotations

import os
import tempfile
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from .support import ADMIN_PASSWORD, ADMIN_USERNAME, JWT_SECRET, auth_header, login_token, register_token

# The settings singleton and the module-level app are built on import, so
# the environment has to be safe before app.main is first imported.
_SAFE_ENV = {
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "JWT_SECRET": JWT_SECRET,
    "CORS_ORIGINS": '["https://yourdomain.com"]',
    "APP_ENV": "development",
    "RATE_LIMIT_BACKEND": "memory",
    "UPLOAD_DIR": tempfile.mkdtemp(prefix="secure-api-uploads-"),
}

with patch.dict(os.environ, _SAFE_ENV, clear=False):
    from app.core.config import Settings
    from app.main import create_app


@pytest.fixture
def make_settings(tmp_path):
    """Settings factory: in-memory database, per-test upload directory, seeded admin."""

    def factory(**overrides) -> Settings:
        values = {
            "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
            "JWT_SECRET": JWT_SECRET,
            "CORS_ORIGINS": ["https://yourdomain.com"],
            "APP_ENV": "development",
            "RATE_LIMIT_BACKEND": "memory",
            "RATE_LIMIT_REQUESTS": 1000,
            "UPLOAD_DIR": str(tmp_path / "uploads"),
            "ADMIN_USERNAME": ADMIN_USERNAME,
            "ADMIN_INITIAL_PASSWORD": ADMIN_PASSWORD,
        }
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def make_client(make_settings):
    """Builds an isolated application and runs its lifespan for the test's duration."""
    clients = []

    def factory(**overrides) -> TestClient:
        client = TestClient(create_app(make_settings(**overrides)))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def admin_headers(client):
    return auth_header(login_token(client, ADMIN_USERNAME, ADMIN_PASSWORD))


@pytest.fixture
def user_headers(client):
    return auth_header(register_token(client, "alice"))
