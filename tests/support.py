"""Shared constants and request helpers for API tests."""

from fastapi.testclient import TestClient

API = "/api/v1"
JWT_SECRET = "a0b1c2d3e4f5a6b7c8d9e0f1a2b3c4d5a6b7c8d9e0f1a2b3c4d5a6b7c8d9e0f1"
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Adm1n!Passw0rd"
USER_PASSWORD = "Str0ng!Pass"


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, username: str, password: str = USER_PASSWORD, age: int = 30, email: str = None):
    return client.post(
        f"{API}/auth/register",
        json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
            "age": age,
        },
    )


def register_token(client: TestClient, username: str) -> str:
    response = register(client, username)
    assert response.status_code == 201, response.text
    return response.json()["token"]


def login_token(client: TestClient, username: str, password: str) -> str:
    response = client.post(f"{API}/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]
