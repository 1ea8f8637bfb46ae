# tests/test_users_api.py
"""
User search and administrative user management.
"""

from __future__ import annotations

from .support import API, USER_PASSWORD, register


class TestPublicSearch:
    """Anonymous username lookup."""

    def test_returns_usernames_only(self, client):
        register(client, "alice")

        response = client.get(f"{API}/users/public-search", params={"username": "ali"})

        assert response.status_code == 200
        assert response.json() == [{"username": "alice"}]
        assert "email" not in response.text

    def test_case_insensitive(self, client):
        register(client, "alice")

        response = client.get(f"{API}/users/public-search", params={"username": "ALI"})

        assert [match["username"] for match in response.json()] == ["alice"]

    def test_at_most_five_results(self, client):
        for index in range(6):
            register(client, f"member{index}")

        response = client.get(f"{API}/users/public-search", params={"username": "member"})

        assert response.status_code == 200
        assert len(response.json()) == 5

    def test_username_required(self, client):
        response = client.get(f"{API}/users/public-search")

        assert response.status_code == 400
        assert response.json() == {"detail": "Username parameter is required"}

    def test_sql_injection_is_rejected(self, client):
        response = client.get(f"{API}/users/public-search", params={"username": "'; DROP TABLE Users; --"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid input detected"}
        assert "DROP" not in response.text

    def test_tautology_is_rejected(self, client):
        response = client.get(f"{API}/users/public-search", params={"username": "' OR '1'='1"})

        assert response.status_code == 400

    def test_wildcards_are_literal(self, client):
        """LIKE metacharacters in the term match themselves, not everything."""
        register(client, "alice")

        response = client.get(f"{API}/users/public-search", params={"username": "_"})

        assert response.json() == []


class TestAdminUserManagement:
    def test_list_requires_admin(self, client, user_headers):
        response = client.get(f"{API}/users", headers=user_headers)

        assert response.status_code == 403
        assert response.json() == {"detail": "Not authorized to perform this action"}

    def test_list_requires_token(self, client):
        assert client.get(f"{API}/users").status_code == 401

    def test_list_users(self, client, admin_headers):
        register(client, "alice")

        response = client.get(f"{API}/users", headers=admin_headers)

        assert response.status_code == 200
        users = {user["username"]: user for user in response.json()}
        assert set(users) == {"admin", "alice"}
        assert "Admin" in users["admin"]["roles"]
        assert users["alice"]["roles"] == ["User"]
        assert users["alice"]["is_active"] is True

    def test_search_by_email(self, client, admin_headers):
        register(client, "alice")
        register(client, "bob")

        response = client.get(f"{API}/users/search", params={"email": "bob@"}, headers=admin_headers)

        assert [user["username"] for user in response.json()] == ["bob"]

    def test_get_user(self, client, admin_headers):
        user_id = register(client, "alice").json()["user"]["id"]

        response = client.get(f"{API}/users/{user_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "alice@example.com"

    def test_get_missing_user(self, client, admin_headers):
        response = client.get(f"{API}/users/9999", headers=admin_headers)

        assert response.status_code == 404
        assert response.json() == {"detail": "User not found"}

    def test_update_user(self, client, admin_headers):
        user_id = register(client, "alice").json()["user"]["id"]

        response = client.put(
            f"{API}/users/{user_id}",
            json={"username": "alice2", "email": "alice2@example.com", "age": 31},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"message": "User updated successfully"}
        updated = client.get(f"{API}/users/{user_id}", headers=admin_headers).json()
        assert updated["username"] == "alice2"
        assert updated["age"] == 31

    def test_update_to_taken_username(self, client, admin_headers):
        register(client, "alice")
        user_id = register(client, "bob").json()["user"]["id"]

        response = client.put(
            f"{API}/users/{user_id}",
            json={"username": "alice", "email": "bob@example.com", "age": 30},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Username already exists"}

    def test_delete_user(self, client, admin_headers):
        user_id = register(client, "alice").json()["user"]["id"]

        response = client.delete(f"{API}/users/{user_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "User deleted successfully"}
        assert client.get(f"{API}/users/{user_id}", headers=admin_headers).status_code == 404

        login = client.post(f"{API}/auth/login", json={"username": "alice", "password": USER_PASSWORD})
        assert login.status_code == 401

    def test_delete_missing_user(self, client, admin_headers):
        response = client.delete(f"{API}/users/9999", headers=admin_headers)

        assert response.status_code == 404
