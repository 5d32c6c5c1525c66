"""
Tests for /api/auth endpoints with the auth provider mocked out.
"""

import pytest
from unittest.mock import AsyncMock, patch

from security.session import COOKIE_NAME, AuthError, auth_client

PROFILE = {"id": "u1", "email": "a@example.com", "credits": 100, "tiktok_username": None}


class TestLogin:

    def test_login_sets_cookie(self, client):
        session = {"access_token": "tok", "expires_in": 3600, "user": {"id": "u1", "email": "a@example.com"}}
        with patch.object(auth_client, "sign_in", AsyncMock(return_value=session)), \
             patch("core.store.get_profile", return_value=PROFILE):
            response = client.post("/api/auth/login", json={"email": "a@example.com", "password": "secret"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user"]["id"] == "u1"
        assert body["data"]["profile"]["credits"] == 100
        cookie = response.headers["set-cookie"]
        assert f"{COOKIE_NAME}=tok" in cookie
        assert "httponly" in cookie.lower()

    def test_missing_fields(self, client):
        response = client.post("/api/auth/login", json={"email": "a@example.com"})
        assert response.status_code == 400
        assert response.json() == {"success": False, "data": None, "error": "Email and password are required"}

    def test_bad_credentials(self, client):
        with patch.object(auth_client, "sign_in", AsyncMock(side_effect=AuthError("Invalid login credentials", status=401))):
            response = client.post("/api/auth/login", json={"email": "a@example.com", "password": "wrong"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid login credentials"
        assert "set-cookie" not in response.headers

    def test_missing_profile(self, client):
        session = {"access_token": "tok", "user": {"id": "u1"}}
        with patch.object(auth_client, "sign_in", AsyncMock(return_value=session)), \
             patch("core.store.get_profile", return_value=None):
            response = client.post("/api/auth/login", json={"email": "a@example.com", "password": "secret"})

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch user profile"


class TestRegister:

    @pytest.mark.parametrize("payload,error", [
        ({"email": "", "password": "secret"}, "Please fill in all fields"),
        ({"email": "not-an-email", "password": "secret"}, "Invalid email address"),
        ({"email": "a@example.com", "password": "123"}, "Password must be at least 6 characters"),
    ])
    def test_validation(self, client, payload, error):
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 400
        assert response.json()["error"] == error

    def test_register_pending_confirmation(self, client):
        created = {"id": "u2", "email": "new@example.com", "email_confirmed_at": None}
        with patch.object(auth_client, "sign_up", AsyncMock(return_value=created)):
            response = client.post("/api/auth/register", json={"email": "new@example.com", "password": "secret1"})

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["user"]["id"] == "u2"
        assert "check your email" in body["message"]
        assert "set-cookie" not in response.headers

    def test_register_with_session(self, client):
        created = {"access_token": "tok", "user": {"id": "u2", "email_confirmed_at": "2025-01-01T00:00:00Z"}}
        with patch.object(auth_client, "sign_up", AsyncMock(return_value=created)):
            response = client.post("/api/auth/register", json={"email": "new@example.com", "password": "secret1"})

        assert response.json()["message"] == "Registration successful!"
        assert f"{COOKIE_NAME}=tok" in response.headers["set-cookie"]

    def test_already_registered(self, client):
        with patch.object(auth_client, "sign_up", AsyncMock(side_effect=AuthError("User already registered"))):
            response = client.post("/api/auth/register", json={"email": "a@example.com", "password": "secret1"})

        assert response.status_code == 400
        assert response.json()["error"] == "This email is already registered. Use another email or log in."


def test_logout_clears_cookie(client):
    with patch.object(auth_client, "sign_out", AsyncMock()) as sign_out:
        response = client.post("/api/auth/logout", headers={"Authorization": "Bearer tok"})

    assert response.status_code == 200
    sign_out.assert_awaited_once_with("tok")
    assert f'{COOKIE_NAME}=""' in response.headers["set-cookie"]


def test_logout_without_session(client):
    with patch.object(auth_client, "sign_out", AsyncMock()) as sign_out:
        response = client.post("/api/auth/logout")

    assert response.status_code == 200
    sign_out.assert_not_awaited()


def test_session_requires_auth(client):
    with patch.object(auth_client, "get_user", AsyncMock(return_value=None)):
        response = client.get("/api/auth/session", headers={"Authorization": "Bearer expired"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "data": None, "error": "Authentication required"}


def test_session_returns_user_and_profile(user_client):
    with patch("core.store.get_profile", return_value=PROFILE):
        response = user_client.get("/api/auth/session")

    assert response.status_code == 200
    assert response.json()["data"]["profile"] == PROFILE
