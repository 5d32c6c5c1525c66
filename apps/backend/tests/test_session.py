"""
Tests for Supabase session handling and the admin token check.
"""

import os
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
from fastapi import HTTPException
from starlette.requests import Request

from app.db_config import db_config
from security.session import (
    COOKIE_NAME,
    AuthError,
    SupabaseAuth,
    get_access_token,
    public_user,
    require_user,
    verify_admin_token,
)


def make_request(headers=None, cookies=None):
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        cookie = "; ".join(f"{k}={v}" for k, v in cookies.items())
        raw_headers.append((b"cookie", cookie.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw_headers})


def reply(status, payload=None):
    body = json.dumps(payload).encode() if payload is not None else b""
    return (status, {}, body, len(body), "https://project.supabase.co")


@pytest.fixture
def supabase_env():
    with patch.object(db_config, "supabase_url", "https://project.supabase.co/"), \
         patch.object(db_config, "supabase_anon_key", "anon-key"):
        yield


@pytest.fixture
def http_client():
    client = MagicMock()
    client.fetch = AsyncMock()
    return client


@pytest.fixture
def auth(http_client, supabase_env):
    return SupabaseAuth(http_client=http_client)


class TestSupabaseAuth:

    @pytest.mark.asyncio
    async def test_sign_in(self, auth, http_client):
        http_client.fetch.return_value = reply(200, {"access_token": "tok", "user": {"id": "u1"}})

        session = await auth.sign_in("a@example.com", "secret")

        assert session["access_token"] == "tok"
        args, kwargs = http_client.fetch.await_args
        assert args[0] == "https://project.supabase.co/auth/v1/token"
        assert kwargs["method"] == "POST"
        assert kwargs["params"] == {"grant_type": "password"}
        assert kwargs["json_data"] == {"email": "a@example.com", "password": "secret"}
        assert kwargs["headers"]["apikey"] == "anon-key"

    @pytest.mark.asyncio
    async def test_sign_in_rejected(self, auth, http_client):
        http_client.fetch.return_value = reply(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})

        with pytest.raises(AuthError) as exc:
            await auth.sign_in("a@example.com", "wrong")

        assert exc.value.status == 401
        assert exc.value.message == "Invalid login credentials"

    @pytest.mark.asyncio
    async def test_provider_unreachable(self, auth, http_client):
        http_client.fetch.side_effect = httpx.ConnectError("refused")

        with pytest.raises(AuthError) as exc:
            await auth.sign_in("a@example.com", "secret")

        assert exc.value.status == 503

    @pytest.mark.asyncio
    async def test_not_configured(self, http_client):
        with patch.object(db_config, "supabase_url", None):
            with pytest.raises(AuthError) as exc:
                await SupabaseAuth(http_client=http_client).get_user("tok")
        assert exc.value.status == 503
        http_client.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sign_up_error(self, auth, http_client):
        http_client.fetch.return_value = reply(422, {"msg": "User already registered"})

        with pytest.raises(AuthError) as exc:
            await auth.sign_up("a@example.com", "secret")

        assert exc.value.message == "User already registered"

    @pytest.mark.asyncio
    async def test_get_user_is_cached(self, auth, http_client):
        http_client.fetch.return_value = reply(200, {"id": "u1", "email": "a@example.com"})

        first = await auth.get_user("tok")
        second = await auth.get_user("tok")

        assert first["id"] == "u1"
        assert second == first
        assert http_client.fetch.await_count == 1
        assert http_client.fetch.await_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_invalid_token_not_cached(self, auth, http_client):
        http_client.fetch.return_value = reply(401, {"msg": "invalid JWT"})

        assert await auth.get_user("bad") is None
        assert await auth.get_user("bad") is None
        assert http_client.fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_sign_out_drops_cached_user(self, auth, http_client):
        http_client.fetch.side_effect = [
            reply(200, {"id": "u1"}),
            reply(204),
            reply(401, {"msg": "invalid JWT"}),
        ]

        assert await auth.get_user("tok") is not None
        await auth.sign_out("tok")
        assert await auth.get_user("tok") is None


def test_access_token_prefers_bearer():
    request = make_request(headers={"Authorization": "Bearer header-token"}, cookies={COOKIE_NAME: "cookie-token"})
    assert get_access_token(request) == "header-token"


def test_access_token_from_cookie():
    assert get_access_token(make_request(cookies={COOKIE_NAME: "cookie-token"})) == "cookie-token"
    assert get_access_token(make_request()) is None


@pytest.mark.asyncio
async def test_require_user_without_token():
    with pytest.raises(HTTPException) as exc:
        await require_user(make_request())
    assert exc.value.status_code == 401
    assert exc.value.detail == "Authentication required"


@pytest.mark.asyncio
async def test_require_user_with_unreachable_provider():
    with patch("security.session.auth_client.get_user", AsyncMock(side_effect=AuthError("down", status=503))):
        with pytest.raises(HTTPException) as exc:
            await require_user(make_request(cookies={COOKIE_NAME: "tok"}))
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_require_user_returns_user():
    with patch("security.session.auth_client.get_user", AsyncMock(return_value={"id": "u1"})):
        user = await require_user(make_request(headers={"Authorization": "Bearer tok"}))
    assert user == {"id": "u1"}


def test_public_user_fields():
    user = public_user({"id": "u1", "email": "a@example.com", "aud": "authenticated", "role": "authenticated"})
    assert user["id"] == "u1"
    assert "role" not in user


def test_verify_admin_token():
    with patch.dict(os.environ, {"ADMIN_API_TOKEN": "admin-secret"}):
        assert verify_admin_token("admin-secret") is True
        assert verify_admin_token("wrong") is False
        assert verify_admin_token(None) is False
        assert verify_admin_token("admin-sécret") is False
    with patch.dict(os.environ, {}, clear=True):
        assert verify_admin_token("admin-secret") is False
