"""
User sessions delegated to Supabase Auth (GoTrue REST).

The access token returned by GoTrue is kept in an httpOnly cookie; requests
may also send it as `Authorization: Bearer <token>`. Token validation is a
call to /auth/v1/user, cached briefly per token.
"""
import os
import json
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional, Tuple

import httpx
from fastapi import HTTPException, Request, Response

from app.db_config import db_config
from core.cache import TTLCache
from core.net import HTTPClient

logger = logging.getLogger(__name__)

COOKIE_NAME = "tikgrow_session"
DEFAULT_SESSION_MAX_AGE = 3600
USER_CACHE_TTL = 30


class AuthError(Exception):
    """Auth provider refused or failed a request"""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def is_dev_mode() -> bool:
    return os.getenv("TIKGROW_ENV", "").lower() == "dev"


def _error_message(payload: Dict[str, Any], default: str) -> str:
    for key in ("error_description", "msg", "message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return default


class SupabaseAuth:
    """Minimal GoTrue client: password sign-in, sign-up, sign-out, user lookup"""

    def __init__(self, http_client: Optional[HTTPClient] = None):
        self.http_client = http_client or HTTPClient(timeout=10.0)
        self._user_cache = TTLCache(USER_CACHE_TTL)

    def _base_url(self) -> str:
        if not db_config.is_auth_enabled:
            raise AuthError("Authentication is not configured", status=503)
        return db_config.supabase_url.rstrip('/') + "/auth/v1"

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": db_config.supabase_anon_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _call(
        self,
        path: str,
        method: str = "GET",
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
    ) -> Tuple[int, Dict[str, Any]]:
        url = self._base_url() + path
        try:
            status, _, body, _, _ = await self.http_client.fetch(
                url,
                method=method,
                headers=self._headers(access_token),
                params=params,
                json_data=json_data,
            )
        except httpx.HTTPError as e:
            logger.error(f"[auth] Auth provider unreachable: {e}")
            raise AuthError("Authentication service unavailable", status=503)

        payload: Dict[str, Any] = {}
        if body:
            try:
                parsed = json.loads(body)
                if isinstance(parsed, dict):
                    payload = parsed
            except ValueError:
                logger.warning(f"[auth] Non-JSON response from {path} ({status})")
        return status, payload

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Returns the GoTrue session {access_token, expires_in, user, ...}."""
        status, payload = await self._call(
            "/token",
            method="POST",
            params={"grant_type": "password"},
            json_data={"email": email, "password": password},
        )
        if status != 200 or not payload.get("access_token"):
            raise AuthError(_error_message(payload, "Authentication failed"), status=401)
        return payload

    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """Returns the created user; a session is included when confirmation is off."""
        status, payload = await self._call(
            "/signup",
            method="POST",
            json_data={"email": email, "password": password},
        )
        if status not in (200, 201):
            raise AuthError(_error_message(payload, "Registration failed"), status=400)
        return payload

    async def sign_out(self, access_token: str):
        self._user_cache.clear(self._cache_key(access_token))
        status, payload = await self._call("/logout", method="POST", access_token=access_token)
        # 401 means the token was already invalid
        if status not in (200, 204, 401):
            raise AuthError(_error_message(payload, "Logout failed"), status=500)

    @staticmethod
    def _cache_key(access_token: str) -> str:
        return "session_" + hashlib.sha256(access_token.encode()).hexdigest()

    async def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Resolve a token to its user, or None when the token is not valid."""

        async def fetch_user():
            status, payload = await self._call("/user", access_token=access_token)
            if status != 200 or not payload.get("id"):
                return None
            return payload

        return await self._user_cache.get_or_fetch(
            self._cache_key(access_token),
            fetch_user,
            should_cache=lambda user: user is not None,
        )


auth_client = SupabaseAuth()


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """The user fields exposed by the auth endpoints."""
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "email_confirmed_at": user.get("email_confirmed_at"),
        "last_sign_in_at": user.get("last_sign_in_at"),
        "created_at": user.get("created_at"),
        "updated_at": user.get("updated_at"),
    }


def set_session_cookie(response: Response, access_token: str, max_age: Optional[int] = None):
    """Set httpOnly session cookie."""
    response.set_cookie(
        key=COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=not is_dev_mode(),
        samesite="lax",
        path="/",
        max_age=max_age or DEFAULT_SESSION_MAX_AGE,
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(key=COOKIE_NAME, path="/")


def get_access_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)


async def get_current_user(request: Request) -> Optional[Dict[str, Any]]:
    """
    Current Supabase user for the request, or None.
    An unreachable auth provider counts as not authenticated.
    """
    token = get_access_token(request)
    if not token:
        return None
    try:
        return await auth_client.get_user(token)
    except AuthError as e:
        logger.warning(f"[auth] Could not validate session: {e.message}")
        return None


async def require_user(request: Request) -> Dict[str, Any]:
    """
    FastAPI dependency that requires an authenticated user.
    Raises 401 HTTPException if not authenticated.
    """
    user = await get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def verify_admin_token(token: Optional[str]) -> bool:
    """
    Check an admin token against ADMIN_API_TOKEN (constant-time).
    Always False when ADMIN_API_TOKEN is unset.
    """
    admin_token = os.getenv("ADMIN_API_TOKEN")
    if not admin_token or not token:
        return False
    return secrets.compare_digest(token.encode("utf-8"), admin_token.encode("utf-8"))
