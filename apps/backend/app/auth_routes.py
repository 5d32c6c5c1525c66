"""
User authentication endpoints.
Login, registration and logout are delegated to Supabase Auth; the access
token is kept in an httpOnly cookie.
"""
import re
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from app.rate_limit import limiter, RATE_LIMIT_LOGIN
from core import store
from security.session import (
    AuthError,
    auth_client,
    clear_session_cookie,
    get_access_token,
    public_user,
    require_user,
    set_session_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 6


class Credentials(BaseModel):
    email: str = ""
    password: str = ""


def _register_error(message: str) -> str:
    if "already registered" in message:
        return "This email is already registered. Use another email or log in."
    if "Invalid email" in message or "invalid format" in message:
        return "Invalid email address"
    if "Password" in message or "password" in message:
        return "Password is not strong enough"
    return "Registration failed"


def _load_profile(user_id: str) -> dict:
    profile = store.get_profile(user_id)
    if profile is None:
        logger.error(f"[auth] No profile row for user {user_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch user profile")
    return profile


@router.post("/login")
@limiter.limit(RATE_LIMIT_LOGIN)
async def login(request: Request, response: Response, body: Credentials):
    """
    Sign in with email and password.
    Sets the session cookie and returns the user with their profile.
    """
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    client_host = request.client.host if request.client else 'unknown'
    try:
        session = await auth_client.sign_in(body.email, body.password)
    except AuthError as e:
        logger.warning(f"[auth] Login failed from {client_host}: {e.message}")
        raise HTTPException(status_code=e.status, detail=e.message)

    user = session.get("user") or {}
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Authentication failed")

    profile = _load_profile(user["id"])
    set_session_cookie(response, session["access_token"], session.get("expires_in"))
    logger.info(f"[auth] Login successful for {user['id']}")

    return {
        "success": True,
        "data": {"user": public_user(user), "profile": profile},
        "error": None,
    }


@router.post("/register")
@limiter.limit(RATE_LIMIT_LOGIN)
async def register(request: Request, response: Response, body: Credentials):
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Please fill in all fields")
    if not EMAIL_RE.match(body.email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    try:
        result = await auth_client.sign_up(body.email, body.password)
    except AuthError as e:
        logger.warning(f"[auth] Registration failed: {e.message}")
        raise HTTPException(status_code=e.status, detail=_register_error(e.message))

    # GoTrue returns the user at top level, or nested with a session when
    # email confirmation is disabled
    user = result.get("user") or result
    if not user.get("id"):
        raise HTTPException(status_code=500, detail="Could not create account")

    if result.get("access_token"):
        set_session_cookie(response, result["access_token"], result.get("expires_in"))

    message = (
        "Registration successful!"
        if user.get("email_confirmed_at")
        else "Registration successful! Please check your email to verify your account."
    )
    return {"success": True, "data": {"user": public_user(user)}, "error": None, "message": message}


@router.post("/logout")
async def logout(request: Request, response: Response):
    token = get_access_token(request)
    clear_session_cookie(response)
    if token:
        try:
            await auth_client.sign_out(token)
        except AuthError as e:
            raise HTTPException(status_code=e.status, detail=e.message)
    return {"success": True, "data": None, "error": None}


@router.get("/session")
async def session(user: dict = Depends(require_user)):
    """Current user and profile for the session cookie."""
    profile = _load_profile(user["id"])
    return {
        "success": True,
        "data": {"user": public_user(user), "profile": profile},
        "error": None,
    }
