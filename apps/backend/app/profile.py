"""
Profile endpoints: notification settings, TikTok account connection and the
user's own campaigns and action history.
"""
import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
import psycopg2

from app.rate_limit import limiter, RATE_LIMIT_ACTION
from core import store
from core.credits import is_valid_action_type
from core.exchange import (
    action_breakdown,
    action_stats_from_rows,
    build_pagination,
    campaign_stats_from_rows,
    format_campaign_stats,
    validate_pagination,
)
from scraper import tiktok_scraper
from scraper.urls import clean_username, is_valid_username
from security.session import require_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["profile"])

MAX_HISTORY_PAGE_SIZE = 100


class ProfileUpdateRequest(BaseModel):
    notification_settings: Optional[Dict[str, Any]] = None


class ConnectTikTokRequest(BaseModel):
    tiktok_username: Optional[str] = None


class UserActionRequest(BaseModel):
    campaign_id: Optional[str] = None
    action_type: Optional[str] = None
    proof_data: Optional[Dict[str, Any]] = None


@router.get("/api/profile")
async def get_profile(user: dict = Depends(require_user)):
    profile = store.get_profile(user["id"])
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return {"success": True, "data": {"profile": profile}, "error": None}


@router.put("/api/profile")
async def update_profile(body: ProfileUpdateRequest, user: dict = Depends(require_user)):
    """Only notification_settings is user-editable."""
    if body.notification_settings:
        profile = store.update_notification_settings(user["id"], body.notification_settings)
    else:
        profile = store.get_profile(user["id"])
    if not profile:
        raise HTTPException(status_code=400, detail="Failed to update profile")
    return {"success": True, "data": {"profile": profile}, "error": None}


def _handle_owner(username: str, user_id: str) -> Optional[Dict[str, Any]]:
    return store.find_profile_by_tiktok_username(username, user_id)


@router.get("/api/user/tiktok")
async def verify_tiktok(username: Optional[str] = None, user: dict = Depends(require_user)):
    """Look up a TikTok profile before connecting it."""
    if not username:
        raise HTTPException(status_code=400, detail="Username is required")

    username = clean_username(username)
    if not is_valid_username(username):
        raise HTTPException(status_code=400, detail="Invalid TikTok username format")

    if _handle_owner(username, user["id"]):
        raise HTTPException(
            status_code=409,
            detail=f"TikTok username @{username} is already connected to another account",
        )

    ok, info, error = await tiktok_scraper.get_profile(username)
    if not ok:
        logger.info(f"[profile] TikTok lookup failed for @{username}: {error}")
        raise HTTPException(
            status_code=404,
            detail=f"TikTok profile @{username} not found or is private. Please check the username and make sure the profile is public.",
        )

    tiktok_user, stats = info["user"], info["stats"]
    return {
        "success": True,
        "data": {
            "username": tiktok_user["uniqueId"],
            "nickname": tiktok_user["nickname"],
            "avatar": tiktok_user["avatarMedium"],
            "verified": tiktok_user["verified"],
            "privateAccount": tiktok_user["privateAccount"],
            "signature": tiktok_user["signature"],
            "stats": {
                "followers": stats["followerCount"],
                "following": stats["followingCount"],
                "likes": stats["heartCount"],
                "videos": stats["videoCount"],
            },
        },
        "error": None,
    }


@router.post("/api/user/tiktok")
async def connect_tiktok(body: ConnectTikTokRequest, user: dict = Depends(require_user)):
    """
    Connect a public TikTok account to the profile.
    One TikTok handle can belong to one TikGrow account only.
    """
    if not body.tiktok_username:
        raise HTTPException(status_code=400, detail="TikTok username is required")

    username = clean_username(body.tiktok_username)
    if not is_valid_username(username):
        raise HTTPException(status_code=400, detail="Invalid TikTok username format")

    if _handle_owner(username, user["id"]):
        raise HTTPException(
            status_code=409,
            detail=f"TikTok username @{username} is already connected to another account",
        )

    ok, info, error = await tiktok_scraper.get_profile(username)
    if not ok:
        logger.info(f"[profile] TikTok lookup failed for @{username}: {error}")
        raise HTTPException(status_code=404, detail=f"TikTok profile @{username} not found or is private")

    if info["user"]["privateAccount"]:
        raise HTTPException(
            status_code=400,
            detail=f"TikTok profile @{username} is private. Please make your profile public to connect.",
        )

    try:
        profile = store.update_tiktok_username(user["id"], username)
    except psycopg2.IntegrityError:
        # Unique index on tiktok_username lost a race with another account
        raise HTTPException(
            status_code=409,
            detail=f"TikTok username @{username} is already connected to another account",
        )
    if not profile:
        raise HTTPException(status_code=500, detail="Failed to update profile")

    logger.info(f"[profile] {user['id']} connected @{username}")
    return {
        "success": True,
        "data": profile,
        "error": None,
        "message": f"TikTok account @{username} connected successfully!",
    }


@router.delete("/api/user/tiktok")
async def disconnect_tiktok(user: dict = Depends(require_user)):
    profile = store.update_tiktok_username(user["id"], None)
    if not profile:
        raise HTTPException(status_code=500, detail="Failed to disconnect TikTok account")
    return {
        "success": True,
        "data": profile,
        "error": None,
        "message": "TikTok account disconnected successfully",
    }


@router.get("/api/user/campaigns")
async def user_campaigns(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    interaction_type: Optional[str] = None,
    user: dict = Depends(require_user),
):
    error = validate_pagination(page, limit, max_limit=MAX_HISTORY_PAGE_SIZE)
    if error:
        raise HTTPException(status_code=400, detail=error)

    campaigns, total = store.list_user_campaigns(
        user["id"], page=page, limit=limit, status=status, interaction_type=interaction_type
    )
    return {
        "success": True,
        "data": {"campaigns": campaigns, "pagination": build_pagination(page, limit, total)},
        "error": None,
    }


@router.get("/api/user/campaigns/stats")
async def user_campaign_stats(user: dict = Depends(require_user)):
    """
    Campaign and action statistics for the dashboard.
    Uses the analytics functions when installed, otherwise aggregates rows.
    """
    user_id = user["id"]

    campaign_stats = store.call_user_function("get_campaign_analytics", user_id)
    if not campaign_stats:
        campaign_stats = campaign_stats_from_rows(store.campaign_rows_for_stats(user_id))

    action_stats = store.call_user_function("get_user_action_stats", user_id)
    if not action_stats:
        action_stats = action_stats_from_rows(store.action_rows_for_stats(user_id))

    recent = store.recent_actions_on_user_campaigns(user_id)
    return {
        "success": True,
        "data": format_campaign_stats(campaign_stats, action_stats, recent),
        "error": None,
    }


@router.get("/api/user/actions")
async def user_actions(
    page: int = 1,
    limit: int = 20,
    action_type: Optional[str] = None,
    user: dict = Depends(require_user),
):
    """Actions the user performed, with totals and a per-type breakdown."""
    error = validate_pagination(page, limit, max_limit=MAX_HISTORY_PAGE_SIZE)
    if error:
        raise HTTPException(status_code=400, detail=error)

    action_type = action_type if is_valid_action_type(action_type) else None
    actions, total = store.list_action_history(user["id"], page=page, limit=limit, action_type=action_type)
    rows = store.action_rows_for_stats(user["id"])

    return {
        "success": True,
        "data": {
            "actions": actions,
            "stats": {
                "totalCreditsEarned": sum(r.get("credits_earned") or 0 for r in rows),
                "totalActions": total,
                "actionBreakdown": action_breakdown(rows),
            },
            "pagination": build_pagination(page, limit, total),
        },
        "error": None,
    }


@router.post("/api/user/actions")
@limiter.limit(RATE_LIMIT_ACTION)
async def create_user_action(request: Request, body: UserActionRequest, user: dict = Depends(require_user)):
    if not body.campaign_id or not body.action_type:
        raise HTTPException(status_code=400, detail="Campaign ID and action type are required")
    if not is_valid_action_type(body.action_type):
        raise HTTPException(status_code=400, detail="Invalid action type")

    try:
        result = store.process_action(user["id"], body.campaign_id, body.action_type, body.proof_data)
    except psycopg2.Error as e:
        logger.error(f"[profile] Process action error: {e}", exc_info=True)
        raise HTTPException(status_code=400, detail="Failed to process action")

    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("message") or "Action failed")

    credits_earned = result.get("credits_earned")
    return {
        "success": True,
        "data": {
            "credits_earned": credits_earned,
            "message": f"{body.action_type} action completed successfully! +{credits_earned} credits earned",
        },
        "error": None,
    }
