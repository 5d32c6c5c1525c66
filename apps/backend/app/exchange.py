"""
Exchange endpoints: the marketplace of other users' campaigns, performing
and verifying actions, and exchange statistics.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
import psycopg2

from app.rate_limit import limiter, RATE_LIMIT_ACTION
from core import store
from core.credits import check_action_eligibility, is_valid_action_type, map_action_error
from core.exchange import (
    DEFAULT_PAGE_SIZE,
    filter_available,
    format_exchange_campaign,
    format_user_exchange_stats,
    paginate,
    profile_summary,
    summarize_exchange,
    validate_pagination,
)
from core.store import ActionRejected
from scraper import tiktok_scraper
from scraper.tiktok import MAX_FOLLOWER_COUNT
from scraper.urls import build_video_url
from security.session import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exchange", tags=["exchange"])


class ExchangeActionRequest(BaseModel):
    campaign_id: Optional[str] = None
    action_type: Optional[str] = None
    proof_data: Optional[Dict[str, Any]] = None


class PerformActionRequest(BaseModel):
    campaignId: Optional[str] = None
    actionType: Optional[str] = None
    proofData: Optional[Dict[str, Any]] = None


class VerifyActionRequest(BaseModel):
    campaignId: Optional[str] = None
    actionType: Optional[str] = None
    videoLink: Optional[str] = None
    targetUsername: Optional[str] = None


def _positive_int(value: Optional[str]) -> Optional[int]:
    try:
        number = int(value) if value else None
    except ValueError:
        return None
    return number if number and number > 0 else None


@router.get("")
async def list_exchange(
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    interaction_type: Optional[str] = None,
    category: Optional[str] = None,
    min_credits: Optional[str] = None,
    max_credits: Optional[str] = None,
    search: Optional[str] = None,
    user: dict = Depends(require_user),
):
    """
    Campaigns the user can act on.

    Completed campaigns (current_count >= target_count) are filtered out
    before paginating, so `total` counts only campaigns that still need
    actions.
    """
    error = validate_pagination(page, limit)
    if error:
        raise HTTPException(status_code=400, detail=error)

    rows = store.list_exchange_campaigns(
        user["id"],
        interaction_type=interaction_type if is_valid_action_type(interaction_type) else None,
        category=category or None,
        min_credits=_positive_int(min_credits),
        max_credits=_positive_int(max_credits),
        search=(search or "").strip() or None,
    )
    page_rows, pagination = paginate(filter_available(rows), page, limit)

    return {
        "success": True,
        "data": {
            "campaigns": [format_exchange_campaign(row) for row in page_rows],
            "pagination": pagination,
        },
        "error": None,
    }


async def _enrich_campaign(campaign: Dict[str, Any]) -> Dict[str, Any]:
    """Attach TikTok video_info / user_info; lookups that fail leave the campaign as is."""
    username = campaign.get("target_tiktok_username")
    if campaign.get("campaign_type") == "video" and campaign.get("tiktok_video_id") and username:
        ok, video, error = await tiktok_scraper.get_video_info(
            build_video_url(username, campaign["tiktok_video_id"])
        )
        if ok:
            campaign["video_info"] = video
        else:
            logger.info(f"[exchange] No video info for campaign {campaign.get('id')}: {error}")
    elif campaign.get("campaign_type") == "follow" and username:
        ok, info, error = await tiktok_scraper.get_profile(username)
        if ok:
            campaign["user_info"] = profile_summary(info)
        else:
            logger.info(f"[exchange] No profile info for campaign {campaign.get('id')}: {error}")
    return campaign


@router.get("/campaigns")
async def list_exchange_campaigns(
    type: Optional[str] = None,
    status: Optional[str] = None,
    sortBy: Optional[str] = None,
    user: dict = Depends(require_user),
):
    profile = store.get_profile(user["id"])
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    campaigns = store.list_campaigns_for_exchange(
        user["id"], campaign_type=type, status=status, sort_by=sortBy
    )
    enriched = await asyncio.gather(*(_enrich_campaign(c) for c in campaigns))
    return {"success": True, "data": list(enriched), "error": None}


@router.post("/action")
@limiter.limit(RATE_LIMIT_ACTION)
async def exchange_action(request: Request, body: ExchangeActionRequest, user: dict = Depends(require_user)):
    """Perform an action through the process_action procedure."""
    if not body.campaign_id or not body.action_type:
        raise HTTPException(status_code=400, detail="Campaign ID and action type are required")
    if not is_valid_action_type(body.action_type):
        raise HTTPException(status_code=400, detail="Invalid action type")

    try:
        result = store.process_action(user["id"], body.campaign_id, body.action_type, body.proof_data)
    except psycopg2.Error as e:
        logger.error(f"[exchange] Process action error: {e}", exc_info=True)
        raise HTTPException(status_code=400, detail="Failed to process action")

    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("message") or "Action failed")

    credits_earned = result.get("credits_earned")
    return {
        "success": True,
        "data": {
            "credits_earned": credits_earned,
            "message": f"{body.action_type} action completed! +{credits_earned} credits earned",
        },
        "error": None,
    }


@router.post("/perform-action")
@limiter.limit(RATE_LIMIT_ACTION)
async def perform_action(request: Request, body: PerformActionRequest, user: dict = Depends(require_user)):
    """
    Record an action after checking the campaign can accept it.

    The action insert triggers credit the performer, debit the campaign and
    complete it when the target is reached; the new balance is read back
    afterwards.
    """
    if not body.campaignId or not is_valid_action_type(body.actionType):
        raise HTTPException(status_code=400, detail="Campaign ID and a valid action type are required")

    profile = store.get_profile(user["id"])
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    campaign = store.get_campaign(body.campaignId)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")

    already_performed = store.action_exists(user["id"], body.campaignId, body.actionType)
    error = check_action_eligibility(campaign, user["id"], already_performed)
    if error:
        raise HTTPException(status_code=400, detail=error)

    try:
        action = store.insert_action(
            user["id"],
            body.campaignId,
            body.actionType,
            campaign["credits_per_action"],
            body.proofData,
        )
    except ActionRejected as e:
        mapped = map_action_error(str(e))
        if mapped:
            raise HTTPException(status_code=400, detail=mapped)
        logger.error(f"[exchange] Error creating action: {e}")
        raise HTTPException(status_code=500, detail="Failed to create action")

    updated = store.get_profile(user["id"]) or {}
    logger.info(f"[exchange] {user['id']} performed {body.actionType} on {body.campaignId}")
    return {
        "success": True,
        "data": {
            "action": action,
            "creditsEarned": campaign["credits_per_action"],
            "newBalance": updated.get("credits") or 0,
        },
        "error": None,
    }


@router.get("/actions")
async def list_actions(
    campaignId: Optional[str] = None,
    actionType: Optional[str] = None,
    status: Optional[str] = None,
    user: dict = Depends(require_user),
):
    actions = store.list_user_actions(
        user["id"], campaign_id=campaignId, action_type=actionType, status=status
    )
    return {"success": True, "data": actions, "error": None}


@router.get("/stats")
async def exchange_stats(user: dict = Depends(require_user)):
    """Size of the marketplace as seen by the user."""
    campaigns = store.list_active_campaign_summaries(user["id"])
    return {"success": True, "data": summarize_exchange(campaigns), "error": None}


@router.get("/status")
async def exchange_status(user: dict = Depends(require_user)):
    """Per-user exchange statistics from get_user_exchange_stats."""
    try:
        raw = store.get_user_exchange_stats(user["id"])
    except psycopg2.Error as e:
        logger.error(f"[exchange] Error fetching stats with database function: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch exchange statistics")

    if not raw:
        raise HTTPException(status_code=404, detail="No statistics data found")

    return {
        "success": True,
        "data": format_user_exchange_stats(raw),
        "error": None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/tiktok-info")
async def tiktok_info(type: Optional[str] = None, username: Optional[str] = None, videoId: Optional[str] = None):
    if not type or not username:
        raise HTTPException(status_code=400, detail="Missing required parameters")

    if type == "video":
        if not videoId:
            raise HTTPException(status_code=400, detail="Video ID is required for video type")
        ok, video, error = await tiktok_scraper.get_video_info(build_video_url(username, videoId))
        if not ok:
            raise HTTPException(status_code=500, detail=error or "Failed to fetch video info")
        return {"success": True, "data": {"video_info": video}, "error": None}

    if type == "profile":
        ok, info, error = await tiktok_scraper.get_profile(username)
        if not ok:
            raise HTTPException(status_code=500, detail=error or "Failed to fetch profile info")
        return {"success": True, "data": {"user_info": profile_summary(info)}, "error": None}

    raise HTTPException(status_code=400, detail="Invalid type parameter")


@router.post("/verify-action")
async def verify_action(body: VerifyActionRequest, user: dict = Depends(require_user)):
    """
    Check on TikTok that an action really happened.

    follow: the performer's TikTok handle appears in the target's follower list
    like: returns the video's current digg count for the client to compare
    """
    profile = store.get_profile(user["id"])
    if not profile or not profile.get("tiktok_username"):
        raise HTTPException(status_code=400, detail="Please connect your TikTok account first")

    campaign = store.get_campaign(body.campaignId) if body.campaignId else None
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")

    if store.action_exists(user["id"], body.campaignId, body.actionType):
        raise HTTPException(status_code=400, detail="You have already completed this action")

    if body.actionType == "follow":
        target = body.targetUsername or campaign.get("target_tiktok_username")
        ok, followers, _, _, error = await tiktok_scraper.get_followers(
            username=target, count=MAX_FOLLOWER_COUNT, refresh=True
        )
        if not ok:
            logger.warning(f"[exchange] Follower list unavailable for @{target}: {error}")
            raise HTTPException(status_code=500, detail="Failed to fetch followers list")

        handle = profile["tiktok_username"].lower()
        is_following = any(
            (follower.get("user") or {}).get("uniqueId", "").lower() == handle
            for follower in followers
        )
        return {"success": True, "data": {"verified": is_following, "isFollowing": is_following}, "error": None}

    if body.actionType == "like":
        video_link = body.videoLink
        if not video_link and campaign.get("tiktok_video_id") and campaign.get("target_tiktok_username"):
            video_link = build_video_url(campaign["target_tiktok_username"], campaign["tiktok_video_id"])

        ok, video, error = await tiktok_scraper.get_video_info(video_link or "", refresh=True)
        if not ok:
            logger.warning(f"[exchange] Video info unavailable for {video_link}: {error}")
            raise HTTPException(status_code=500, detail="Failed to fetch video information")

        return {
            "success": True,
            "data": {"verified": True, "currentCount": video["diggCount"], "videoData": video},
            "error": None,
        }

    raise HTTPException(status_code=400, detail="Action type not supported for verification")
