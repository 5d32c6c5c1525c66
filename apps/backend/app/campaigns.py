"""
Campaign endpoints: browse, create, pause/resume, delete with refund, and
perform or list actions on a single campaign.
"""
import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
import psycopg2

from app.rate_limit import limiter, RATE_LIMIT_ACTION
from core import store
from core.credits import (
    CAMPAIGN_STATUSES,
    DEFAULT_CATEGORY,
    campaign_cost,
    is_valid_action_type,
    validate_campaign_request,
)
from core.exchange import build_pagination, validate_pagination
from scraper.urls import extract_video_id
from security.session import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


class CreateCampaignRequest(BaseModel):
    video_url: Optional[str] = None
    video_title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    interaction_type: Optional[str] = None
    target_count: Optional[int] = None
    credits_per_action: Optional[float] = None


class UpdateCampaignRequest(BaseModel):
    status: Optional[str] = None


class CampaignActionRequest(BaseModel):
    action_type: Optional[str] = None
    proof_data: Optional[Dict[str, Any]] = None


@router.get("")
async def list_campaigns(
    page: int = 1,
    limit: int = 10,
    interaction_type: Optional[str] = None,
    category: Optional[str] = None,
    min_credits: Optional[int] = None,
    max_credits: Optional[int] = None,
    user: dict = Depends(require_user),
):
    """Active campaigns from other users that still have credits."""
    error = validate_pagination(page, limit)
    if error:
        raise HTTPException(status_code=400, detail=error)

    campaigns, total = store.list_active_campaigns(
        user["id"],
        page=page,
        limit=limit,
        interaction_type=interaction_type,
        category=category,
        min_credits=min_credits,
        max_credits=max_credits,
    )
    return {
        "success": True,
        "data": {"campaigns": campaigns, "pagination": build_pagination(page, limit, total)},
        "error": None,
    }


@router.post("")
async def create_campaign(body: CreateCampaignRequest, user: dict = Depends(require_user)):
    """
    Create a campaign and debit its full cost up front.

    The cost is target_count * credits_per_action; the debit, the video row
    and the campaign row are written by create_campaign_transaction.
    """
    data = body.model_dump()
    error = validate_campaign_request(data)
    if error:
        raise HTTPException(status_code=400, detail=error)

    profile = store.get_profile(user["id"])
    if not profile:
        raise HTTPException(status_code=404, detail="User profile not found")

    total_cost = campaign_cost(body.target_count, body.credits_per_action)
    credits = profile.get("credits") or 0
    if credits < total_cost:
        raise HTTPException(
            status_code=400,
            detail=f"Insufficient credits. Need {total_cost:g}, have {credits:g}",
        )

    try:
        campaign_id = store.create_campaign_transaction(
            user_id=user["id"],
            video_url=body.video_url,
            tiktok_video_id=extract_video_id(body.video_url),
            video_title=body.video_title or "",
            description=body.description or "",
            category=body.category or DEFAULT_CATEGORY,
            interaction_type=body.interaction_type,
            target_count=body.target_count,
            credits_per_action=body.credits_per_action,
            total_credits=total_cost,
        )
    except psycopg2.Error as e:
        logger.error(f"[campaigns] Campaign creation error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create campaign")

    logger.info(f"[campaigns] {user['id']} created campaign {campaign_id} ({body.interaction_type} x{body.target_count})")
    return {
        "success": True,
        "data": {"campaign_id": campaign_id, "message": "Campaign created successfully"},
        "error": None,
    }


@router.get("/{campaign_id}")
async def get_campaign(campaign_id: str, user: dict = Depends(require_user)):
    campaign = store.get_active_campaign_view(campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return {"success": True, "data": campaign, "error": None}


@router.put("/{campaign_id}")
async def update_campaign(campaign_id: str, body: UpdateCampaignRequest, user: dict = Depends(require_user)):
    """Pause or resume a campaign owned by the caller."""
    if body.status not in CAMPAIGN_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status. Must be active or paused")

    campaign = store.update_campaign_status(campaign_id, user["id"], body.status)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found or unauthorized")

    return {
        "success": True,
        "data": campaign,
        "error": None,
        "message": f"Campaign {body.status} successfully",
    }


@router.delete("/{campaign_id}")
async def delete_campaign(campaign_id: str, user: dict = Depends(require_user)):
    """Delete a campaign that has not received any action; remaining credits are refunded."""
    campaign = store.get_owned_campaign(campaign_id, user["id"])
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found or unauthorized")

    if (campaign.get("current_count") or 0) > 0:
        raise HTTPException(status_code=400, detail="Cannot delete campaign that has received actions")

    try:
        store.delete_campaign_with_refund(campaign_id, user["id"])
    except psycopg2.Error as e:
        logger.error(f"[campaigns] Delete campaign error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete campaign")

    return {"success": True, "data": None, "error": None, "message": "Campaign deleted and credits refunded"}


@router.post("/{campaign_id}/actions")
@limiter.limit(RATE_LIMIT_ACTION)
async def perform_campaign_action(
    request: Request,
    campaign_id: str,
    body: CampaignActionRequest,
    user: dict = Depends(require_user),
):
    if not is_valid_action_type(body.action_type):
        raise HTTPException(status_code=400, detail="Invalid action type")

    try:
        result = store.process_action(user["id"], campaign_id, body.action_type, body.proof_data)
    except psycopg2.Error as e:
        logger.error(f"[campaigns] Process action error: {e}", exc_info=True)
        raise HTTPException(status_code=400, detail="Failed to process action")

    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("message") or "Action failed")

    credits_earned = result.get("credits_earned")
    return {
        "success": True,
        "data": {
            "credits_earned": credits_earned,
            "message": f"{body.action_type} action completed! +{credits_earned} credits",
        },
        "error": None,
    }


@router.get("/{campaign_id}/actions")
async def list_campaign_actions(
    campaign_id: str,
    page: int = 1,
    limit: int = 20,
    user: dict = Depends(require_user),
):
    """Action history of a campaign, visible to its owner only."""
    campaign = store.get_campaign(campaign_id)
    if not campaign or str(campaign.get("user_id")) != str(user["id"]):
        raise HTTPException(status_code=404, detail="Campaign not found or unauthorized")

    actions = store.list_campaign_actions(campaign_id, page=max(1, page), limit=max(1, limit))
    return {"success": True, "data": actions, "error": None}
