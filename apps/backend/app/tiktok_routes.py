"""
TikTok data proxy: /api/tiktok?action=...

Wraps the scraping client so the front end never talks to tiktok.com
directly.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Header, HTTPException, Query, Request

from app.config import Capabilities
from app.rate_limit import limiter, RATE_LIMIT_TIKTOK
from scraper import tiktok_scraper
from security.session import verify_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tiktok", tags=["tiktok"])

ACTIONS = ["getProfile", "getFollowers", "getVideoInfo", "getPostDetail"]


def _user_agent(request: Request, use_current_ua: Optional[str]) -> Optional[str]:
    if (use_current_ua or "").lower() == "true":
        return request.headers.get("User-Agent") or None
    return None


@router.get("")
@limiter.limit(RATE_LIMIT_TIKTOK)
async def tiktok_proxy(
    request: Request,
    action: Optional[str] = None,
    id: Optional[str] = None,
    uniqueId: Optional[str] = None,
    secUid: Optional[str] = None,
    count: int = Query(30),
    cursor: int = Query(0),
    maxCursor: Optional[int] = None,
    minCursor: int = Query(0),
    videoLink: Optional[str] = None,
    videoId: Optional[str] = None,
    useCurrentUA: Optional[str] = None,
):
    """
    Dispatch on `action`:
    - getProfile: id | uniqueId
    - getFollowers: secUid | uniqueId, count, cursor (maxCursor), minCursor
    - getVideoInfo: videoLink
    - getPostDetail: videoId
    """
    if not Capabilities.is_scraper_enabled():
        raise HTTPException(status_code=503, detail="TikTok data fetching is disabled")

    user_agent = _user_agent(request, useCurrentUA)
    username = uniqueId or id

    if action == "getProfile":
        if not username:
            raise HTTPException(status_code=400, detail="uniqueId is required")
        ok, info, error = await tiktok_scraper.get_profile(username, user_agent=user_agent)
        return {"success": ok, "data": info, "error": error}

    if action == "getFollowers":
        if not secUid and not username:
            raise HTTPException(status_code=400, detail="secUid or uniqueId is required")
        if not secUid:
            ok, resolved, error = await tiktok_scraper.get_sec_uid(username)
            if not ok:
                raise HTTPException(status_code=400, detail=error or "Unable to get user secUid")
            secUid = resolved

        ok, followers, total, response, error = await tiktok_scraper.get_followers(
            username=username,
            sec_uid=secUid,
            count=count,
            max_cursor=maxCursor if maxCursor is not None else cursor,
            min_cursor=minCursor,
            user_agent=user_agent,
        )
        return {
            "success": ok,
            "data": {"followers": followers, "total": total, "responseData": response},
            "error": error,
        }

    if action == "getVideoInfo":
        if not videoLink:
            raise HTTPException(status_code=400, detail="videoLink is required")
        ok, video, error = await tiktok_scraper.get_video_info(videoLink, user_agent=user_agent)
        return {"success": ok, "data": video, "error": error}

    if action == "getPostDetail":
        if not videoId:
            raise HTTPException(status_code=400, detail="videoId is required")
        ok, detail, error = await tiktok_scraper.get_post_detail(videoId, username=username)
        return {"success": ok, "data": detail, "error": error}

    raise HTTPException(
        status_code=400,
        detail=f"Invalid action. Available actions: {', '.join(ACTIONS)}",
    )


@router.get("/cache")
async def cache_stats(x_admin_token: Optional[str] = Header(None)):
    """Scraper cache contents (admin token required)."""
    if not verify_admin_token(x_admin_token):
        raise HTTPException(status_code=401, detail="Admin access required")
    tiktok_scraper.cache.cleanup()
    return {"success": True, "data": tiktok_scraper.cache.stats(), "error": None}


@router.delete("/cache")
async def clear_cache(x_admin_token: Optional[str] = Header(None)):
    if not verify_admin_token(x_admin_token):
        raise HTTPException(status_code=401, detail="Admin access required")
    tiktok_scraper.cache.clear_all()
    logger.info("[tiktok] cache cleared")
    return {"success": True, "data": None, "error": None}
