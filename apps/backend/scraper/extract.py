"""
Embedded-JSON extraction from TikTok HTML pages.

TikTok server-renders its pages with the full app state serialized into a
<script> tag. The tag id has changed over time, so all known ids are tried
in order of recency.
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple
from bs4 import BeautifulSoup

from scraper.errors import TikTokNotFoundError, TikTokParseError
from scraper.normalize import parse_count

logger = logging.getLogger(__name__)

# Script ids, newest layout first
EMBEDDED_SCRIPT_IDS = [
    "__UNIVERSAL_DATA_FOR_REHYDRATION__",
    "SIGI_STATE",
    "__NEXT_DATA__",
]

LOGIN_WALL_MARKERS = [
    "signup or login",
    "log in to tiktok",
    "verify it's you",
    "tiktok-captcha",
    "captcha_container",
]

# TikTok status codes meaning "no such user/item"
NOT_FOUND_STATUS_CODES = {10202, 10221, 10204, 10216}

DOM_COUNTERS = {
    "followers-count": "followerCount",
    "following-count": "followingCount",
    "likes-count": "heartCount",
}


def get_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, 'lxml')


def extract_embedded_json(html: str) -> Tuple[str, Dict[str, Any]]:
    """
    Find and parse the embedded app state.

    Returns:
        (script_id, parsed_json)

    Raises:
        TikTokParseError when no known script block holds valid JSON
    """
    soup = get_soup(html)
    for script_id in EMBEDDED_SCRIPT_IDS:
        script = soup.find('script', id=script_id)
        if not script or not script.string:
            continue
        try:
            data = json.loads(script.string)
        except json.JSONDecodeError as e:
            logger.debug(f"[extract] {script_id} is not valid JSON: {e}")
            continue
        if isinstance(data, dict):
            return script_id, data

    raise TikTokParseError("No embedded data found in TikTok page", code="no_embedded_json")


def looks_like_login_wall(html: str, final_url: str = "") -> bool:
    url = (final_url or "").lower()
    if "/login" in url or "/signup" in url:
        return True
    text = (html or "").lower()
    return any(marker in text for marker in LOGIN_WALL_MARKERS)


def _check_status(detail: Dict[str, Any], what: str):
    status_code = detail.get("statusCode")
    if status_code in (None, 0):
        return
    message = detail.get("statusMsg") or f"{what} not found"
    if status_code in NOT_FOUND_STATUS_CODES:
        raise TikTokNotFoundError(message, code=str(status_code), status=404)
    raise TikTokParseError(message, code=str(status_code))


def find_user_payload(data: Dict[str, Any], username: str) -> Optional[Dict[str, Any]]:
    """
    Locate {user, stats} for a profile page.

    Raises TikTokNotFoundError when the page reports the user missing.
    """
    scope = data.get("__DEFAULT_SCOPE__")
    if isinstance(scope, dict):
        detail = scope.get("webapp.user-detail") or {}
        _check_status(detail, "User")
        user_info = detail.get("userInfo") or {}
        if user_info.get("user"):
            return {
                "user": user_info["user"],
                "stats": user_info.get("stats") or user_info["user"].get("stats") or {},
                "statsV2": user_info.get("statsV2") or {},
            }

    user_module = data.get("UserModule")
    if isinstance(user_module, dict):
        users = user_module.get("users") or {}
        stats = user_module.get("stats") or {}
        wanted = username.lower()
        for key, user in users.items():
            if key.lower() == wanted or str(user.get("uniqueId", "")).lower() == wanted:
                return {"user": user, "stats": stats.get(key) or user.get("stats") or {}}

    page_props = (data.get("props") or {}).get("pageProps") or {}
    if page_props:
        _check_status(page_props, "User")
        user_info = page_props.get("userInfo") or {}
        if user_info.get("user"):
            return {"user": user_info["user"], "stats": user_info.get("stats") or {}}

    return None


def find_item_payload(data: Dict[str, Any], video_id: str) -> Optional[Dict[str, Any]]:
    """
    Locate the itemStruct for a video page.

    Raises TikTokNotFoundError when the page reports the video missing.
    """
    scope = data.get("__DEFAULT_SCOPE__")
    if isinstance(scope, dict):
        detail = scope.get("webapp.video-detail") or {}
        _check_status(detail, "Video")
        item = (detail.get("itemInfo") or {}).get("itemStruct")
        if item:
            return item

    item_module = data.get("ItemModule")
    if isinstance(item_module, dict):
        item = item_module.get(video_id)
        if isinstance(item, dict):
            return item

    page_props = (data.get("props") or {}).get("pageProps") or {}
    if page_props:
        _check_status(page_props, "Video")
        item = (page_props.get("itemInfo") or {}).get("itemStruct")
        if item:
            return item

    return None


def extract_dom_stats(html: str) -> Dict[str, int]:
    """Fallback: read the rendered profile counters (data-e2e attributes)."""
    soup = get_soup(html)
    stats = {}
    for attr, key in DOM_COUNTERS.items():
        el = soup.find(attrs={"data-e2e": attr})
        if el:
            stats[key] = parse_count(el.get_text(strip=True))
    return stats
