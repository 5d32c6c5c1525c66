"""
TikTok scraping client: profile, followers and video lookups without an
official API key.

Every public method returns a result tuple whose first element is a success
flag and whose last element is an error message, so route handlers can pass
failures straight through to the client.
"""
import os
import json
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from core.cache import (
    TTLCache,
    DEFAULT_TTL_SECONDS,
    cache_key_user_profile,
    cache_key_user_followers,
    cache_key_video_info,
)
from core.net import HTTPClient, Throttle
from scraper.errors import TikTokError, TikTokBlockedError, TikTokNotFoundError, TikTokParseError
from scraper.extract import (
    extract_embedded_json,
    extract_dom_stats,
    find_item_payload,
    find_user_payload,
    looks_like_login_wall,
)
from scraper.fingerprint import TikTokSession, create_session
from scraper.normalize import (
    FollowersResponse,
    UserInfo,
    UserStats,
    VideoInfo,
    format_count,
    normalize_followers,
    normalize_user_info,
    normalize_video,
)
from scraper.urls import TIKTOK_BASE_URL, build_profile_url, clean_username, validate_tiktok_url

logger = logging.getLogger(__name__)

FOLLOWER_LIST_URL = f"{TIKTOK_BASE_URL}/api/user/list/"
FOLLOWER_SCENE = "67"
DEFAULT_FOLLOWER_COUNT = 30
MAX_FOLLOWER_COUNT = 50

ProfileResult = Tuple[bool, Optional[UserInfo], Optional[str]]
FollowersResult = Tuple[bool, List[Dict[str, Any]], int, Optional[FollowersResponse], Optional[str]]
VideoResult = Tuple[bool, Optional[VideoInfo], Optional[str]]


def _is_success(result: tuple) -> bool:
    return bool(result) and result[0] is True


class TikTokScraper:
    """Stateless TikTok lookups with a short-lived result cache"""

    def __init__(
        self,
        http_client: Optional[HTTPClient] = None,
        cache: Optional[TTLCache] = None,
        cookie: Optional[str] = None,
    ):
        self.http_client = http_client or HTTPClient()
        self.cache = cache or TTLCache(float(os.getenv("TIKTOK_CACHE_TTL", DEFAULT_TTL_SECONDS)))
        self.cookie = cookie
        self.throttle = Throttle(requests_per_minute=int(os.getenv("TIKTOK_THROTTLE_RPM", "30")))

    def _session(self, user_agent: Optional[str] = None) -> TikTokSession:
        return create_session(user_agent=user_agent, cookie=self.cookie)

    async def _get(self, url: str, session: TikTokSession, params: Optional[Dict[str, str]] = None) -> Tuple[str, str]:
        """GET a TikTok URL as the given session; returns (text, final_url)."""
        status, _, body, _, final_url = await self.http_client.fetch(
            url,
            headers=session.headers(),
            params=params,
            cookies=session.cookies(),
            throttle=self.throttle,
        )
        text = body.decode('utf-8', errors='ignore')

        if status in (401, 403) or looks_like_login_wall(text, final_url):
            raise TikTokBlockedError("TikTok requires login or verification for this request", code="login_wall", status=status)
        if status == 404:
            raise TikTokNotFoundError("TikTok returned 404", status=404)
        if status != 200:
            raise TikTokError(f"HTTP {status} from TikTok", status=status)
        return text, final_url

    async def _guard(self, coro, failure: tuple) -> tuple:
        """Run a lookup, turning TikTok/network errors into a failure tuple."""
        try:
            return await coro
        except TikTokError as e:
            logger.warning(f"[tiktok] {type(e).__name__}: {e.message}")
            return failure[:-1] + (e.message,)
        except httpx.HTTPError as e:
            logger.error(f"[tiktok] Network error: {e}")
            return failure[:-1] + (f"Network error: {e}",)

    # Profile

    async def _fetch_profile(self, username: str, user_agent: Optional[str]) -> ProfileResult:
        session = self._session(user_agent)
        html, _ = await self._get(f"{build_profile_url(username)}?lang=en", session)

        try:
            source, data = extract_embedded_json(html)
            logger.debug(f"[tiktok] profile @{username} parsed from {source}")
            payload = find_user_payload(data, username)
        except TikTokParseError as e:
            logger.info(f"[tiktok] embedded data unusable for @{username}: {e.message}")
            payload = None

        if payload is None:
            dom_stats = extract_dom_stats(html)
            if not dom_stats:
                raise TikTokNotFoundError(f"User @{username} not found", status=404)
            payload = {"user": {"uniqueId": username}, "stats": dom_stats}

        return True, normalize_user_info(payload), None

    async def get_profile(self, username: str, user_agent: Optional[str] = None) -> ProfileResult:
        username = clean_username(username)
        if not username:
            return False, None, "username is required"

        return await self.cache.get_or_fetch(
            cache_key_user_profile(username),
            lambda: self._guard(self._fetch_profile(username, user_agent), (False, None, None)),
            should_cache=_is_success,
        )

    async def get_sec_uid(self, username: str) -> Tuple[bool, Optional[str], Optional[str]]:
        ok, info, error = await self.get_profile(username)
        if ok and info and info["user"]["secUid"]:
            return True, info["user"]["secUid"], None
        return False, None, error or "Unable to get user secUid"

    # Followers

    async def _fetch_followers(
        self,
        sec_uid: str,
        count: int,
        max_cursor: int,
        min_cursor: int,
        user_agent: Optional[str],
    ) -> FollowersResult:
        session = self._session(user_agent)
        params = session.query_params()
        params.update({
            "secUid": sec_uid,
            "count": str(count),
            "maxCursor": str(max_cursor),
            "minCursor": str(min_cursor),
            "scene": FOLLOWER_SCENE,
        })

        text, _ = await self._get(FOLLOWER_LIST_URL, session, params=params)
        if not text.strip():
            # TikTok answers unsigned API calls with an empty 200
            raise TikTokBlockedError("Empty response from TikTok follower API", code="empty_response", status=200)

        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            raise TikTokParseError("Follower API returned invalid JSON", code="invalid_json")

        status_code = payload.get("statusCode", payload.get("status_code", 0))
        if status_code not in (0, None):
            raise TikTokError(payload.get("statusMsg") or "Failed to fetch followers", code=str(status_code))

        followers = normalize_followers(payload)
        return True, followers["userList"], followers["total"], followers, None

    async def get_followers(
        self,
        username: Optional[str] = None,
        sec_uid: Optional[str] = None,
        count: int = DEFAULT_FOLLOWER_COUNT,
        max_cursor: int = 0,
        min_cursor: int = 0,
        user_agent: Optional[str] = None,
        refresh: bool = False,
    ) -> FollowersResult:
        """
        Fetch one page of a user's followers.

        Either sec_uid or username must be given; the secUid is resolved from
        the profile page when only the username is known. The returned
        FollowersResponse carries the cursors for the next page. refresh
        bypasses the cached page.
        """
        username = clean_username(username or "")
        if not sec_uid:
            if not username:
                return False, [], 0, None, "secUid or uniqueId is required"
            ok, sec_uid, error = await self.get_sec_uid(username)
            if not ok:
                return False, [], 0, None, error

        count = max(1, min(MAX_FOLLOWER_COUNT, int(count or DEFAULT_FOLLOWER_COUNT)))
        max_cursor = max(0, int(max_cursor or 0))
        min_cursor = max(0, int(min_cursor or 0))

        key = cache_key_user_followers(username or sec_uid, max_cursor)
        if refresh:
            self.cache.clear(key)
        return await self.cache.get_or_fetch(
            key,
            lambda: self._guard(
                self._fetch_followers(sec_uid, count, max_cursor, min_cursor, user_agent),
                (False, [], 0, None, None),
            ),
            should_cache=_is_success,
        )

    # Videos

    async def _fetch_item(self, url: str, video_id: str, user_agent: Optional[str]) -> Dict[str, Any]:
        session = self._session(user_agent)
        html, _ = await self._get(url, session)
        _, data = extract_embedded_json(html)
        item = find_item_payload(data, video_id)
        if not item:
            raise TikTokParseError("Video data not found in TikTok page", code="no_item")
        return item

    async def _fetch_video(self, url: str, video_id: str, user_agent: Optional[str]) -> VideoResult:
        item = await self._fetch_item(url, video_id, user_agent)
        return True, normalize_video(item, url), None

    async def get_video_info(self, video_url: str, user_agent: Optional[str] = None,
                             refresh: bool = False) -> VideoResult:
        validation = validate_tiktok_url(video_url)
        if not validation.is_valid:
            return False, None, validation.error

        key = cache_key_video_info(validation.video_id)
        if refresh:
            self.cache.clear(key)
        return await self.cache.get_or_fetch(
            key,
            lambda: self._guard(
                self._fetch_video(video_url, validation.video_id, user_agent),
                (False, None, None),
            ),
            should_cache=_is_success,
        )

    async def _fetch_post_detail(self, video_id: str, username: Optional[str]) -> Tuple[bool, Optional[dict], Optional[str]]:
        url = f"{TIKTOK_BASE_URL}/@{clean_username(username or '')}/video/{video_id}"
        item = await self._fetch_item(url, video_id, None)
        detail = {
            "itemInfo": {"itemStruct": item},
            "shareMeta": {
                "title": (item.get("author") or {}).get("nickname", "") if isinstance(item.get("author"), dict) else "",
                "desc": item.get("desc", ""),
            },
            "statusCode": 0,
            "statusMsg": "",
        }
        return True, detail, None

    async def get_post_detail(self, video_id: str, username: Optional[str] = None) -> Tuple[bool, Optional[dict], Optional[str]]:
        """Raw itemStruct for a video, wrapped the way TikTok's detail API returns it."""
        if not video_id or not str(video_id).isdigit():
            return False, None, "videoId must be numeric"
        return await self._guard(self._fetch_post_detail(str(video_id), username), (False, None, None))

    # Convenience helpers

    async def get_multiple_profiles(self, usernames: List[str]) -> dict:
        results = await asyncio.gather(*(self.get_profile(name) for name in usernames))
        return {
            "success": True,
            "results": [
                {"username": name, "data": {"success": ok, "data": info, "error": error}}
                for name, (ok, info, error) in zip(usernames, results)
            ],
        }

    async def user_exists(self, username: str) -> bool:
        ok, _, _ = await self.get_profile(username)
        return ok

    async def get_user_stats(self, username: str) -> Optional[UserStats]:
        ok, info, _ = await self.get_profile(username)
        return info["stats"] if ok and info else None

    async def get_user_info(self, username: str) -> Optional[dict]:
        ok, info, _ = await self.get_profile(username)
        return info["user"] if ok and info else None

    async def get_formatted_stats(self, username: str) -> Optional[Dict[str, str]]:
        stats = await self.get_user_stats(username)
        if not stats:
            return None
        return {
            "followers": format_count(stats["followerCount"]),
            "following": format_count(stats["followingCount"]),
            "hearts": format_count(stats["heartCount"]),
            "videos": format_count(stats["videoCount"]),
        }


tiktok_scraper = TikTokScraper()
