"""
Normalize raw TikTok payloads into the shapes served by /api/tiktok.

TikTok is inconsistent across page layouts: counts may be ints or strings,
`heart` and `heartCount` are both used, newer payloads carry string counts in
`statsV2`. Everything leaving this module has every key present with a
sensible default.
"""
import re
import math
from typing import Any, Dict, List, TypedDict


class User(TypedDict):
    id: str
    uniqueId: str
    nickname: str
    avatarThumb: str
    avatarMedium: str
    avatarLarger: str
    signature: str
    verified: bool
    secUid: str
    ftc: bool
    relation: int
    openFavorite: bool
    commentSetting: int
    duetSetting: int
    stitchSetting: int
    privateAccount: bool


class UserStats(TypedDict):
    followerCount: int
    followingCount: int
    heartCount: int
    videoCount: int
    diggCount: int
    friendCount: int


class UserInfo(TypedDict):
    user: User
    stats: UserStats


class VideoInfo(TypedDict):
    tiktokID: str
    videoID: str
    url: str
    playCount: int
    diggCount: int
    commentCount: int
    shareCount: int
    collectCount: int


class FollowerUser(TypedDict):
    user: Dict[str, Any]
    stats: UserStats


class FollowersResponse(TypedDict):
    userList: List[FollowerUser]
    total: int
    hasMore: bool
    maxCursor: int
    minCursor: int


_SUFFIXES = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}

_USER_STR_FIELDS = ["id", "uniqueId", "nickname", "avatarThumb", "avatarMedium",
                    "avatarLarger", "signature", "secUid"]
_USER_BOOL_FIELDS = ["verified", "ftc", "openFavorite", "privateAccount"]
_USER_INT_FIELDS = ["relation", "commentSetting", "duetSetting", "stitchSetting"]
_STAT_FIELDS = ["followerCount", "followingCount", "heartCount", "videoCount",
                "diggCount", "friendCount"]
_VIDEO_STAT_FIELDS = ["playCount", "diggCount", "commentCount", "shareCount", "collectCount"]


def parse_count(value: Any) -> int:
    """
    Parse a TikTok counter.

    Accepts ints, floats, "1,234", "1.2K", "3M", "1B". Returns 0 for missing
    or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    text = re.sub(r"[,\s]", "", str(value)).upper()
    if not text:
        return 0
    multiplier = 1
    if text[-1] in _SUFFIXES:
        multiplier = _SUFFIXES[text[-1]]
        text = text[:-1]
    try:
        return int(float(text) * multiplier)
    except (ValueError, OverflowError):
        return 0


def format_count(count: int) -> str:
    """1234567 -> '1.2M', 3400 -> '3.4K'."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def normalize_user(raw: Dict[str, Any]) -> User:
    raw = raw or {}
    user = {}
    for key in _USER_STR_FIELDS:
        value = raw.get(key)
        user[key] = "" if value is None else str(value)
    for key in _USER_BOOL_FIELDS:
        user[key] = bool(raw.get(key, False))
    for key in _USER_INT_FIELDS:
        user[key] = parse_count(raw.get(key))
    return user


def normalize_stats(raw: Dict[str, Any], raw_v2: Dict[str, Any] = None) -> UserStats:
    """Merge stats and statsV2; statsV2 wins when it has a larger value."""
    merged = dict(raw or {})
    if "heartCount" not in merged and "heart" in merged:
        merged["heartCount"] = merged["heart"]
    stats = {key: parse_count(merged.get(key)) for key in _STAT_FIELDS}

    for key, value in (raw_v2 or {}).items():
        if key == "heart":
            key = "heartCount"
        if key in stats:
            stats[key] = max(stats[key], parse_count(value))
    return stats


def normalize_user_info(payload: Dict[str, Any]) -> UserInfo:
    return {
        "user": normalize_user(payload.get("user") or {}),
        "stats": normalize_stats(payload.get("stats") or {}, payload.get("statsV2")),
    }


def normalize_video(item: Dict[str, Any], url: str) -> VideoInfo:
    stats = dict(item.get("stats") or {})
    for key, value in (item.get("statsV2") or {}).items():
        if key in _VIDEO_STAT_FIELDS:
            stats[key] = max(parse_count(stats.get(key)), parse_count(value))

    author = item.get("author")
    if isinstance(author, dict):
        tiktok_id = author.get("uniqueId") or ""
    else:
        tiktok_id = author or ""

    video = {
        "tiktokID": str(tiktok_id),
        "videoID": str(item.get("id") or ""),
        "url": url,
    }
    for key in _VIDEO_STAT_FIELDS:
        video[key] = parse_count(stats.get(key))
    return video


def normalize_follower(entry: Dict[str, Any]) -> FollowerUser:
    user = normalize_user(entry.get("user") or {})
    return {
        "user": {key: user[key] for key in _USER_STR_FIELDS + ["verified", "ftc"]},
        "stats": normalize_stats(entry.get("stats") or {}),
    }


def normalize_followers(payload: Dict[str, Any]) -> FollowersResponse:
    user_list = [normalize_follower(entry) for entry in payload.get("userList") or []]
    total = payload.get("total")
    return {
        "userList": user_list,
        "total": parse_count(total) if total is not None else len(user_list),
        "hasMore": bool(payload.get("hasMore", False)),
        "maxCursor": parse_count(payload.get("maxCursor")),
        "minCursor": parse_count(payload.get("minCursor")),
    }
