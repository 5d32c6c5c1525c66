"""
TikTok URL and handle helpers.
"""
import re
from dataclasses import dataclass
from typing import Optional

TIKTOK_BASE_URL = "https://www.tiktok.com"

# https://www.tiktok.com/@username/video/1234567890123456789
STRICT_VIDEO_URL_RE = re.compile(
    r'^https://(?:www\.)?tiktok\.com/@([a-zA-Z0-9_.-]+)/video/(\d+)(?:\?.*)?$'
)
LENIENT_VIDEO_URL_RE = re.compile(
    r'(?:https?://)?(?:www\.)?tiktok\.com/@[^/]+/video/(\d+)'
)
USERNAME_IN_URL_RE = re.compile(r'tiktok\.com/@([^/?]+)')
USERNAME_RE = re.compile(r'^[a-zA-Z0-9._]{1,24}$')

VIDEO_ID_MIN_LEN = 10
VIDEO_ID_MAX_LEN = 25


@dataclass
class VideoUrlValidation:
    is_valid: bool
    video_id: Optional[str] = None
    username: Optional[str] = None
    original_url: Optional[str] = None
    error: Optional[str] = None


def validate_tiktok_url(url) -> VideoUrlValidation:
    """Validate a TikTok video URL and pull out the handle and video id."""
    if not isinstance(url, str) or not url.strip():
        return VideoUrlValidation(False, error='URL must be a non-empty string')

    match = STRICT_VIDEO_URL_RE.match(url)
    if not match:
        return VideoUrlValidation(False, error='URL does not match TikTok video pattern')

    username, video_id = match.group(1), match.group(2)
    if not VIDEO_ID_MIN_LEN <= len(video_id) <= VIDEO_ID_MAX_LEN:
        return VideoUrlValidation(False, error='Invalid video ID format')

    return VideoUrlValidation(True, video_id=video_id, username=username, original_url=url)


def extract_video_id(url: str) -> Optional[str]:
    if not url:
        return None
    match = LENIENT_VIDEO_URL_RE.search(url)
    return match.group(1) if match else None


def extract_username(url: str) -> Optional[str]:
    if not url:
        return None
    match = USERNAME_IN_URL_RE.search(url)
    return match.group(1) if match else None


def is_valid_username(username: Optional[str]) -> bool:
    return bool(username) and bool(USERNAME_RE.match(username))


def clean_username(username: str) -> str:
    return (username or "").strip().lstrip("@")


def build_profile_url(username: str) -> str:
    return f"{TIKTOK_BASE_URL}/@{clean_username(username)}"


def build_video_url(username: str, video_id: str) -> str:
    return f"{TIKTOK_BASE_URL}/@{clean_username(username)}/video/{video_id}"
