"""
Synthetic request identity for TikTok web requests.

TikTok's web front end expects every request to look like it comes from a
browser tab: a device id cookie, a browser user agent and a long list of
query parameters describing the screen, locale and browser. Each scraping
call gets a fresh TikTokSession built here.
"""
import os
import random
import secrets
import string
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

WEB_APP_ID = "1988"

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36 Edg/125.0.0.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:127.0) Gecko/20100101 Firefox/127.0",
]

SCREEN_SIZES = [
    (1920, 1080),
    (1536, 864),
    (1440, 900),
    (1366, 768),
    (2560, 1440),
    (1680, 1050),
]

# (country_code, timezone)
LOCALES = [
    ("US", "America/New_York"),
    ("US", "America/Los_Angeles"),
    ("GB", "Europe/London"),
    ("DE", "Europe/Berlin"),
    ("CA", "America/Toronto"),
    ("AU", "Australia/Sydney"),
    ("VN", "Asia/Ho_Chi_Minh"),
]


@dataclass
class DeviceInfo:
    device_id: str
    screen_width: int
    screen_height: int
    country_code: str
    timezone: str


@dataclass
class TikTokSession:
    user_agent: str
    device_info: DeviceInfo
    session_id: str
    csrf_token: str = field(default_factory=lambda: secrets.token_urlsafe(16))
    cookie: Optional[str] = None

    def headers(self, referer: str = "https://www.tiktok.com/") -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.8,*/*;q=0.7",
            "Accept-Language": f"en-{self.device_info.country_code},en;q=0.9",
            "Referer": referer,
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "Upgrade-Insecure-Requests": "1",
        }
        if self.cookie:
            headers["Cookie"] = self.cookie
        return headers

    def cookies(self) -> Dict[str, str]:
        # A configured session cookie is sent as a raw header instead
        if self.cookie:
            return {}
        return {
            "tt_webid": self.device_info.device_id,
            "tt_webid_v2": self.device_info.device_id,
            "tt_csrf_token": self.csrf_token,
        }

    def query_params(self) -> Dict[str, str]:
        """Query parameters the web app attaches to its internal API calls."""
        platform, os_name = browser_platform(self.user_agent)
        return {
            "aid": WEB_APP_ID,
            "app_name": "tiktok_web",
            "app_language": "en",
            "browser_language": "en-US",
            "browser_name": "Mozilla",
            "browser_online": "true",
            "browser_platform": platform,
            "browser_version": browser_version(self.user_agent),
            "channel": "tiktok_web",
            "cookie_enabled": "true",
            "device_id": self.device_info.device_id,
            "device_platform": "web_pc",
            "focus_state": "true",
            "from_page": "user",
            "history_len": str(random.randint(2, 8)),
            "is_fullscreen": "false",
            "is_page_visible": "true",
            "os": os_name,
            "priority_region": self.device_info.country_code,
            "region": self.device_info.country_code,
            "screen_height": str(self.device_info.screen_height),
            "screen_width": str(self.device_info.screen_width),
            "tz_name": self.device_info.timezone,
            "webcast_language": "en",
        }


def generate_device_id() -> str:
    """19-digit numeric id, never starting with 0."""
    return random.choice("123456789") + "".join(random.choices(string.digits, k=18))


def generate_device_info() -> DeviceInfo:
    width, height = random.choice(SCREEN_SIZES)
    country_code, timezone = random.choice(LOCALES)
    return DeviceInfo(
        device_id=generate_device_id(),
        screen_width=width,
        screen_height=height,
        country_code=country_code,
        timezone=timezone,
    )


def pick_user_agent() -> str:
    return random.choice(USER_AGENTS)


def browser_version(user_agent: str) -> str:
    """navigator.appVersion equivalent: the UA without the 'Mozilla/' prefix."""
    if user_agent.startswith("Mozilla/"):
        return user_agent[len("Mozilla/"):]
    return user_agent


def browser_platform(user_agent: str) -> Tuple[str, str]:
    """(navigator.platform, os name) guessed from the UA."""
    ua = user_agent.lower()
    if "windows" in ua:
        return "Win32", "windows"
    if "mac os" in ua or "macintosh" in ua:
        return "MacIntel", "mac"
    if "android" in ua:
        return "Linux armv8l", "android"
    if "iphone" in ua or "ipad" in ua:
        return "iPhone", "ios"
    return "Linux x86_64", "linux"


def create_session(user_agent: Optional[str] = None, cookie: Optional[str] = None) -> TikTokSession:
    """
    Build a fresh request identity.

    Args:
        user_agent: The caller's own UA (useCurrentUA); a random pool UA otherwise
        cookie: Raw TikTok cookie header; falls back to TIKTOK_COOKIE
    """
    return TikTokSession(
        user_agent=user_agent or pick_user_agent(),
        device_info=generate_device_info(),
        session_id=secrets.token_hex(16),
        cookie=cookie if cookie is not None else os.getenv("TIKTOK_COOKIE") or None,
    )
