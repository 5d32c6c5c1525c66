from typing import Optional


class TikTokError(Exception):
    """Base error for TikTok lookups."""

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class TikTokBlockedError(TikTokError):
    """Login wall, captcha or 401/403 from TikTok."""


class TikTokNotFoundError(TikTokError):
    """User or video does not exist (or is not visible)."""


class TikTokParseError(TikTokError):
    """Page came back but no usable embedded data was found."""
