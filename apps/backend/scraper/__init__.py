"""
TikTok scraping client.

Reads profile, follower and video data from TikTok's web front end:
synthetic request identity, HTML fetch, embedded-JSON extraction and
response shape normalization.
"""

from .errors import TikTokError, TikTokBlockedError, TikTokNotFoundError, TikTokParseError
from .tiktok import TikTokScraper, tiktok_scraper

__all__ = [
    'TikTokError',
    'TikTokBlockedError',
    'TikTokNotFoundError',
    'TikTokParseError',
    'TikTokScraper',
    'tiktok_scraper',
]
