"""
IP-based rate limiting for public endpoints.
"""
import os
from slowapi import Limiter
from slowapi.util import get_remote_address

_DEV = os.getenv("TIKGROW_ENV") == "dev"

# Scraping proxy: every uncached call hits tiktok.com
RATE_LIMIT_TIKTOK = os.getenv("RATE_LIMIT_TIKTOK", "60/minute" if _DEV else "30/minute")
RATE_LIMIT_ACTION = os.getenv("RATE_LIMIT_ACTION", "60/minute" if _DEV else "20/minute")
RATE_LIMIT_LOGIN = os.getenv("RATE_LIMIT_LOGIN", "20/minute" if _DEV else "5/minute")

limiter = Limiter(key_func=get_remote_address)
