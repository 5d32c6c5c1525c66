"""
Outbound HTTP for the TikTok scraper and the auth provider gateway.

Requests are retried on timeouts and connection failures, throttled per
host with a token bucket, and back off when the server sends Retry-After.
"""
import os
import time
import asyncio
import logging
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Optional, Dict, Tuple, Any
from urllib.parse import urlparse
import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

DEFAULT_UA = "TikGrowBot/1.0"
DEFAULT_TIMEOUT = 20.0
MAX_RETRIES = 2
MAX_RETRY_AFTER_SECONDS = 10
MAX_BODY_KB = 4096

FetchResult = Tuple[int, Dict[str, str], bytes, int, str]


@dataclass(frozen=True)
class Throttle:
    """Outbound request budget for one host."""
    requests_per_minute: int = 30
    burst: int = 5


class RateLimiter:
    """Token bucket: `burst` requests immediately, then requests_per_minute."""

    def __init__(self, requests_per_minute: int, burst: int = 5):
        self.capacity = float(max(1, burst))
        self.per_second = max(1, requests_per_minute) / 60.0
        self.tokens = self.capacity
        self.updated_at = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.updated_at) * self.per_second)
        self.updated_at = now

    async def acquire(self) -> None:
        async with self._lock:
            self._refill()
            if self.tokens < 1.0:
                delay = (1.0 - self.tokens) / self.per_second
                logger.debug(f"[net] Throttled, sleeping {delay:.2f}s")
                await asyncio.sleep(delay)
                self._refill()
            self.tokens = max(0.0, self.tokens - 1.0)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Seconds to wait from a Retry-After value (delta-seconds or HTTP date)."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at is None:
        return None
    return max(0, int(retry_at.timestamp() - time.time()))


class HTTPClient:
    """Async HTTP client returning (status, headers, body, size, final_url)."""

    def __init__(self, user_agent: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT):
        self.user_agent = user_agent or os.getenv("TIKGROW_HTTP_UA", DEFAULT_UA)
        self.timeout = httpx.Timeout(timeout)
        self._limiters: Dict[str, RateLimiter] = {}

    def limiter_for(self, url: str, throttle: Optional[Throttle]) -> Optional[RateLimiter]:
        """One bucket per host; None when the caller does not throttle."""
        if throttle is None:
            return None
        host = urlparse(url).netloc.lower() or "default"
        limiter = self._limiters.get(host)
        if limiter is None:
            limiter = self._limiters[host] = RateLimiter(throttle.requests_per_minute, throttle.burst)
        return limiter

    def build_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json,text/html;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        headers.update(extra or {})
        return headers

    async def _back_off(self, response: httpx.Response) -> None:
        wait_seconds = parse_retry_after(response.headers.get("Retry-After"))
        if not wait_seconds:
            return
        wait_seconds = min(wait_seconds, MAX_RETRY_AFTER_SECONDS)
        logger.info(f"[net] {response.status_code} from {response.url.host}, Retry-After {wait_seconds}s")
        await asyncio.sleep(wait_seconds)

    @retry(
        stop=stop_after_attempt(MAX_RETRIES + 1),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        reraise=True
    )
    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        cookies: Optional[Dict[str, str]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        max_size_kb: int = MAX_BODY_KB,
        throttle: Optional[Throttle] = None,
    ) -> FetchResult:
        """
        Send one request.

        Bodies beyond max_size_kb are truncated; the returned size is the
        untruncated length. Timeouts and connection errors are retried
        MAX_RETRIES times before being raised.
        """
        method = method.upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported HTTP method: {method}")

        limiter = self.limiter_for(url, throttle)
        if limiter:
            await limiter.acquire()

        started = time.monotonic()
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, cookies=cookies) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    headers=self.build_headers(headers),
                    params=params,
                    json=json_data if method == "POST" else None,
                )
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                logger.warning(f"[net] {method} {url} failed: {type(e).__name__}: {e}")
                raise

        if response.status_code in (429, 503):
            await self._back_off(response)

        size = len(response.content)
        limit = max_size_kb * 1024
        if size > limit:
            logger.warning(f"[net] Body of {url} truncated to {max_size_kb}KB ({size} bytes)")

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"[net] {method} {response.status_code} {url} ({size} bytes, {elapsed_ms}ms)")
        return response.status_code, dict(response.headers), response.content[:limit], size, str(response.url)
