"""
Process-local TTL cache for TikTok lookups.

Concurrent callers asking for the same key share one in-flight fetch.
Failed fetches are never stored.
"""
import time
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
CLEANUP_INTERVAL_SECONDS = 600


class TTLCache:
    """Key -> (value, stored_at, expires_at) with pending-request sharing"""

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS):
        self.default_ttl = default_ttl
        self._entries: Dict[str, Tuple[Any, float, float]] = {}
        self._pending: Dict[str, asyncio.Future] = {}
        self._last_cleanup = time.time()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry and time.time() < entry[2]:
            return entry[0]
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        now = time.time()
        if now - self._last_cleanup >= CLEANUP_INTERVAL_SECONDS:
            self.cleanup()
        self._entries[key] = (value, now, now + (self.default_ttl if ttl is None else ttl))

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
        should_cache: Callable[[Any], bool] = lambda value: True,
    ) -> Any:
        """
        Return the cached value for key, or await fetch_fn() and cache it.

        should_cache lets callers skip storing "soft" failures such as
        (False, None, "error") tuples.
        """
        pending = self._pending.get(key)
        if pending is not None:
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
            # The caller that owned the fetch was cancelled; start a new one
            return await self.get_or_fetch(key, fetch_fn, ttl, should_cache)

        cached = self.get(key)
        if cached is not None:
            logger.debug(f"[cache] hit {key}")
            return cached

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending[key] = future
        try:
            value = await fetch_fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unobserved failure does not warn on GC
            future.exception()
            raise
        else:
            # A clear() during the fetch means the result is already stale
            if self._pending.get(key) is future and should_cache(value):
                self.set(key, value, ttl)
            future.set_result(value)
            return value
        finally:
            if self._pending.get(key) is future:
                del self._pending[key]

    def clear(self, key: str):
        self._entries.pop(key, None)
        self._pending.pop(key, None)

    def clear_all(self):
        self._entries.clear()
        self._pending.clear()

    def cleanup(self) -> int:
        """Drop expired entries, returns how many were removed."""
        now = time.time()
        expired = [key for key, (_, _, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._last_cleanup = now
        if expired:
            logger.debug(f"[cache] evicted {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> dict:
        now = time.time()
        return {
            "cacheSize": len(self._entries),
            "pendingRequests": len(self._pending),
            "entries": [
                {
                    "key": key,
                    "age": round(now - stored_at, 3),
                    "expiresIn": round(expires_at - now, 3),
                }
                for key, (_, stored_at, expires_at) in self._entries.items()
            ],
        }


def cache_key_video_info(video_id: str) -> str:
    return f"video_info_{video_id}"


def cache_key_user_profile(username: str) -> str:
    return f"user_profile_{username.lower()}"


def cache_key_user_followers(username: str, cursor: int = 0) -> str:
    return f"user_followers_{username.lower()}_{cursor}"
