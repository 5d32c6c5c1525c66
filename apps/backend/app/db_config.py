"""
Supabase settings.

Application data is read and written over a direct Postgres connection
(SUPABASE_DB_URL); sign-in and token checks go to the Supabase auth REST
endpoint (SUPABASE_URL + SUPABASE_ANON_KEY).
"""

import os
import logging
from typing import Optional
from urllib.parse import urlparse, unquote, ParseResult

logger = logging.getLogger(__name__)

DEFAULT_PG_PORT = 5432
DEFAULT_PG_DATABASE = "postgres"
DEFAULT_PG_USER = "postgres"


def _parse_db_url(url: str) -> Optional[ParseResult]:
    # Supabase hands out IPv6-style bracketed hosts: postgresql://user:pass@[host]:port/db
    try:
        parsed = urlparse(url.replace('[', '').replace(']', ''))
        parsed.port  # raises ValueError on a malformed port
    except ValueError as e:
        logger.error(f"[db_config] SUPABASE_DB_URL is malformed: {e}")
        return None
    return parsed if parsed.hostname else None


class DBConfig:
    """Supabase connection settings"""

    def __init__(self):
        self.supabase_url = os.getenv("SUPABASE_URL")
        self.supabase_anon_key = os.getenv("SUPABASE_ANON_KEY")
        self.supabase_db_url = os.getenv("SUPABASE_DB_URL")

        if self.supabase_db_url:
            logger.info(f"[db_config] Postgres: {self.redacted_db_url()}")
        else:
            logger.warning("[db_config] SUPABASE_DB_URL not set; campaign, exchange and profile endpoints are disabled")
        if not self.is_auth_enabled:
            logger.warning("[db_config] SUPABASE_URL / SUPABASE_ANON_KEY not set; sign-in is disabled")

    @property
    def is_db_enabled(self) -> bool:
        return bool(self.supabase_db_url)

    @property
    def is_auth_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    def redacted_db_url(self) -> str:
        """The DB URL with the password masked, for logs."""
        parsed = _parse_db_url(self.supabase_db_url or "")
        if not parsed:
            return "<unparseable>"
        return f"{parsed.scheme}://{parsed.username or DEFAULT_PG_USER}:***@{parsed.hostname}:{parsed.port or DEFAULT_PG_PORT}{parsed.path}"

    def get_connection_params(self) -> Optional[dict]:
        """psycopg2.connect keyword arguments, or None when unconfigured."""
        parsed = _parse_db_url(self.supabase_db_url) if self.supabase_db_url else None
        if not parsed:
            return None

        params = {
            "host": parsed.hostname,
            "port": parsed.port or DEFAULT_PG_PORT,
            "database": parsed.path.lstrip('/') or DEFAULT_PG_DATABASE,
            "user": parsed.username or DEFAULT_PG_USER,
        }
        if parsed.password:
            params["password"] = unquote(parsed.password)
        return params


db_config = DBConfig()
