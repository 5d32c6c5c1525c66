import os

from app.db_config import db_config
from core import store

ENV_VARS = (
    "TIKGROW_ENV",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_DB_URL",
    "ADMIN_API_TOKEN",
    "TIKTOK_COOKIE",
    "TIKTOK_CACHE_TTL",
    "TIKTOK_THROTTLE_RPM",
    "TIKGROW_ENABLE_SCRAPER",
    "RATE_LIMIT_TIKTOK",
    "RATE_LIMIT_ACTION",
    "RATE_LIMIT_LOGIN",
)


class Capabilities:
    """Which parts of the API can serve requests with the current environment."""

    @staticmethod
    def is_db_enabled() -> bool:
        return db_config.is_db_enabled

    @staticmethod
    def check_db_connection() -> bool:
        return Capabilities.is_db_enabled() and store.ping(timeout=1)

    @staticmethod
    def is_auth_enabled() -> bool:
        return db_config.is_auth_enabled

    @staticmethod
    def is_scraper_enabled() -> bool:
        return os.getenv("TIKGROW_ENABLE_SCRAPER", "true").lower() == "true"

    @staticmethod
    def is_admin_enabled() -> bool:
        return bool(os.getenv("ADMIN_API_TOKEN"))

    @classmethod
    def get_status(cls) -> dict:
        """green when the database answers and auth and scraping are configured."""
        components = {
            "db": cls.check_db_connection(),
            "auth": cls.is_auth_enabled(),
            "scraper": cls.is_scraper_enabled(),
        }
        return {
            "status": "green" if all(components.values()) else "amber",
            "components": components,
        }

    @classmethod
    def get_capabilities(cls) -> dict:
        return {
            "auth": cls.is_auth_enabled(),
            "scraper": cls.is_scraper_enabled(),
            "exchange": cls.is_db_enabled(),
            "admin": cls.is_admin_enabled(),
        }


def get_env_presence() -> dict:
    """Set/unset per known variable; values are never exposed."""
    return {var: bool(os.getenv(var)) for var in ENV_VARS}
