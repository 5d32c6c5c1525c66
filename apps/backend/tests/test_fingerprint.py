"""
Tests for synthetic TikTok request identities.
"""

import os
from unittest.mock import patch

from scraper.fingerprint import (
    USER_AGENTS,
    WEB_APP_ID,
    browser_platform,
    browser_version,
    create_session,
    generate_device_id,
)


def test_device_id_is_19_digits_without_leading_zero():
    for _ in range(50):
        device_id = generate_device_id()
        assert len(device_id) == 19
        assert device_id.isdigit()
        assert device_id[0] != "0"


def test_browser_platform_from_user_agent():
    assert browser_platform(USER_AGENTS[0]) == ("Win32", "windows")
    assert browser_platform(USER_AGENTS[2]) == ("MacIntel", "mac")
    assert browser_platform("Mozilla/5.0 (Linux; Android 14)") == ("Linux armv8l", "android")
    assert browser_platform("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)") == ("iPhone", "ios")
    assert browser_platform(USER_AGENTS[4]) == ("Linux x86_64", "linux")


def test_browser_version_strips_mozilla_prefix():
    assert browser_version("Mozilla/5.0 (X11)") == "5.0 (X11)"
    assert browser_version("curl/8.0") == "curl/8.0"


class TestCreateSession:

    def test_random_session_uses_pool_user_agent(self):
        with patch.dict(os.environ, {}, clear=True):
            session = create_session()
        assert session.user_agent in USER_AGENTS
        assert session.cookie is None

    def test_caller_user_agent_is_kept(self):
        session = create_session(user_agent="Mozilla/5.0 (Macintosh) Custom")
        assert session.user_agent == "Mozilla/5.0 (Macintosh) Custom"
        assert session.headers()["User-Agent"] == "Mozilla/5.0 (Macintosh) Custom"

    def test_sessions_are_independent(self):
        first, second = create_session(), create_session()
        assert first.session_id != second.session_id
        assert first.csrf_token != second.csrf_token

    def test_device_cookies_without_configured_cookie(self):
        session = create_session(cookie="")
        cookies = session.cookies()
        assert cookies["tt_webid"] == session.device_info.device_id
        assert cookies["tt_webid_v2"] == session.device_info.device_id
        assert cookies["tt_csrf_token"] == session.csrf_token
        assert "Cookie" not in session.headers()

    def test_configured_cookie_sent_as_header(self):
        session = create_session(cookie="sessionid=abc")
        assert session.cookies() == {}
        assert session.headers()["Cookie"] == "sessionid=abc"

    def test_cookie_from_environment(self):
        with patch.dict(os.environ, {"TIKTOK_COOKIE": "sessionid=env"}):
            session = create_session()
        assert session.cookie == "sessionid=env"

    def test_query_params_describe_the_device(self):
        session = create_session(user_agent=USER_AGENTS[0])
        params = session.query_params()

        assert params["aid"] == WEB_APP_ID
        assert params["device_id"] == session.device_info.device_id
        assert params["browser_platform"] == "Win32"
        assert params["os"] == "windows"
        assert params["screen_width"] == str(session.device_info.screen_width)
        assert params["region"] == session.device_info.country_code
        assert params["tz_name"] == session.device_info.timezone
        assert 2 <= int(params["history_len"]) <= 8
        assert all(isinstance(value, str) for value in params.values())
