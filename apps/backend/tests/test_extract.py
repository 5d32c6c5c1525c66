"""
Tests for embedded-JSON extraction from TikTok pages.
"""

import json
import pytest

from scraper.errors import TikTokNotFoundError, TikTokParseError
from scraper.extract import (
    extract_dom_stats,
    extract_embedded_json,
    find_item_payload,
    find_user_payload,
    looks_like_login_wall,
)


def page(script_id, data):
    body = data if isinstance(data, str) else json.dumps(data)
    return f"""
    <html>
    <head><title>TikTok</title></head>
    <body>
        <div id="app"></div>
        <script id="{script_id}" type="application/json">{body}</script>
    </body>
    </html>
    """


USER_DETAIL = {
    "__DEFAULT_SCOPE__": {
        "webapp.user-detail": {
            "statusCode": 0,
            "userInfo": {
                "user": {"id": "6800", "uniqueId": "creator", "secUid": "MS4wLjABAAAA"},
                "stats": {"followerCount": 1200, "heart": 50},
                "statsV2": {"followerCount": "1500"},
            },
        }
    }
}


class TestExtractEmbeddedJson:

    def test_universal_data_script(self):
        source, data = extract_embedded_json(page("__UNIVERSAL_DATA_FOR_REHYDRATION__", USER_DETAIL))
        assert source == "__UNIVERSAL_DATA_FOR_REHYDRATION__"
        assert "__DEFAULT_SCOPE__" in data

    def test_falls_back_to_sigi_state(self):
        html = page("__UNIVERSAL_DATA_FOR_REHYDRATION__", "{not json") + page("SIGI_STATE", {"UserModule": {}})
        source, data = extract_embedded_json(html)
        assert source == "SIGI_STATE"
        assert data == {"UserModule": {}}

    def test_next_data_script(self):
        source, _ = extract_embedded_json(page("__NEXT_DATA__", {"props": {}}))
        assert source == "__NEXT_DATA__"

    def test_no_embedded_data(self):
        with pytest.raises(TikTokParseError) as exc:
            extract_embedded_json("<html><body><p>Nothing here</p></body></html>")
        assert exc.value.code == "no_embedded_json"

    def test_non_object_json_is_ignored(self):
        with pytest.raises(TikTokParseError):
            extract_embedded_json(page("SIGI_STATE", [1, 2, 3]))


def test_login_wall_detection():
    assert looks_like_login_wall("", "https://www.tiktok.com/login?redirect_url=x")
    assert looks_like_login_wall("<div class='captcha_container'></div>")
    assert looks_like_login_wall("<h2>Log in to TikTok</h2>")
    assert not looks_like_login_wall(page("SIGI_STATE", {}), "https://www.tiktok.com/@creator")


class TestFindUserPayload:

    def test_default_scope_layout(self):
        payload = find_user_payload(USER_DETAIL, "creator")
        assert payload["user"]["uniqueId"] == "creator"
        assert payload["stats"]["followerCount"] == 1200
        assert payload["statsV2"] == {"followerCount": "1500"}

    def test_default_scope_not_found_status(self):
        data = {"__DEFAULT_SCOPE__": {"webapp.user-detail": {"statusCode": 10221, "statusMsg": ""}}}
        with pytest.raises(TikTokNotFoundError) as exc:
            find_user_payload(data, "ghost")
        assert exc.value.status == 404
        assert exc.value.message == "User not found"

    def test_unknown_status_is_parse_error(self):
        data = {"__DEFAULT_SCOPE__": {"webapp.user-detail": {"statusCode": 10000, "statusMsg": "captcha"}}}
        with pytest.raises(TikTokParseError) as exc:
            find_user_payload(data, "creator")
        assert exc.value.code == "10000"

    def test_sigi_user_module_case_insensitive(self):
        data = {
            "UserModule": {
                "users": {"Creator": {"uniqueId": "Creator", "nickname": "C"}},
                "stats": {"Creator": {"followerCount": 9}},
            }
        }
        payload = find_user_payload(data, "creator")
        assert payload["user"]["nickname"] == "C"
        assert payload["stats"] == {"followerCount": 9}

    def test_next_data_page_props(self):
        data = {"props": {"pageProps": {"statusCode": 0, "userInfo": {"user": {"uniqueId": "creator"}, "stats": {"videoCount": 3}}}}}
        payload = find_user_payload(data, "creator")
        assert payload["stats"] == {"videoCount": 3}

    def test_missing_user_returns_none(self):
        assert find_user_payload({"UserModule": {"users": {}}}, "creator") is None


class TestFindItemPayload:

    def test_default_scope_item(self):
        data = {"__DEFAULT_SCOPE__": {"webapp.video-detail": {"statusCode": 0, "itemInfo": {"itemStruct": {"id": "1"}}}}}
        assert find_item_payload(data, "1") == {"id": "1"}

    def test_item_module_by_id(self):
        data = {"ItemModule": {"2": {"id": "2"}, "1": {"id": "1"}}}
        assert find_item_payload(data, "1") == {"id": "1"}

    def test_item_module_ignores_other_videos(self):
        data = {"ItemModule": {"2": {"id": "2", "stats": {"diggCount": 50}}}}
        assert find_item_payload(data, "1") is None

    def test_deleted_video(self):
        data = {"__DEFAULT_SCOPE__": {"webapp.video-detail": {"statusCode": 10204, "statusMsg": "Video unavailable"}}}
        with pytest.raises(TikTokNotFoundError) as exc:
            find_item_payload(data, "1")
        assert exc.value.message == "Video unavailable"

    def test_no_item(self):
        assert find_item_payload({}, "1") is None


def test_dom_stats_fallback():
    html = """
    <html><body>
        <strong data-e2e="following-count">87</strong>
        <strong data-e2e="followers-count">1.5M</strong>
        <strong data-e2e="likes-count">45.5K</strong>
    </body></html>
    """
    assert extract_dom_stats(html) == {
        "followerCount": 1500000,
        "followingCount": 87,
        "heartCount": 45500,
    }


def test_dom_stats_empty_page():
    assert extract_dom_stats("<html><body></body></html>") == {}
