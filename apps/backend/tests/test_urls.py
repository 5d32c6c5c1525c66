"""
Tests for TikTok URL and handle helpers.
"""

import pytest

from scraper.urls import (
    build_profile_url,
    build_video_url,
    clean_username,
    extract_username,
    extract_video_id,
    is_valid_username,
    validate_tiktok_url,
)


class TestValidateTikTokUrl:

    def test_valid_video_url(self):
        result = validate_tiktok_url("https://www.tiktok.com/@some.user/video/7234567890123456789")
        assert result.is_valid
        assert result.username == "some.user"
        assert result.video_id == "7234567890123456789"
        assert result.error is None

    def test_query_string_allowed(self):
        result = validate_tiktok_url("https://tiktok.com/@creator/video/7234567890123456789?is_from_webapp=1")
        assert result.is_valid
        assert result.video_id == "7234567890123456789"

    @pytest.mark.parametrize("url", [None, "", "   ", 42])
    def test_empty_or_non_string(self, url):
        result = validate_tiktok_url(url)
        assert not result.is_valid
        assert result.error == "URL must be a non-empty string"

    @pytest.mark.parametrize("url", [
        "http://www.tiktok.com/@creator/video/7234567890123456789",
        "https://www.youtube.com/watch?v=abc",
        "https://www.tiktok.com/@creator",
        "https://vm.tiktok.com/ZMabc123/",
    ])
    def test_not_a_video_url(self, url):
        result = validate_tiktok_url(url)
        assert not result.is_valid
        assert result.error == "URL does not match TikTok video pattern"

    def test_video_id_too_short(self):
        result = validate_tiktok_url("https://www.tiktok.com/@creator/video/123")
        assert not result.is_valid
        assert result.error == "Invalid video ID format"


def test_extract_video_id_is_lenient():
    assert extract_video_id("tiktok.com/@creator/video/123") == "123"
    assert extract_video_id("http://www.tiktok.com/@creator/video/7234567890123456789") == "7234567890123456789"
    assert extract_video_id("https://www.tiktok.com/@creator") is None
    assert extract_video_id("") is None


def test_extract_username():
    assert extract_username("https://www.tiktok.com/@creator/video/1") == "creator"
    assert extract_username("https://www.tiktok.com/@creator?lang=en") == "creator"
    assert extract_username("https://example.com") is None


def test_username_rules():
    assert is_valid_username("some.user_1")
    assert not is_valid_username("")
    assert not is_valid_username(None)
    assert not is_valid_username("user-name")
    assert not is_valid_username("a" * 25)


def test_clean_username_and_builders():
    assert clean_username("  @creator ") == "creator"
    assert clean_username(None) == ""
    assert build_profile_url("@creator") == "https://www.tiktok.com/@creator"
    assert build_video_url("creator", "7234567890123456789") == \
        "https://www.tiktok.com/@creator/video/7234567890123456789"
