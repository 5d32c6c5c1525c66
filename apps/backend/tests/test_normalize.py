"""
Tests for TikTok payload normalization.
"""

import pytest

from scraper.normalize import (
    format_count,
    normalize_followers,
    normalize_stats,
    normalize_user,
    normalize_user_info,
    normalize_video,
    parse_count,
)


@pytest.mark.parametrize("value,expected", [
    (1234, 1234),
    (12.7, 12),
    ("1,234", 1234),
    ("1.5K", 1500),
    ("3M", 3000000),
    ("2b", 2000000000),
    ("", 0),
    ("n/a", 0),
    (None, 0),
    (True, 0),
    ("1e999", 0),
    ("inf", 0),
    ("NaN", 0),
    (float("nan"), 0),
    (float("inf"), 0),
])
def test_parse_count(value, expected):
    assert parse_count(value) == expected


def test_format_count():
    assert format_count(1234567) == "1.2M"
    assert format_count(3400) == "3.4K"
    assert format_count(999) == "999"


def test_normalize_user_fills_defaults():
    user = normalize_user({"uniqueId": "creator", "verified": 1, "id": 6800})

    assert user["uniqueId"] == "creator"
    assert user["id"] == "6800"
    assert user["verified"] is True
    assert user["privateAccount"] is False
    assert user["nickname"] == ""
    assert user["secUid"] == ""
    assert user["relation"] == 0


class TestNormalizeStats:

    def test_heart_alias(self):
        stats = normalize_stats({"heart": 77})
        assert stats["heartCount"] == 77

    def test_stats_v2_wins_when_larger(self):
        stats = normalize_stats({"followerCount": 1200, "videoCount": 10}, {"followerCount": "1500", "videoCount": "9"})
        assert stats["followerCount"] == 1500
        assert stats["videoCount"] == 10

    def test_every_counter_present(self):
        stats = normalize_stats({})
        assert set(stats) == {"followerCount", "followingCount", "heartCount",
                              "videoCount", "diggCount", "friendCount"}
        assert all(value == 0 for value in stats.values())


def test_normalize_user_info():
    info = normalize_user_info({
        "user": {"uniqueId": "creator"},
        "stats": {"followerCount": "2K"},
        "statsV2": {"heart": "5000"},
    })
    assert info["user"]["uniqueId"] == "creator"
    assert info["stats"]["followerCount"] == 2000
    assert info["stats"]["heartCount"] == 5000


class TestNormalizeVideo:

    def test_author_object(self):
        item = {
            "id": "7234567890123456789",
            "author": {"uniqueId": "creator"},
            "stats": {"playCount": 100, "diggCount": 10, "commentCount": 2, "shareCount": 1},
            "statsV2": {"collectCount": "4", "diggCount": "12"},
        }
        video = normalize_video(item, "https://www.tiktok.com/@creator/video/7234567890123456789")

        assert video == {
            "tiktokID": "creator",
            "videoID": "7234567890123456789",
            "url": "https://www.tiktok.com/@creator/video/7234567890123456789",
            "playCount": 100,
            "diggCount": 12,
            "commentCount": 2,
            "shareCount": 1,
            "collectCount": 4,
        }

    def test_author_string(self):
        video = normalize_video({"id": 1, "author": "creator"}, "u")
        assert video["tiktokID"] == "creator"
        assert video["videoID"] == "1"
        assert video["diggCount"] == 0


class TestNormalizeFollowers:

    def test_followers_page(self):
        payload = {
            "userList": [
                {"user": {"uniqueId": "fan1", "secUid": "s1", "privateAccount": True}, "stats": {"followerCount": 3}},
                {"user": {"uniqueId": "fan2"}},
            ],
            "total": 240,
            "hasMore": True,
            "maxCursor": "1700000000",
            "minCursor": 0,
        }
        result = normalize_followers(payload)

        assert result["total"] == 240
        assert result["hasMore"] is True
        assert result["maxCursor"] == 1700000000
        assert [f["user"]["uniqueId"] for f in result["userList"]] == ["fan1", "fan2"]
        assert "privateAccount" not in result["userList"][0]["user"]
        assert result["userList"][0]["stats"]["followerCount"] == 3

    def test_total_defaults_to_page_size(self):
        result = normalize_followers({"userList": [{"user": {"uniqueId": "fan"}}]})
        assert result["total"] == 1
        assert result["hasMore"] is False

    def test_empty_payload(self):
        result = normalize_followers({})
        assert result == {"userList": [], "total": 0, "hasMore": False, "maxCursor": 0, "minCursor": 0}
