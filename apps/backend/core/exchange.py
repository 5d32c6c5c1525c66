"""
Exchange listing logic: filtering, pagination, row formatting and
statistics over campaign and action rows.
"""
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 50

# sortBy -> (column, descending)
SORT_ORDERS = {
    'newest': ('created_at', True),
    'oldest': ('created_at', False),
    'highestCredits': ('credits_per_action', True),
    'lowestCredits': ('credits_per_action', False),
}
DEFAULT_SORT = 'newest'


def validate_pagination(page: int, limit: int, max_limit: int = MAX_PAGE_SIZE) -> Optional[str]:
    if page < 1 or limit < 1 or limit > max_limit:
        return 'Invalid pagination parameters'
    return None


def build_pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasMore": page < total_pages,
    }


def paginate(items: List[Any], page: int, limit: int) -> Tuple[List[Any], Dict[str, Any]]:
    offset = (page - 1) * limit
    return items[offset:offset + limit], build_pagination(page, limit, len(items))


def filter_available(campaigns: Iterable[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Campaigns that still need actions."""
    return [
        c for c in campaigns
        if (c.get("current_count") or 0) < (c.get("target_count") or 0)
    ]


def resolve_sort(sort_by: Optional[str]) -> Tuple[str, bool]:
    return SORT_ORDERS.get(sort_by or DEFAULT_SORT, SORT_ORDERS[DEFAULT_SORT])


def format_exchange_campaign(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten a campaign row joined with its video and creator profile."""
    return {
        "id": row.get("id"),
        "user_id": row.get("user_id"),
        "interaction_type": row.get("interaction_type"),
        "credits_per_action": row.get("credits_per_action"),
        "target_count": row.get("target_count"),
        "current_count": row.get("current_count"),
        "remaining_credits": row.get("remaining_credits"),
        "created_at": row.get("created_at"),
        "creator_tiktok": row.get("creator_tiktok"),
        "videos": [{
            "title": row.get("video_title"),
            "description": row.get("video_description"),
            "category": row.get("video_category"),
            "video_url": row.get("video_url"),
        }],
    }


def summarize_exchange(campaigns: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    campaigns = list(campaigns)
    return {
        "activeCampaigns": len(campaigns),
        "totalCreditsAvailable": sum(c.get("remaining_credits") or 0 for c in campaigns),
        "activeUsers": len({c.get("user_id") for c in campaigns}),
    }


def format_user_exchange_stats(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Map the get_user_exchange_stats row to the API shape."""
    return {
        "totalCampaigns": raw.get("total_campaigns_available") or 0,
        "activeCampaigns": raw.get("active_campaigns_available") or 0,
        "completedActions": raw.get("completed_actions") or 0,
        "pendingActions": raw.get("pending_actions") or 0,
        "totalCreditsEarned": raw.get("total_credits_earned") or 0,
        "currentCredits": raw.get("current_credits") or 0,
    }


def action_breakdown(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    breakdown: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        entry = breakdown.setdefault(row.get("action_type"), {"count": 0, "credits": 0})
        entry["count"] += 1
        entry["credits"] += row.get("credits_earned") or 0
    return breakdown


def campaign_stats_from_rows(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Campaign overview for a user computed from their campaign rows."""
    rows = list(rows)
    breakdown: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        spent = (row.get("total_credits") or 0) - (row.get("remaining_credits") or 0)
        entry = breakdown.setdefault(row.get("interaction_type"), {"count": 0, "actions": 0, "credits": 0})
        entry["count"] += 1
        entry["actions"] += row.get("current_count") or 0
        entry["credits"] += spent

    return {
        "total_campaigns": len(rows),
        "active_campaigns": sum(1 for r in rows if r.get("status") == 'active'),
        "completed_campaigns": sum(1 for r in rows if r.get("status") == 'completed'),
        "total_credits_spent": sum(
            (r.get("total_credits") or 0) - (r.get("remaining_credits") or 0) for r in rows
        ),
        "total_actions_received": sum(r.get("current_count") or 0 for r in rows),
        "interaction_breakdown": breakdown,
    }


def action_stats_from_rows(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    rows = list(rows)
    return {
        "total_actions": len(rows),
        "total_credits_earned": sum(r.get("credits_earned") or 0 for r in rows),
        "action_breakdown": action_breakdown(rows),
    }


def format_campaign_stats(campaign_stats: Mapping[str, Any], action_stats: Mapping[str, Any],
                          recent_actions: List[Any]) -> Dict[str, Any]:
    return {
        "overview": {
            "totalCampaigns": campaign_stats.get("total_campaigns", 0),
            "activeCampaigns": campaign_stats.get("active_campaigns", 0),
            "completedCampaigns": campaign_stats.get("completed_campaigns", 0),
            "totalCreditsSpent": campaign_stats.get("total_credits_spent", 0),
            "totalActionsReceived": campaign_stats.get("total_actions_received", 0),
        },
        "interactionBreakdown": campaign_stats.get("interaction_breakdown", {}),
        "userActions": {
            "totalActions": action_stats.get("total_actions", 0),
            "totalCreditsEarned": action_stats.get("total_credits_earned", 0),
            "actionBreakdown": action_stats.get("action_breakdown", {}),
        },
        "recentActions": recent_actions,
    }


def profile_summary(info: Mapping[str, Any]) -> Dict[str, Any]:
    """Short TikTok profile card attached to follow campaigns."""
    user = info.get("user") or {}
    stats = info.get("stats") or {}
    return {
        "uniqueId": user.get("uniqueId"),
        "nickname": user.get("nickname"),
        "avatarThumb": user.get("avatarThumb"),
        "followerCount": stats.get("followerCount"),
        "followingCount": stats.get("followingCount"),
        "verified": user.get("verified"),
    }
