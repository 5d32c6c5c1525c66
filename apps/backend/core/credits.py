"""
Credit rules for campaigns and actions.

The database owns the ledger (balances, transactions, campaign counters);
this module only decides whether a request is acceptable before it is handed
to the stored procedures.
"""
import numbers
from typing import Any, Dict, List, Mapping, Optional

from scraper.urls import extract_video_id

ACTION_TYPES = ('view', 'like', 'comment', 'follow')

DEFAULT_CREDIT_VALUES = {
    'view': 1,
    'like': 2,
    'comment': 3,
    'follow': 5,
}

MIN_CREDIT_VALUE = 0.01
MAX_CREDIT_VALUE = 999.99

CAMPAIGN_STATUSES = ('active', 'paused')
DEFAULT_CATEGORY = 'general'


def is_valid_action_type(action_type: Any) -> bool:
    return action_type in ACTION_TYPES


def default_credit_values() -> List[Dict[str, Any]]:
    return [
        {"action_type": action_type, "credit_value": value}
        for action_type, value in DEFAULT_CREDIT_VALUES.items()
    ]


def validate_credit_value(value: Any) -> Optional[str]:
    """Returns an error message, or None when value is usable as a credit value."""
    if isinstance(value, bool) or not isinstance(value, numbers.Number):
        return 'credit_value must be a number between 0.01 and 999.99'
    if value < MIN_CREDIT_VALUE or value > MAX_CREDIT_VALUE:
        return 'credit_value must be between 0.01 and 999.99'
    return None


def validate_credit_entry(entry: Mapping[str, Any]) -> Optional[str]:
    if not is_valid_action_type(entry.get("action_type")):
        return f"action_type must be one of: {', '.join(ACTION_TYPES)}"
    return validate_credit_value(entry.get("credit_value"))


def campaign_cost(target_count: int, credits_per_action: float) -> float:
    return target_count * credits_per_action


def validate_campaign_request(data: Mapping[str, Any]) -> Optional[str]:
    """
    Check a campaign creation payload.

    Rules:
    - video_url, interaction_type, target_count and credits_per_action are required
    - credits_per_action must equal the fixed value for the interaction type
    - target_count must be a positive integer
    - video_url must point at a TikTok video
    """
    video_url = data.get("video_url")
    interaction_type = data.get("interaction_type")
    target_count = data.get("target_count")
    credits_per_action = data.get("credits_per_action")

    if not video_url or not interaction_type or not target_count or not credits_per_action:
        return 'Missing required fields'

    if not is_valid_action_type(interaction_type):
        return 'Invalid interaction type'

    expected = DEFAULT_CREDIT_VALUES[interaction_type]
    if credits_per_action != expected:
        return f'Invalid credits for {interaction_type}. Must be {expected}'

    if isinstance(target_count, bool) or not isinstance(target_count, int) or target_count <= 0:
        return 'Target count must be a positive number'

    if not extract_video_id(video_url):
        return 'Invalid TikTok URL'

    return None


def check_action_eligibility(
    campaign: Mapping[str, Any],
    user_id: str,
    already_performed: bool,
) -> Optional[str]:
    """
    Decide whether user_id may perform an action on campaign.

    Checks run in a fixed order so the first failing rule is the one
    reported. Returns the error message or None.
    """
    if campaign.get("status") != 'active':
        return 'Campaign is not active'

    if (campaign.get("remaining_credits") or 0) < (campaign.get("credits_per_action") or 0):
        return 'Campaign has insufficient credits'

    if (campaign.get("current_count") or 0) >= (campaign.get("target_count") or 0):
        return 'Campaign target has been reached'

    if already_performed:
        return 'You have already completed this action'

    if str(campaign.get("user_id")) == str(user_id):
        return 'You cannot perform actions on your own campaigns'

    return None


def map_action_error(message: Optional[str]) -> Optional[str]:
    """Translate an action-trigger failure into a client message (None when unknown)."""
    text = (message or "").lower()
    if 'insufficient credits' in text:
        return 'Campaign has insufficient credits'
    if 'target already reached' in text:
        return 'Campaign target has been reached'
    return None
