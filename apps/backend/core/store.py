"""
Postgres gateway for profiles, campaigns, actions and credit values.

One short-lived connection per call. Balance and counter updates are never
done here: they happen inside the database (stored procedures and the
triggers on `actions`), this module only calls them.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import psycopg2
from psycopg2 import errors as psycopg2_errors
from psycopg2.extras import Json, RealDictCursor

from app.db_config import db_config
from core.exchange import resolve_sort

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5


class StoreUnavailable(Exception):
    """No database is configured."""


class ActionRejected(Exception):
    """The database refused to record an action (trigger or constraint)."""


@contextmanager
def db_cursor(connect_timeout: int = CONNECT_TIMEOUT) -> Iterator[RealDictCursor]:
    """Yield a RealDictCursor; commit on success, roll back on error."""
    conn_params = db_config.get_connection_params()
    if not conn_params:
        raise StoreUnavailable("Database not configured")

    conn = psycopg2.connect(**conn_params, connect_timeout=connect_timeout)
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cursor:
            yield cursor
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _fetchone(query: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
    with db_cursor() as cursor:
        cursor.execute(query, params)
        row = cursor.fetchone()
        return dict(row) if row else None


def _fetchall(query: str, params: tuple = ()) -> List[Dict[str, Any]]:
    with db_cursor() as cursor:
        cursor.execute(query, params)
        return [dict(row) for row in cursor.fetchall()]


def _count(query: str, params: tuple = ()) -> int:
    row = _fetchone(query, params)
    return int(row["total"]) if row else 0


def ping(timeout: int = 1) -> bool:
    """Trivial round trip used by the health check."""
    try:
        with db_cursor(connect_timeout=timeout) as cursor:
            cursor.execute("SELECT 1")
            return cursor.fetchone() is not None
    except (StoreUnavailable, psycopg2.Error) as e:
        logger.info(f"[store] Health check failed: {e}")
        return False


# Profiles

def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM profiles WHERE id = %s", (user_id,))


def find_profile_by_tiktok_username(username: str, exclude_user_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone(
        "SELECT id, email FROM profiles WHERE tiktok_username = %s AND id <> %s LIMIT 1",
        (username, exclude_user_id),
    )


def update_tiktok_username(user_id: str, username: Optional[str]) -> Optional[Dict[str, Any]]:
    return _fetchone(
        """
        UPDATE profiles SET tiktok_username = %s, updated_at = NOW()
        WHERE id = %s
        RETURNING *
        """,
        (username, user_id),
    )


def update_notification_settings(user_id: str, settings: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return _fetchone(
        """
        UPDATE profiles SET notification_settings = %s, updated_at = NOW()
        WHERE id = %s
        RETURNING *
        """,
        (Json(settings), user_id),
    )


# Campaigns

EXCHANGE_CAMPAIGN_SELECT = """
    SELECT c.id, c.user_id, c.interaction_type, c.credits_per_action,
           c.target_count, c.current_count, c.remaining_credits, c.created_at,
           v.title AS video_title, v.description AS video_description,
           v.category AS video_category, v.video_url,
           p.tiktok_username AS creator_tiktok
    FROM campaigns c
    JOIN videos v ON v.id = c.video_id
    JOIN profiles p ON p.id = c.user_id
    WHERE c.status = 'active'
      AND c.user_id <> %s
      AND c.remaining_credits > 0
"""


def list_exchange_campaigns(
    user_id: str,
    interaction_type: Optional[str] = None,
    category: Optional[str] = None,
    min_credits: Optional[int] = None,
    max_credits: Optional[int] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Active campaigns of other users with credits left, newest first."""
    query = EXCHANGE_CAMPAIGN_SELECT
    params: List[Any] = [user_id]

    if interaction_type:
        query += " AND c.interaction_type = %s"
        params.append(interaction_type)
    if category:
        query += " AND v.category = %s"
        params.append(category)
    if min_credits:
        query += " AND c.credits_per_action >= %s"
        params.append(min_credits)
    if max_credits:
        query += " AND c.credits_per_action <= %s"
        params.append(max_credits)
    if search:
        query += " AND v.title ILIKE %s"
        params.append(f"%{search}%")

    query += " ORDER BY c.created_at DESC"
    return _fetchall(query, tuple(params))


def list_campaigns_for_exchange(
    user_id: str,
    campaign_type: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = "SELECT * FROM campaigns WHERE user_id <> %s AND status = %s"
    params: List[Any] = [user_id, status or 'active']

    if campaign_type:
        query += " AND campaign_type = %s"
        params.append(campaign_type)

    column, descending = resolve_sort(sort_by)
    query += f" ORDER BY {column} {'DESC' if descending else 'ASC'}"
    return _fetchall(query, tuple(params))


def list_active_campaigns(user_id: str, page: int, limit: int, interaction_type: Optional[str] = None,
                          category: Optional[str] = None, min_credits: Optional[int] = None,
                          max_credits: Optional[int] = None) -> Tuple[List[Dict[str, Any]], int]:
    """Page of the active_campaigns view (other users only) plus the unfiltered total."""
    base = """
        FROM active_campaigns ac
        JOIN videos v ON v.id = ac.video_id
        WHERE ac.status = 'active' AND ac.user_id <> %s AND ac.remaining_credits > 0
    """
    filters = ""
    params: List[Any] = [user_id]
    if interaction_type:
        filters += " AND ac.interaction_type = %s"
        params.append(interaction_type)
    if category:
        filters += " AND v.category = %s"
        params.append(category)
    if min_credits:
        filters += " AND ac.credits_per_action >= %s"
        params.append(min_credits)
    if max_credits:
        filters += " AND ac.credits_per_action <= %s"
        params.append(max_credits)

    rows = _fetchall(
        f"""
        SELECT ac.*, v.title AS video_title, v.description AS video_description,
               v.category AS video_category
        {base}{filters}
        ORDER BY ac.created_at DESC
        LIMIT %s OFFSET %s
        """,
        tuple(params + [limit, (page - 1) * limit]),
    )
    total = _count(f"SELECT COUNT(*) AS total {base}", (user_id,))
    return rows, total


def get_campaign(campaign_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM campaigns WHERE id = %s", (campaign_id,))


def get_active_campaign_view(campaign_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM active_campaigns WHERE id = %s", (campaign_id,))


def get_owned_campaign(campaign_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone(
        "SELECT * FROM campaigns WHERE id = %s AND user_id = %s",
        (campaign_id, user_id),
    )


def update_campaign_status(campaign_id: str, user_id: str, status: str) -> Optional[Dict[str, Any]]:
    return _fetchone(
        """
        UPDATE campaigns SET status = %s, updated_at = NOW()
        WHERE id = %s AND user_id = %s
        RETURNING *
        """,
        (status, campaign_id, user_id),
    )


def list_user_campaigns(user_id: str, page: int, limit: int, status: Optional[str] = None,
                        interaction_type: Optional[str] = None) -> Tuple[List[Dict[str, Any]], int]:
    query = """
        SELECT c.*, v.title AS video_title, v.description AS video_description,
               v.video_url, v.thumbnail_url, v.category AS video_category,
               v.tiktok_video_id AS video_tiktok_id
        FROM campaigns c
        LEFT JOIN videos v ON v.id = c.video_id
        WHERE c.user_id = %s
    """
    params: List[Any] = [user_id]
    if status:
        query += " AND c.status = %s"
        params.append(status)
    if interaction_type:
        query += " AND c.interaction_type = %s"
        params.append(interaction_type)
    query += " ORDER BY c.created_at DESC LIMIT %s OFFSET %s"
    params += [limit, (page - 1) * limit]

    rows = _fetchall(query, tuple(params))
    total = _count("SELECT COUNT(*) AS total FROM campaigns WHERE user_id = %s", (user_id,))
    return rows, total


def list_active_campaign_summaries(user_id: str) -> List[Dict[str, Any]]:
    return _fetchall(
        """
        SELECT id, user_id, remaining_credits FROM active_campaigns
        WHERE status = 'active' AND user_id <> %s AND remaining_credits > 0
        """,
        (user_id,),
    )


def campaign_rows_for_stats(user_id: str) -> List[Dict[str, Any]]:
    return _fetchall(
        """
        SELECT id, status, interaction_type, current_count, total_credits,
               remaining_credits, target_count
        FROM campaigns WHERE user_id = %s
        """,
        (user_id,),
    )


# Actions

def action_exists(user_id: str, campaign_id: str, action_type: str) -> bool:
    row = _fetchone(
        "SELECT 1 AS found FROM actions WHERE user_id = %s AND campaign_id = %s AND action_type = %s LIMIT 1",
        (user_id, campaign_id, action_type),
    )
    return row is not None


def insert_action(user_id: str, campaign_id: str, action_type: str, credits_earned: float,
                  proof_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Record a completed action. The insert triggers move the credits, bump the
    campaign counters and complete the campaign when its target is reached.

    Raises ActionRejected when a trigger refuses the row.
    """
    try:
        row = _fetchone(
            """
            INSERT INTO actions (user_id, campaign_id, action_type, credits_earned, status, proof_data)
            VALUES (%s, %s, %s, %s, 'completed', %s)
            RETURNING *
            """,
            (user_id, campaign_id, action_type, credits_earned,
             Json(proof_data) if proof_data is not None else None),
        )
    except psycopg2.Error as e:
        message = (e.pgerror or str(e)).strip()
        logger.warning(f"[store] action insert rejected: {message}")
        raise ActionRejected(message) from e
    return row


def list_user_actions(user_id: str, campaign_id: Optional[str] = None, action_type: Optional[str] = None,
                      status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Actions performed by a user, each with its campaign summary."""
    query = """
        SELECT a.*,
               json_build_object(
                   'id', c.id,
                   'campaign_type', c.campaign_type,
                   'tiktok_video_id', c.tiktok_video_id,
                   'target_tiktok_username', c.target_tiktok_username,
                   'interaction_type', c.interaction_type,
                   'credits_per_action', c.credits_per_action
               ) AS campaigns
        FROM actions a
        LEFT JOIN campaigns c ON c.id = a.campaign_id
        WHERE a.user_id = %s
    """
    params: List[Any] = [user_id]
    if campaign_id:
        query += " AND a.campaign_id = %s"
        params.append(campaign_id)
    if action_type:
        query += " AND a.action_type = %s"
        params.append(action_type)
    if status:
        query += " AND a.status = %s"
        params.append(status)
    query += " ORDER BY a.created_at DESC"
    return _fetchall(query, tuple(params))


def list_action_history(user_id: str, page: int, limit: int,
                        action_type: Optional[str] = None) -> Tuple[List[Dict[str, Any]], int]:
    query = """
        SELECT a.id, a.action_type, a.credits_earned, a.status, a.created_at,
               c.id AS campaign_id, c.interaction_type,
               v.id AS video_id, v.title AS video_title, v.video_url,
               v.thumbnail_url, v.category AS video_category
        FROM actions a
        JOIN campaigns c ON c.id = a.campaign_id
        LEFT JOIN videos v ON v.id = c.video_id
        WHERE a.user_id = %s
    """
    count_query = "SELECT COUNT(*) AS total FROM actions WHERE user_id = %s"
    params: List[Any] = [user_id]
    if action_type:
        query += " AND a.action_type = %s"
        count_query += " AND action_type = %s"
        params.append(action_type)

    rows = _fetchall(query + " ORDER BY a.created_at DESC LIMIT %s OFFSET %s",
                     tuple(params + [limit, (page - 1) * limit]))
    return rows, _count(count_query, tuple(params))


def action_rows_for_stats(user_id: str) -> List[Dict[str, Any]]:
    return _fetchall(
        "SELECT id, action_type, credits_earned, created_at FROM actions WHERE user_id = %s",
        (user_id,),
    )


def list_campaign_actions(campaign_id: str, page: int, limit: int) -> List[Dict[str, Any]]:
    return _fetchall(
        """
        SELECT a.*, p.email AS performer_email
        FROM actions a
        JOIN profiles p ON p.id = a.user_id
        WHERE a.campaign_id = %s
        ORDER BY a.created_at DESC
        LIMIT %s OFFSET %s
        """,
        (campaign_id, limit, (page - 1) * limit),
    )


def recent_actions_on_user_campaigns(user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
    return _fetchall(
        """
        SELECT a.id, a.action_type, a.credits_earned, a.created_at, p.email AS performer_email
        FROM actions a
        JOIN campaigns c ON c.id = a.campaign_id
        JOIN profiles p ON p.id = a.user_id
        WHERE c.user_id = %s
        ORDER BY a.created_at DESC
        LIMIT %s
        """,
        (user_id, limit),
    )


# Action credit values

def list_credit_values() -> List[Dict[str, Any]]:
    return _fetchall(
        "SELECT action_type, credit_value FROM action_credit_values ORDER BY action_type ASC"
    )


def upsert_credit_values(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    with db_cursor() as cursor:
        for entry in entries:
            cursor.execute(
                """
                INSERT INTO action_credit_values (action_type, credit_value)
                VALUES (%s, %s)
                ON CONFLICT (action_type) DO UPDATE SET credit_value = EXCLUDED.credit_value
                RETURNING action_type, credit_value
                """,
                (entry["action_type"], entry["credit_value"]),
            )
            rows.append(dict(cursor.fetchone()))
    return rows


# Stored procedures

def create_campaign_transaction(
    user_id: str,
    video_url: str,
    tiktok_video_id: str,
    video_title: str,
    description: str,
    category: str,
    interaction_type: str,
    target_count: int,
    credits_per_action: float,
    total_credits: float,
) -> Any:
    """Create video + campaign and debit the creator in one transaction; returns the campaign id."""
    row = _fetchone(
        """
        SELECT create_campaign_transaction(
            p_user_id => %s, p_video_url => %s, p_tiktok_video_id => %s,
            p_video_title => %s, p_description => %s, p_category => %s,
            p_interaction_type => %s, p_target_count => %s,
            p_credits_per_action => %s, p_total_credits => %s
        ) AS campaign_id
        """,
        (user_id, video_url, tiktok_video_id, video_title, description, category,
         interaction_type, target_count, credits_per_action, total_credits),
    )
    return row["campaign_id"] if row else None


def process_action(user_id: str, campaign_id: str, action_type: str,
                   proof_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Returns the procedure's {success, message, credits_earned} result."""
    row = _fetchone(
        """
        SELECT process_action(
            p_user_id => %s, p_campaign_id => %s,
            p_action_type => %s, p_proof_data => %s
        ) AS result
        """,
        (user_id, campaign_id, action_type, Json(proof_data or {})),
    )
    return (row or {}).get("result") or {}


def delete_campaign_with_refund(campaign_id: str, user_id: str):
    with db_cursor() as cursor:
        cursor.execute(
            "SELECT delete_campaign_with_refund(p_campaign_id => %s, p_user_id => %s)",
            (campaign_id, user_id),
        )


def get_user_exchange_stats(user_id: str) -> Optional[Dict[str, Any]]:
    return _fetchone("SELECT * FROM get_user_exchange_stats(%s)", (user_id,))


def call_user_function(name: str, user_id: str) -> Optional[Any]:
    """
    Call an optional per-user analytics function (get_campaign_analytics,
    get_user_action_stats). Returns None when the function is not installed.
    """
    if name not in ("get_campaign_analytics", "get_user_action_stats"):
        raise ValueError(f"Unknown analytics function: {name}")
    try:
        row = _fetchone(f"SELECT {name}(p_user_id => %s) AS result", (user_id,))
    except psycopg2_errors.UndefinedFunction:
        logger.info(f"[store] {name} not installed, using manual aggregation")
        return None
    return (row or {}).get("result")
