"""
Action credit values: how many credits each action type is worth.
Reads are public; updates require the admin API token.
"""
import logging
from typing import Any, List, Optional
from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel
import psycopg2

from core import store
from core.credits import (
    ACTION_TYPES,
    default_credit_values,
    is_valid_action_type,
    validate_credit_entry,
    validate_credit_value,
)
from security.session import verify_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/action-credits", tags=["action-credits"])


class CreditValueUpdate(BaseModel):
    action_type: Optional[str] = None
    credit_value: Optional[Any] = None
    auth_token: Optional[str] = None


class BulkCreditValueUpdate(BaseModel):
    credits: Optional[List[dict]] = None
    auth_token: Optional[str] = None


def _require_admin(body_token: Optional[str], header_token: Optional[str]):
    if not verify_admin_token(body_token or header_token):
        raise HTTPException(status_code=401, detail="Admin access required")


@router.get("")
async def list_credit_values():
    """Current values; the built-in defaults when none are stored."""
    rows = store.list_credit_values()
    if not rows:
        return {
            "success": True,
            "data": default_credit_values(),
            "error": None,
            "message": "Using default credit values",
        }
    return {
        "success": True,
        "data": rows,
        "error": None,
        "message": "Action credit values fetched successfully",
    }


@router.post("")
async def update_credit_value(body: CreditValueUpdate, x_admin_token: Optional[str] = Header(None)):
    if not body.action_type or body.credit_value is None:
        raise HTTPException(status_code=400, detail="action_type and credit_value are required")

    if not is_valid_action_type(body.action_type):
        raise HTTPException(status_code=400, detail=f"action_type must be one of: {', '.join(ACTION_TYPES)}")

    error = validate_credit_value(body.credit_value)
    if error:
        raise HTTPException(status_code=400, detail=error)

    _require_admin(body.auth_token, x_admin_token)

    entry = {"action_type": body.action_type, "credit_value": body.credit_value}
    try:
        rows = store.upsert_credit_values([entry])
    except psycopg2.Error as e:
        logger.error(f"[action_credits] upsert error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update action credit value")

    logger.info(f"[action_credits] {body.action_type} set to {body.credit_value}")
    return {
        "success": True,
        "data": rows,
        "error": None,
        "message": f"Credit value for {body.action_type} updated successfully",
    }


@router.put("")
async def bulk_update_credit_values(body: BulkCreditValueUpdate, x_admin_token: Optional[str] = Header(None)):
    if not body.credits:
        raise HTTPException(status_code=400, detail="credits array is required")

    _require_admin(body.auth_token, x_admin_token)

    for entry in body.credits:
        error = validate_credit_entry(entry)
        if error:
            raise HTTPException(status_code=400, detail=error)

    entries = [{"action_type": e["action_type"], "credit_value": e["credit_value"]} for e in body.credits]
    try:
        rows = store.upsert_credit_values(entries)
    except psycopg2.Error as e:
        logger.error(f"[action_credits] bulk upsert error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update action credit values")

    return {
        "success": True,
        "data": rows,
        "error": None,
        "message": "Action credit values updated successfully",
    }
