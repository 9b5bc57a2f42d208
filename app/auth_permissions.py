"""
Request Authorization

FastAPI dependencies shared by the routers:
- get_current_user: any signed-in practice user (Supabase JWT)
- get_admin_user: users whose profile has is_admin set
- verify_cron_secret: the scheduler's shared bearer secret
- verify_storage_webhook_secret: the storage webhook's shared bearer secret
"""

import os
import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from app import supabase_client

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header missing")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


async def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    """Extract and verify user from Supabase JWT token."""
    token = _bearer_token(authorization)
    user_data = supabase_client.verify_supabase_token(token)

    if not user_data:
        logger.warning("[Auth] Token verification returned None")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return user_data


async def get_admin_user(user: dict = Depends(get_current_user)) -> dict:
    """Verify user is an admin."""
    profile = supabase_client.get_user_profile(user["id"])
    if not profile or not profile.get("is_admin"):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def _check_shared_secret(authorization: Optional[str], env_name: str, caller: str) -> None:
    secret = os.environ.get(env_name)
    expected = f"Bearer {secret}"

    if not secret or not authorization or not hmac.compare_digest(authorization, expected):
        logger.warning(f"Unauthorized attempt to call {caller}. Check {env_name} and Authorization header.")
        raise HTTPException(status_code=401, detail="Unauthorized")


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Only the scheduled job knows CRON_SECRET_KEY."""
    _check_shared_secret(authorization, "CRON_SECRET_KEY", "alert analyzer")


async def verify_storage_webhook_secret(authorization: Optional[str] = Header(None)) -> None:
    """The storage database webhook sends STORAGE_WEBHOOK_SECRET as a bearer token."""
    _check_shared_secret(authorization, "STORAGE_WEBHOOK_SECRET", "storage ingestion webhook")
