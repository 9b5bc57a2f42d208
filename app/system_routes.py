"""
System Routes

Health check used by the hosting platform and uptime monitors.
"""

import os
import logging
from typing import Dict
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from app.supabase_client import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["system"])

API_VERSION = "1.0.0"

# Integration -> environment variables it needs
INTEGRATION_KEYS = {
    "companies_house": ("COMPANIES_HOUSE_API_KEY",),
    "sendgrid": ("SENDGRID_API_KEY", "SENDGRID_FROM_EMAIL"),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_CLOUD_API_KEY"),
}


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    environment: str
    services: Dict[str, str]
    integrations: Dict[str, str]


def integration_status() -> Dict[str, str]:
    """Which third-party APIs have credentials. Gemini accepts either key."""
    status = {}
    for name, keys in INTEGRATION_KEYS.items():
        present = [bool(os.environ.get(k)) for k in keys]
        ok = any(present) if name == "gemini" else all(present)
        status[name] = "configured" if ok else "not_configured"
    return status


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Public health check. Overall status follows the database probe only;
    missing integrations are reported but do not degrade it.
    """
    services = {}

    supabase = get_supabase()
    if not supabase:
        services["database"] = "unavailable"
    else:
        try:
            supabase.table("clients").select("id").limit(1).execute()
            services["database"] = "healthy"
        except Exception as e:
            logger.warning(f"Health check database probe failed: {e}")
            services["database"] = f"error: {str(e)[:50]}"

    status = "healthy" if all(v == "healthy" for v in services.values()) else "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=API_VERSION,
        environment=os.getenv("ENVIRONMENT", "development"),
        services=services,
        integrations=integration_status(),
    )
