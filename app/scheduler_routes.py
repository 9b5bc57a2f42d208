"""
Scheduler Routes

Entry points for the hosting platform's cron. Guarded by CRON_SECRET_KEY.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.alert_scheduler import run_alert_analyzer
from app.auth_permissions import verify_cron_secret
from app.schemas import AlertAnalyzerSummary
from app.supabase_client import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.post("/run-alert-analyzer", response_model=AlertAnalyzerSummary)
async def run_alert_analyzer_endpoint(_: None = Depends(verify_cron_secret)):
    supabase = get_supabase()
    if not supabase:
        raise HTTPException(status_code=503, detail="Database not available")

    try:
        return run_alert_analyzer(supabase)
    except Exception as e:
        logger.error(f"Critical error in alert analyzer: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching active alerts: {e}")
