"""
Client Alert Routes

CRUD for deadline reminders configured per client. Each alert owns one
primary schedule plus optional extra schedules (multi-schedule alerts).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.auth_permissions import get_current_user
from app.schemas import (
    CreateClientAlertRequest,
    ReminderSchedule,
    ToggleActiveRequest,
    UpdateClientAlertRequest,
)
from app.supabase_client import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/client-alerts", tags=["client-alerts"])

ALERTS_TABLE = "client_alerts"
SCHEDULES_TABLE = "client_alert_schedules"
ALERT_SELECT = "*, clients (client_name)"


def _db():
    supabase = get_supabase()
    if not supabase:
        raise HTTPException(status_code=503, detail="Database not available")
    return supabase


def _check_unique_days(primary_day: Optional[int], schedules: List[ReminderSchedule]) -> None:
    days = [s.days_before_due for s in schedules]
    if primary_day is not None:
        days.append(primary_day)
    if len(days) != len(set(days)):
        raise HTTPException(status_code=400, detail="Duplicate days_before_due values are not allowed.")


def _fetch_schedules(supabase, alert_id: str) -> list:
    result = supabase.table(SCHEDULES_TABLE)\
        .select("*")\
        .eq("client_alert_id", alert_id)\
        .order("days_before_due", desc=True)\
        .execute()
    return result.data or []


def _fetch_alert(supabase, alert_id: str) -> Optional[dict]:
    result = supabase.table(ALERTS_TABLE).select(ALERT_SELECT).eq("id", alert_id).execute()
    return result.data[0] if result.data else None


def _primary_day(supabase, alert_id: str) -> Optional[int]:
    result = supabase.table(ALERTS_TABLE).select("days_before_due").eq("id", alert_id).execute()
    return result.data[0]["days_before_due"] if result.data else None


# ============================================================================
# Create / List
# ============================================================================

@router.post("", status_code=201)
async def create_client_alert(
    data: CreateClientAlertRequest,
    user: dict = Depends(get_current_user),
):
    """Create an alert with its primary schedule and any extra schedules."""
    supabase = _db()

    extra_schedules = data.reminder_schedules if data.use_multi_schedule else []
    _check_unique_days(data.days_before_due, extra_schedules)

    new_alert = {
        "client_id": data.client_id,
        "alert_type": data.alert_type,
        "alert_message": data.alert_message,
        "days_before_due": data.days_before_due,
        "is_active": data.is_active,
        "notification_preference": data.notification_preference.value,
        "source_task_id": data.source_task_id or None,
        "use_multi_schedule": data.use_multi_schedule,
        "created_by": user["id"],
    }

    try:
        result = supabase.table(ALERTS_TABLE).insert(new_alert).execute()
    except Exception as e:
        logger.error(f"Supabase error creating client alert: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create client alert: {e}")
    if not result.data:
        raise HTTPException(status_code=500, detail="Failed to create client alert")

    alert = result.data[0]

    schedules = [{
        "client_alert_id": alert["id"],
        "days_before_due": data.days_before_due,
        "is_active": data.is_active,
        "alert_message": None,
    }]
    schedules.extend({
        "client_alert_id": alert["id"],
        "days_before_due": s.days_before_due,
        "is_active": s.is_active,
        "alert_message": s.alert_message or None,
    } for s in extra_schedules)

    try:
        supabase.table(SCHEDULES_TABLE).insert(schedules).execute()
    except Exception as e:
        logger.error(f"Supabase error creating schedules for alert {alert['id']}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create reminder schedules: {e}")

    logger.info(f"Created alert {alert['id']} ({data.alert_type}) with {len(schedules)} schedule(s)")
    return {**alert, "reminder_schedules": _fetch_schedules(supabase, alert["id"])}


@router.get("")
async def list_client_alerts(
    client_id: Optional[str] = Query(None),
    user: dict = Depends(get_current_user),
):
    """List alerts newest first, optionally for one client."""
    supabase = _db()

    query = supabase.table(ALERTS_TABLE).select(ALERT_SELECT).order("created_at", desc=True)
    if client_id:
        query = query.eq("client_id", client_id)

    try:
        alerts = query.execute().data or []
    except Exception as e:
        logger.error(f"Supabase error fetching client alerts: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch client alerts: {e}")

    results = []
    for alert in alerts:
        try:
            schedules = _fetch_schedules(supabase, alert["id"])
        except Exception as e:
            logger.error(f"Error fetching schedules for alert {alert['id']}: {e}")
            schedules = []
        results.append({**alert, "reminder_schedules": schedules})

    return results


# ============================================================================
# Single alert
# ============================================================================

@router.get("/{alert_id}")
async def get_client_alert(
    alert_id: str,
    user: dict = Depends(get_current_user),
):
    supabase = _db()

    try:
        alert = _fetch_alert(supabase, alert_id)
        if not alert:
            raise HTTPException(status_code=404, detail="Client alert not found.")
        schedules = _fetch_schedules(supabase, alert_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Supabase error fetching client alert {alert_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch client alert: {e}")

    return {**alert, "reminder_schedules": schedules}


def _sync_schedules(supabase, alert_id: str, incoming: List[ReminderSchedule]) -> None:
    """Make the stored schedules match the incoming list."""
    existing = supabase.table(SCHEDULES_TABLE).select("*").eq("client_alert_id", alert_id).execute().data or []

    incoming_ids = {s.id for s in incoming if s.id}
    stale_ids = [s["id"] for s in existing if s["id"] not in incoming_ids]
    if stale_ids:
        supabase.table(SCHEDULES_TABLE).delete().in_("id", stale_ids).execute()

    for schedule in incoming:
        if schedule.id:
            fields = schedule.model_dump(exclude={"id"})
            supabase.table(SCHEDULES_TABLE).update(fields).eq("id", schedule.id).execute()

    new_rows = [
        {**s.model_dump(exclude={"id"}), "client_alert_id": alert_id}
        for s in incoming if not s.id
    ]
    if new_rows:
        supabase.table(SCHEDULES_TABLE).insert(new_rows).execute()


@router.put("/{alert_id}")
async def update_client_alert(
    alert_id: str,
    data: UpdateClientAlertRequest,
    user: dict = Depends(get_current_user),
):
    """Partially update an alert and reconcile its schedules."""
    supabase = _db()

    updates = data.model_dump(exclude_unset=True, exclude={"reminder_schedules"})
    schedules = data.reminder_schedules

    if not updates and schedules is None:
        raise HTTPException(status_code=400, detail="No update data provided.")

    if "notification_preference" in updates and updates["notification_preference"] is not None:
        updates["notification_preference"] = data.notification_preference.value
    if updates.get("source_task_id") == "":
        updates["source_task_id"] = None

    try:
        if schedules and data.use_multi_schedule:
            primary_day = data.days_before_due
            if primary_day is None:
                primary_day = _primary_day(supabase, alert_id)
            _check_unique_days(primary_day, schedules)

        if updates:
            result = supabase.table(ALERTS_TABLE).update(updates).eq("id", alert_id).execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Client alert not found for update.")

        if data.use_multi_schedule is not False and schedules:
            _sync_schedules(supabase, alert_id, schedules)
        elif data.use_multi_schedule is False:
            primary_day = data.days_before_due
            if primary_day is None:
                primary_day = _primary_day(supabase, alert_id)
            supabase.table(SCHEDULES_TABLE)\
                .delete()\
                .eq("client_alert_id", alert_id)\
                .neq("days_before_due", primary_day)\
                .execute()

        alert = _fetch_alert(supabase, alert_id)
        if not alert:
            raise HTTPException(status_code=404, detail="Client alert not found.")
        updated_schedules = _fetch_schedules(supabase, alert_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Supabase error updating client alert {alert_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update client alert: {e}")

    logger.info(f"Updated alert {alert_id}: {sorted(updates.keys())}")
    return {**alert, "reminder_schedules": updated_schedules}


@router.delete("/{alert_id}")
async def delete_client_alert(
    alert_id: str,
    user: dict = Depends(get_current_user),
):
    supabase = _db()

    # Schedules are removed by the foreign key cascade
    try:
        supabase.table(ALERTS_TABLE).delete().eq("id", alert_id).execute()
    except Exception as e:
        logger.error(f"Supabase error deleting client alert {alert_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete client alert: {e}")

    return {"message": "Client alert deleted successfully."}


@router.patch("/{alert_id}/toggle-active")
async def toggle_client_alert(
    alert_id: str,
    data: ToggleActiveRequest,
    user: dict = Depends(get_current_user),
):
    supabase = _db()

    try:
        result = supabase.table(ALERTS_TABLE).update({"is_active": data.is_active}).eq("id", alert_id).execute()
    except Exception as e:
        logger.error(f"Supabase error updating alert status: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update alert status: {e}")

    if not result.data:
        raise HTTPException(status_code=404, detail=f"Alert with ID {alert_id} not found.")

    return {"message": "Alert status updated successfully.", "alert": result.data[0]}
