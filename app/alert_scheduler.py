"""
Daily Alert Analyzer

Walks every active client alert, works out whether its reminder window has
opened and either emails the client or drafts the reminder for the team.

Run by the scheduler endpoint (cron) and by `python worker.py alerts`.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from app.email_service import send_email
from app.schemas import AlertType, NotificationPreference

logger = logging.getLogger(__name__)

ALERTS_TABLE = "client_alerts"
DRAFTS_TABLE = "drafted_reminders"

ACTIVE_ALERTS_SELECT = """
    id, client_id, alert_type, alert_message, days_before_due,
    notification_preference, last_triggered_at, source_task_id,
    clients (
        id, client_name, client_email, automatedEmails, company_name,
        next_accounts_due, next_confirmation_statement_due,
        next_vat_due, corporation_tax_deadline
    ),
    client_tasks (id, task_title, task_description, due_date)
"""

# Alert type -> clients column holding the deadline
CLIENT_DUE_DATE_COLUMNS = {
    AlertType.NEXT_ACCOUNTS_DUE.value: "next_accounts_due",
    AlertType.NEXT_CONFIRMATION_STATEMENT_DUE.value: "next_confirmation_statement_due",
    AlertType.NEXT_VAT_DUE.value: "next_vat_due",
    AlertType.CORPORATION_TAX_DEADLINE.value: "corporation_tax_deadline",
}


def friendly_alert_type(alert_type: str) -> str:
    """NEXT_ACCOUNTS_DUE -> Next Accounts Due"""
    return alert_type.replace("_", " ").lower().title()


def parse_due_date(value: Any) -> Optional[date]:
    """Parse a date or timestamp column. None when empty or unparseable."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def format_due_date(due: date) -> str:
    """5 April 2024"""
    return f"{due.day} {due.strftime('%B %Y')}"


def resolve_due_date(alert: dict) -> Tuple[Optional[str], Dict[str, str]]:
    """
    Find the deadline an alert refers to.

    Returns (raw due date, task details). Raises KeyError for alert types
    the analyzer does not know.
    """
    alert_type = alert.get("alert_type") or ""
    client = alert.get("clients") or {}
    task_details = {"title": alert_type.replace("_", " "), "description": ""}

    if alert_type in CLIENT_DUE_DATE_COLUMNS:
        return client.get(CLIENT_DUE_DATE_COLUMNS[alert_type]), task_details

    if alert_type == AlertType.CLIENT_TASK.value:
        task = alert.get("client_tasks") or {}
        if alert.get("source_task_id") and task.get("due_date"):
            task_details["title"] = task.get("task_title") or task_details["title"]
            task_details["description"] = task.get("task_description") or ""
            return task["due_date"], task_details
        if alert.get("source_task_id"):
            logger.warning(
                f"Client task details not found for alert ID {alert.get('id')} "
                f"with source_task_id {alert.get('source_task_id')}."
            )
        return None, task_details

    raise KeyError(alert_type)


def render_template(alert: dict, due: date, task_details: Dict[str, str]) -> str:
    client = alert.get("clients") or {}
    client_name = client.get("client_name") or "Valued Client"
    replacements = {
        "{{client_name}}": client_name,
        "{{company_name}}": client.get("company_name") or client.get("client_name") or "Your Company",
        "{{due_date}}": format_due_date(due),
        "{{task_title}}": task_details["title"],
        "{{task_description}}": task_details["description"],
        "{{alert_type_friendly_name}}": friendly_alert_type(alert.get("alert_type") or ""),
    }

    body = alert.get("alert_message") or ""
    for placeholder, value in replacements.items():
        body = body.replace(placeholder, value)
    return body


def is_due(today: date, trigger: date, last_triggered_at: Any) -> bool:
    """The window is open and this alert has not fired inside it yet."""
    if today < trigger:
        return False
    last_triggered = parse_due_date(last_triggered_at)
    return last_triggered is None or last_triggered < trigger


def run_alert_analyzer(
    supabase,
    today: Optional[date] = None,
    send: Callable[..., None] = send_email,
) -> dict:
    """
    Process all active alerts once.

    Returns {message, processed, errors, skipped}. Failures on individual
    alerts are counted, never raised; a failed alert query raises.
    """
    today = today or date.today()
    logger.info("Starting daily alert analysis...")

    result = supabase.table(ALERTS_TABLE).select(ACTIVE_ALERTS_SELECT).eq("is_active", True).execute()
    alerts = result.data or []

    if not alerts:
        logger.info("No active alerts to process.")
        return {"message": "No active alerts to process.", "processed": 0, "errors": 0, "skipped": 0}

    processed = errors = skipped = 0

    for alert in alerts:
        alert_id = alert.get("id")
        client = alert.get("clients")

        if not client:
            logger.warning(f"Alert ID {alert_id} is missing client data. Skipping.")
            skipped += 1
            continue

        if client.get("automatedEmails") is False:
            logger.info(f"Skipping alert for client {client.get('client_name')} (ID: {client.get('id')}): automated emails disabled.")
            skipped += 1
            continue

        try:
            raw_due, task_details = resolve_due_date(alert)
        except KeyError:
            logger.warning(f"Unknown alert_type: {alert.get('alert_type')} for alert ID {alert_id}.")
            skipped += 1
            continue

        due = parse_due_date(raw_due)
        if not due:
            logger.warning(
                f"No valid due date for alert ID {alert_id} "
                f"(Type: {alert.get('alert_type')}, Client: {client.get('client_name')}, Date: {raw_due}). Skipping."
            )
            skipped += 1
            continue

        trigger = date.fromordinal(due.toordinal() - int(alert.get("days_before_due") or 0))
        if not is_due(today, trigger, alert.get("last_triggered_at")):
            continue

        logger.info(f"Processing alert ID {alert_id} for client {client.get('client_name')}. Trigger date: {trigger}, Due date: {due}")

        subject = f"Reminder: {task_details['title']} Due Soon"
        body = render_template(alert, due, task_details)

        recipient = client.get("client_email")
        if not recipient:
            logger.warning(f"No email found for client ID {client.get('id')} on alert ID {alert_id}. Skipping.")
            errors += 1
            continue

        try:
            if alert.get("notification_preference") == NotificationPreference.SEND_DIRECT_TO_CLIENT.value:
                send(recipient, subject, body)
                logger.info(f"Direct email sent for alert ID {alert_id} to {recipient}.")
            elif alert.get("notification_preference") == NotificationPreference.DRAFT_FOR_TEAM.value:
                supabase.table(DRAFTS_TABLE).insert({
                    "client_id": client.get("id"),
                    "client_alert_id": alert_id,
                    "recipient_email": recipient,
                    "email_subject": subject,
                    "email_body": body,
                    "status": "PENDING_REVIEW",
                }).execute()
                logger.info(f"Draft created for alert ID {alert_id} for client {client.get('client_name')}.")
        except Exception as e:
            logger.error(f"Error during send/draft for alert ID {alert_id}: {e}")
            errors += 1
            continue

        try:
            supabase.table(ALERTS_TABLE)\
                .update({"last_triggered_at": datetime.now(timezone.utc).isoformat()})\
                .eq("id", alert_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating last_triggered_at for alert ID {alert_id}: {e}")
            errors += 1
            continue

        processed += 1

    message = f"Daily alert analysis complete. Processed: {processed}, Errors: {errors}"
    logger.info(message)
    return {"message": message, "processed": processed, "errors": errors, "skipped": skipped}
