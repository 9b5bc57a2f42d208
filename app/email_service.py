"""
Email delivery through the SendGrid v3 API.
"""

import os
import logging
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
DEFAULT_COMPANY_NAME = "Your Accounting Firm"
TIMEOUT_SECS = 30


class EmailDeliveryError(RuntimeError):
    """SendGrid is not configured or rejected the message."""


def build_payload(
    to: str,
    subject: str,
    html_body: str,
    from_email: str,
    sender_name: str,
    cc: Optional[List[str]] = None,
) -> dict:
    personalization = {"to": [{"email": to}]}
    if cc:
        personalization["cc"] = [{"email": address} for address in cc]

    return {
        "personalizations": [personalization],
        "from": {"email": from_email, "name": sender_name},
        "subject": subject,
        "content": [{"type": "text/html", "value": html_body}],
    }


def send_email(
    to: str,
    subject: str,
    html_body: str,
    sender_name: Optional[str] = None,
    cc: Optional[List[str]] = None,
) -> None:
    """Send an HTML email. Raises EmailDeliveryError on any failure."""
    api_key = os.environ.get("SENDGRID_API_KEY")
    from_email = os.environ.get("SENDGRID_FROM_EMAIL")
    sender_name = sender_name or os.environ.get("YOUR_COMPANY_NAME") or DEFAULT_COMPANY_NAME

    if not api_key or not from_email:
        logger.error("SendGrid API Key or From Email not configured.")
        raise EmailDeliveryError("SendGrid configuration missing.")

    payload = build_payload(to, subject, html_body, from_email, sender_name, cc)

    try:
        response = requests.post(
            SENDGRID_SEND_URL,
            json=payload,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=TIMEOUT_SECS,
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"SendGrid request failed: {e}")
        raise EmailDeliveryError(f"SendGrid request failed: {e}")

    if not response.ok:
        logger.error(f"SendGrid API Error ({response.status_code}): {response.text}")
        raise EmailDeliveryError(f"SendGrid API Error: {response.status_code} - {response.text}")

    cc_note = f" with CC to {', '.join(cc)}" if cc else ""
    logger.info(f"Email sent to {to}{cc_note} via SendGrid. Status: {response.status_code}")
