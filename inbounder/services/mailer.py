from typing import Optional, Dict, Any
from email.utils import make_msgid
from flask import current_app
from flask_mail import Message
from inbounder.extensions import mail
from .tracking import DeliveryStateTracker
import json
import time

def new_message_id() -> str:
    """Globally unique id without angle brackets, e.g. '1700000000.123.456@mg.acme.com'."""
    sender = current_app.config.get("MAIL_DEFAULT_SENDER") or ""
    domain = sender.rsplit("@", 1)[-1].strip(" >") if "@" in sender else None
    return make_msgid(domain=domain).strip("<>")

def send_tracked_email(
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
    *,
    campaign_id: Optional[str] = None,
    user_id: Optional[str] = None,
    template_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    tracker: Optional[DeliveryStateTracker] = None,
) -> Optional[str]:
    """
    Send through Flask-Mail (Mailgun SMTP) and start tracking the message.

    The message id travels twice: as the Message-ID header and inside
    X-Mailgun-Variables, which Mailgun echoes back as ``user-variables`` on
    every webhook event. Returns the message id, or None on SMTP failure.
    """
    tracker = tracker or DeliveryStateTracker()
    message_id = new_message_id()
    to_email = to_email.strip().lower()

    msg = Message(
        recipients=[to_email],
        subject=subject,
        body=text_body,
        html=html_body,
        extra_headers={"X-Mailgun-Variables": json.dumps({"outbound_message_id": message_id})},
    )
    msg.msgId = f"<{message_id}>"

    start = time.perf_counter()
    try:
        mail.send(msg)
    except Exception as ex:
        latency_ms = int((time.perf_counter() - start) * 1000)
        current_app.logger.warning(json.dumps({
            "event": "mail_send",
            "to": to_email,
            "subject": subject,
            "outcome": "smtp_error",
            "latency_ms": latency_ms,
            "smtp_error": str(ex),
        }))
        return None

    latency_ms = int((time.perf_counter() - start) * 1000)
    sender = msg.sender if isinstance(msg.sender, str) else None
    tracker.record_send(
        message_id,
        to_email,
        from_address=sender,
        subject=subject,
        template_name=template_name,
        campaign_id=campaign_id,
        user_id=user_id,
        metadata=metadata,
    )
    current_app.logger.info(json.dumps({
        "event": "mail_send",
        "to": to_email,
        "subject": subject,
        "outcome": "sent",
        "message_id": message_id,
        "latency_ms": latency_ms,
    }))
    return message_id
