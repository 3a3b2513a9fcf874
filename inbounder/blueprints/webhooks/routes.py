import json
from flask import request, jsonify, current_app
from . import bp
from inbounder.extensions import limiter
from inbounder.models import Tenant
from inbounder.services.webhook_auth import AuthError, AuthErrorKind, WebhookAuthConfig, WebhookAuthenticator
from inbounder.services.events import parse_event_payload
from inbounder.services.tracking import DeliveryStateTracker
from inbounder.services.inbound import store_inbound_email, extract_message_id

def _webhook_limit() -> str:
    return current_app.config.get("MAILGUN_WEBHOOK_RATE_LIMIT") or "600 per minute"

def _authenticator() -> WebhookAuthenticator:
    return WebhookAuthenticator(
        WebhookAuthConfig.from_mapping(current_app.config),
        tenant_lookup=Tenant.signing_key_for_domain,
    )

def _payload() -> dict:
    # Tracking webhooks post JSON; routes (inbound) post form data
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        return body
    return request.form.to_dict()

def _key_missing():
    current_app.logger.error("Mailgun webhook signing key not configured")
    return jsonify({"error": "Webhook signing key not configured"}), 500

@bp.post("/mailgun")
@limiter.limit(_webhook_limit)
def mailgun_events():
    """
    Mailgun → /webhooks/mailgun (delivered, opened, clicked, failed, ...)
    Verifies signature, logs the event, advances the tracked email's state.
    """
    payload = _payload()

    try:
        _authenticator().verify(payload)
    except AuthError as exc:
        if exc.kind is AuthErrorKind.KEY_NOT_CONFIGURED:
            return _key_missing()
        return jsonify({"error": "Invalid webhook signature"}), 401

    data = parse_event_payload(payload)
    if not data.get("event"):
        return jsonify({"error": "malformed_event"}), 400

    email = DeliveryStateTracker().apply_event(data["message_id"], data["event"], data)

    current_app.logger.info(json.dumps({
        "event": "mailgun_webhook",
        "type": data["event"],
        "message_id": data["message_id"],
        "tracked": email is not None,
        "status": email.status if email is not None else None,
    }))

    # 200 even for untracked messages; anything else makes Mailgun retry
    return jsonify({"message": "success"}), 200

@bp.post("/mailgun/inbound")
@limiter.limit(_webhook_limit)
def mailgun_inbound():
    """
    Mailgun route → /webhooks/mailgun/inbound
    Auth failures answer 406, which tells Mailgun to stop retrying.
    """
    payload = _payload()

    try:
        _authenticator().verify(payload)
    except AuthError as exc:
        if exc.kind is AuthErrorKind.KEY_NOT_CONFIGURED:
            return _key_missing()
        current_app.logger.error(json.dumps({
            "event": "mailgun_inbound",
            "outcome": "signature_rejected",
            "from": payload.get("from"),
            "to": payload.get("To") or payload.get("recipient"),
            "message_id": extract_message_id(payload),
            "error": str(exc),
        }))
        return jsonify({"error": str(exc)}), 406

    email = store_inbound_email(payload, request.files)
    return jsonify({
        "message": "Email has been successfully processed",
        "email_id": email.id,
        "attachments": email.attachment_count,
    }), 200
