import json
from typing import Any, Dict, Mapping, Optional

# Scalar columns on WebhookEventLog; structures arriving here are stored as JSON text
_STRING_FIELDS = (
    "event", "message_id", "recipient", "domain", "ip", "country", "region",
    "city", "user_agent", "device_type", "client_type", "client_name",
    "client_os", "reason", "code", "error", "severity",
)


def _get(node: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def normalize_message_id(value: Optional[str]) -> Optional[str]:
    """'<20240101.abc@mg.acme.com>' -> '20240101.abc@mg.acme.com'."""
    if not value:
        return None
    return str(value).strip().strip("<>").strip() or None


def parse_event_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Flatten a Mailgun webhook body (``event-data`` envelope) into tracker attrs.

    The message id prefers ``user-variables.outbound_message_id``, which
    ``send_tracked_email`` stamps on every message, over the SMTP Message-ID.
    """
    ev = payload.get("event-data")
    if not isinstance(ev, Mapping):
        ev = payload

    user_variables = _decode_json(ev.get("user-variables"))
    outbound_id = None
    if isinstance(user_variables, Mapping):
        outbound_id = user_variables.get("outbound_message_id")

    data = {
        "event": ev.get("event"),
        "timestamp": ev.get("timestamp"),
        "message_id": normalize_message_id(outbound_id or _get(ev, "message", "headers", "message-id")),
        "recipient": ev.get("recipient"),
        "domain": ev.get("domain"),
        "ip": ev.get("ip"),
        "country": _get(ev, "geolocation", "country"),
        "region": _get(ev, "geolocation", "region"),
        "city": _get(ev, "geolocation", "city"),
        "user_agent": _get(ev, "client-info", "user-agent"),
        "device_type": _get(ev, "client-info", "device-type"),
        "client_type": _get(ev, "client-info", "client-type"),
        "client_name": _get(ev, "client-info", "client-name"),
        "client_os": _get(ev, "client-info", "client-os"),
        "reason": ev.get("reason"),
        "code": _get(ev, "delivery-status", "code") if ev.get("code") is None else ev.get("code"),
        "error": ev.get("error"),
        "severity": ev.get("severity"),
        "delivery_status": ev.get("delivery-status"),
        "tags": ev.get("tags"),
        "user_variables": user_variables,
    }

    for field in _STRING_FIELDS:
        value = data[field]
        if isinstance(value, (dict, list)):
            data[field] = json.dumps(value)
        elif value is not None and not isinstance(value, str):
            data[field] = str(value)

    if isinstance(data["recipient"], str):
        data["recipient"] = data["recipient"].strip().lower()

    data["raw"] = dict(payload)
    return data
