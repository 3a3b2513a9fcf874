import hmac
from flask import request, jsonify, current_app
from . import bp
from inbounder.services.tracking import DeliveryStateTracker

@bp.before_request
def _require_token():
    token = current_app.config.get("ANALYTICS_API_TOKEN")
    if not token:
        return None
    header = request.headers.get("Authorization", "")
    supplied = header[len("Bearer "):] if header.startswith("Bearer ") else ""
    if not hmac.compare_digest(supplied.encode("utf-8"), token.encode("utf-8")):
        return jsonify({"error": "unauthorized", "code": 401}), 401
    return None

def _limit(default: int) -> int:
    try:
        return max(1, min(int(request.args.get("limit", default)), 500))
    except (TypeError, ValueError):
        return default

@bp.get("/campaigns/<campaign_id>")
def campaign(campaign_id):
    tracker = DeliveryStateTracker()
    return jsonify({
        "campaign_id": campaign_id,
        "cumulative": tracker.cumulative_campaign_stats(campaign_id),
        "current": tracker.campaign_stats(campaign_id),
        "events": tracker.event_counts(campaign_id=campaign_id),
        "recent": [e.to_dict() for e in tracker.get_by_campaign(campaign_id, limit=_limit(100))],
    })

@bp.get("/users/<user_id>")
def user(user_id):
    tracker = DeliveryStateTracker()
    return jsonify({
        "user_id": user_id,
        "cumulative": tracker.cumulative_user_stats(user_id),
        "current": tracker.user_stats(user_id),
        "events": tracker.event_counts(user_id=user_id),
        "recent": [e.to_dict() for e in tracker.get_by_user(user_id, limit=_limit(50))],
    })

@bp.get("/messages/<path:message_id>")
def message(message_id):
    email = DeliveryStateTracker().get_by_message_id(message_id)
    if email is None:
        return jsonify({"error": "not_found", "code": 404}), 404
    return jsonify({**email.to_dict(), "events": [ev.to_dict() for ev in email.events]})
