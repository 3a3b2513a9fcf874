from sqlalchemy import func
from inbounder.extensions import db

class WebhookEventLog(db.Model):
    """Append-only audit row per received webhook event."""

    __tablename__ = "webhook_events"

    id = db.Column(db.Integer, primary_key=True)
    event = db.Column(db.String(64), nullable=False, index=True)
    message_id = db.Column(db.String(255), nullable=True, index=True)
    recipient = db.Column(db.String(320), nullable=True, index=True)
    domain = db.Column(db.String(255), nullable=True)
    ip = db.Column(db.String(64), nullable=True)

    country = db.Column(db.String(64), nullable=True)
    region = db.Column(db.String(128), nullable=True)
    city = db.Column(db.String(128), nullable=True)

    user_agent = db.Column(db.Text, nullable=True)
    device_type = db.Column(db.String(64), nullable=True)
    client_type = db.Column(db.String(64), nullable=True)
    client_name = db.Column(db.String(128), nullable=True)
    client_os = db.Column(db.String(128), nullable=True)

    # bounce / failure details
    reason = db.Column(db.String(255), nullable=True)
    code = db.Column(db.String(64), nullable=True)
    error = db.Column(db.Text, nullable=True)
    severity = db.Column(db.String(32), nullable=True)

    tags = db.Column(db.JSON, nullable=True)
    user_variables = db.Column(db.JSON, nullable=True)
    event_timestamp = db.Column(db.DateTime, nullable=True)
    raw_data = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, server_default=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event": self.event,
            "message_id": self.message_id,
            "recipient": self.recipient,
            "severity": self.severity,
            "reason": self.reason,
            "event_timestamp": self.event_timestamp.isoformat() if self.event_timestamp else None,
        }

    def __repr__(self) -> str:
        return f"<WebhookEventLog id={self.id} event={self.event!r} message_id={self.message_id!r}>"
