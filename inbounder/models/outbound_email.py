from sqlalchemy import func, CheckConstraint
from inbounder.extensions import db

STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_OPENED = "opened"
STATUS_CLICKED = "clicked"
STATUS_BOUNCED = "bounced"
STATUS_COMPLAINED = "complained"
STATUS_UNSUBSCRIBED = "unsubscribed"
STATUS_FAILED = "failed"
STATUS_CHOICES = (
    STATUS_SENT,
    STATUS_DELIVERED,
    STATUS_OPENED,
    STATUS_CLICKED,
    STATUS_BOUNCED,
    STATUS_COMPLAINED,
    STATUS_UNSUBSCRIBED,
    STATUS_FAILED,
)

class OutboundEmail(db.Model):
    """One row per message sent; mutated only by webhook events."""

    __tablename__ = "outbound_emails"

    id = db.Column(db.Integer, primary_key=True)
    message_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    recipient = db.Column(db.String(320), nullable=False, index=True)

    from_address = db.Column(db.String(320), nullable=True)
    from_name = db.Column(db.String(200), nullable=True)
    subject = db.Column(db.String(998), nullable=True)
    template_name = db.Column(db.String(128), nullable=True)
    campaign_id = db.Column(db.String(128), nullable=True, index=True)
    user_id = db.Column(db.String(128), nullable=True, index=True)
    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, nullable=True)

    status = db.Column(db.String(20), nullable=False, index=True, server_default=STATUS_SENT)

    # First occurrence of each event; set once, never overwritten
    sent_at = db.Column(db.DateTime, nullable=True, index=True)
    accepted_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    opened_at = db.Column(db.DateTime, nullable=True)
    clicked_at = db.Column(db.DateTime, nullable=True)
    bounced_at = db.Column(db.DateTime, nullable=True)
    complained_at = db.Column(db.DateTime, nullable=True)
    unsubscribed_at = db.Column(db.DateTime, nullable=True)
    failed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    # Events are logged even for unknown message ids, so no FK
    events = db.relationship(
        "WebhookEventLog",
        primaryjoin="OutboundEmail.message_id == foreign(WebhookEventLog.message_id)",
        order_by="WebhookEventLog.id",
        viewonly=True,
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('sent','delivered','opened','clicked','bounced','complained','unsubscribed','failed')",
            name="ck_outbound_emails_status_valid",
        ),
    )

    def to_dict(self) -> dict:
        def _iso(dt):
            return dt.isoformat() if dt else None

        return {
            "message_id": self.message_id,
            "recipient": self.recipient,
            "from_address": self.from_address,
            "from_name": self.from_name,
            "subject": self.subject,
            "template_name": self.template_name,
            "campaign_id": self.campaign_id,
            "user_id": self.user_id,
            "metadata": self.meta or {},
            "status": self.status,
            "sent_at": _iso(self.sent_at),
            "accepted_at": _iso(self.accepted_at),
            "delivered_at": _iso(self.delivered_at),
            "opened_at": _iso(self.opened_at),
            "clicked_at": _iso(self.clicked_at),
            "bounced_at": _iso(self.bounced_at),
            "complained_at": _iso(self.complained_at),
            "unsubscribed_at": _iso(self.unsubscribed_at),
            "failed_at": _iso(self.failed_at),
        }

    def __repr__(self) -> str:
        return f"<OutboundEmail id={self.id} message_id={self.message_id!r} status={self.status!r}>"
