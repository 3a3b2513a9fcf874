from sqlalchemy import func
from inbounder.extensions import db

class InboundEmail(db.Model):
    __tablename__ = "inbound_emails"

    id = db.Column(db.Integer, primary_key=True)
    message_id = db.Column(db.String(255), nullable=True, index=True)
    from_address = db.Column(db.String(320), nullable=True)
    sender = db.Column(db.String(320), nullable=True, index=True)
    recipient = db.Column(db.String(320), nullable=True, index=True)
    subject = db.Column(db.String(998), nullable=True)
    body_plain = db.Column(db.Text, nullable=True)
    body_html = db.Column(db.Text, nullable=True)
    stripped_text = db.Column(db.Text, nullable=True)
    attachment_count = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    raw_data = db.Column(db.JSON, nullable=False, default=dict)
    received_at = db.Column(db.DateTime, nullable=False, server_default=func.now())

    attachments = db.relationship(
        "InboundEmailAttachment",
        backref="email",
        cascade="all, delete-orphan",
        order_by="InboundEmailAttachment.id",
    )

    def __repr__(self) -> str:
        return f"<InboundEmail id={self.id} sender={self.sender!r} recipient={self.recipient!r}>"
