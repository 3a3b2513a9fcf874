from sqlalchemy import func
from inbounder.extensions import db

class InboundEmailAttachment(db.Model):
    """File posted alongside an inbound email (Mailgun ``attachment-N`` parts)."""

    __tablename__ = "inbound_email_attachments"

    id = db.Column(db.Integer, primary_key=True)
    inbound_email_id = db.Column(
        db.Integer, db.ForeignKey("inbound_emails.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255), nullable=True)
    content_type = db.Column(db.String(255), nullable=False, default="application/octet-stream")
    size = db.Column(db.Integer, nullable=False, default=0)
    # Relative to INBOUND_ATTACHMENTS_DIR; NULL when only metadata was kept
    file_path = db.Column(db.String(512), nullable=True)
    disposition = db.Column(db.String(32), nullable=False, server_default="attachment")
    created_at = db.Column(db.DateTime, nullable=False, server_default=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "original_name": self.original_name,
            "content_type": self.content_type,
            "size": self.size,
            "file_path": self.file_path,
            "disposition": self.disposition,
        }

    def __repr__(self) -> str:
        return f"<InboundEmailAttachment id={self.id} filename={self.filename!r} size={self.size}>"
