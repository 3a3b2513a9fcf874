from typing import Optional
from sqlalchemy import func
from inbounder.extensions import db

class Tenant(db.Model):
    """A sending domain with its own Mailgun webhook signing key."""

    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    mail_domain = db.Column(db.String(255), nullable=False, unique=True, index=True)
    webhook_signing_key = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=func.now())

    @classmethod
    def signing_key_for_domain(cls, domain: str) -> Optional[str]:
        row = db.session.query(cls).filter(cls.mail_domain == (domain or "").lower()).one_or_none()
        if not row:
            return None
        return row.webhook_signing_key or None

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} mail_domain={self.mail_domain!r}>"
