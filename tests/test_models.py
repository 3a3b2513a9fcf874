import pytest
from sqlalchemy.exc import IntegrityError
from inbounder.extensions import db
from inbounder.models import OutboundEmail, WebhookEventLog, Tenant, InboundEmail, InboundEmailAttachment

def test_outbound_message_id_uniqueness(app):
    with app.app_context():
        db.session.add(OutboundEmail(message_id="dup", recipient="a@example.com"))
        db.session.commit()

        db.session.add(OutboundEmail(message_id="dup", recipient="b@example.com"))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

def test_status_defaults_to_sent_and_is_constrained(app):
    with app.app_context():
        email = OutboundEmail(message_id="m1", recipient="a@example.com")
        db.session.add(email)
        db.session.commit()
        db.session.refresh(email)
        assert email.status == "sent"

        db.session.add(OutboundEmail(message_id="m2", recipient="a@example.com", status="teleported"))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

def test_tenant_domain_uniqueness(app):
    with app.app_context():
        db.session.add(Tenant(name="Acme", mail_domain="mg.acme.com", webhook_signing_key="k1"))
        db.session.commit()

        db.session.add(Tenant(name="Acme again", mail_domain="mg.acme.com", webhook_signing_key="k2"))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

def test_tenant_without_key_resolves_to_none(app):
    with app.app_context():
        db.session.add(Tenant(name="Keyless", mail_domain="mg.keyless.com"))
        db.session.commit()
        assert Tenant.signing_key_for_domain("MG.Keyless.com") is None
        assert Tenant.signing_key_for_domain("unknown.com") is None

def test_events_relationship_joins_on_message_id(app):
    with app.app_context():
        email = OutboundEmail(message_id="m1", recipient="a@example.com")
        db.session.add(email)
        db.session.add(WebhookEventLog(event="delivered", message_id="m1", raw_data={}))
        db.session.add(WebhookEventLog(event="opened", message_id="m1", raw_data={}))
        db.session.add(WebhookEventLog(event="opened", message_id="other", raw_data={}))
        db.session.commit()

        assert [ev.event for ev in email.events] == ["delivered", "opened"]

def test_inbound_attachments_go_with_their_email(app):
    with app.app_context():
        email = InboundEmail(sender="a@example.com", raw_data={})
        email.attachments.append(InboundEmailAttachment(filename="a.txt", content_type="text/plain", size=3))
        db.session.add(email)
        db.session.commit()
        assert InboundEmailAttachment.query.one().email is email

        db.session.delete(email)
        db.session.commit()
        assert InboundEmailAttachment.query.count() == 0
