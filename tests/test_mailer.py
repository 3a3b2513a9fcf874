import json

from inbounder.extensions import mail
from inbounder.models import OutboundEmail
from inbounder.services import mailer

def test_send_tracked_email_records_and_tags_message(app):
    with app.app_context():
        with mail.record_messages() as outbox:
            message_id = mailer.send_tracked_email(
                "Reader@Example.com",
                "Spring sale",
                "Hello",
                campaign_id="spring",
                user_id=7,
                template_name="promo",
                metadata={"segment": "vip"},
            )

        assert message_id
        assert len(outbox) == 1
        msg = outbox[0]
        assert msg.recipients == ["reader@example.com"]
        assert msg.msgId == f"<{message_id}>"
        assert json.loads(msg.extra_headers["X-Mailgun-Variables"]) == {"outbound_message_id": message_id}

        email = OutboundEmail.query.filter_by(message_id=message_id).one()
        assert email.status == "sent"
        assert email.recipient == "reader@example.com"
        assert email.campaign_id == "spring"
        assert email.user_id == "7"
        assert email.template_name == "promo"
        assert email.meta == {"segment": "vip"}

def test_smtp_failure_is_not_tracked(app, monkeypatch):
    def boom(msg):
        raise OSError("connection refused")

    monkeypatch.setattr(mailer.mail, "send", boom)
    with app.app_context():
        assert mailer.send_tracked_email("a@example.com", "Hi", "Body") is None
        assert OutboundEmail.query.count() == 0

def test_new_message_ids_are_unique_and_bare(app):
    with app.app_context():
        first, second = mailer.new_message_id(), mailer.new_message_id()
    assert first != second
    assert not first.startswith("<") and not first.endswith(">")
    assert first.endswith("@local.test")
