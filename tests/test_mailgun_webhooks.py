import io
import json
import time

from inbounder.extensions import db
from inbounder.models import OutboundEmail, WebhookEventLog, Tenant, InboundEmail, InboundEmailAttachment
from inbounder.services.tracking import DeliveryStateTracker
from inbounder.utils.helpers import from_unix
from conftest import mailgun_signature

def _event(event, message_id, key="testsecret", timestamp=None, **extra):
    ts = int(time.time())
    event_data = {
        "event": event,
        "timestamp": timestamp or ts,
        "recipient": "a@example.com",
        "message": {"headers": {"message-id": f"<{message_id}>"}},
        **extra,
    }
    return {"signature": mailgun_signature(key, ts), "event-data": event_data}

def _post(client, payload):
    return client.post("/webhooks/mailgun", data=json.dumps(payload), content_type="application/json")

def test_delivered_webhook_updates_tracked_email(app, client):
    with app.app_context():
        DeliveryStateTracker().record_send("msg_1", "a@example.com", campaign_id="C")

    resp = _post(client, _event("delivered", "msg_1", timestamp=1700000000))
    assert resp.status_code == 200
    assert resp.get_json() == {"message": "success"}

    with app.app_context():
        email = OutboundEmail.query.filter_by(message_id="msg_1").one()
        assert email.status == "delivered"
        assert email.delivered_at == from_unix(1700000000)
        assert WebhookEventLog.query.filter_by(message_id="msg_1").count() == 1

def test_webhook_for_untracked_message_still_succeeds(app, client):
    resp = _post(client, _event("opened", "stranger"))
    assert resp.status_code == 200

    with app.app_context():
        assert WebhookEventLog.query.filter_by(message_id="stranger").count() == 1
        assert OutboundEmail.query.count() == 0

def test_invalid_signature_is_401_and_mutates_nothing(app, client):
    with app.app_context():
        DeliveryStateTracker().record_send("msg_1", "a@example.com")

    resp = _post(client, _event("delivered", "msg_1", key="wrong"))
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Invalid webhook signature"}

    with app.app_context():
        assert OutboundEmail.query.filter_by(message_id="msg_1").one().status == "sent"
        assert WebhookEventLog.query.count() == 0

def test_stale_signature_is_401(client):
    payload = _event("delivered", "msg_1")
    payload["signature"] = mailgun_signature("testsecret", int(time.time()) - 3600)
    resp = _post(client, payload)
    assert resp.status_code == 401

def test_non_ascii_signature_is_401(app, client):
    payload = _event("delivered", "msg_1")
    payload["signature"]["signature"] = "é" * 64
    resp = _post(client, payload)
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Invalid webhook signature"}

    with app.app_context():
        assert WebhookEventLog.query.count() == 0

def test_missing_signature_is_401(client):
    payload = _event("delivered", "msg_1")
    del payload["signature"]
    resp = _post(client, payload)
    assert resp.status_code == 401

def test_missing_signing_key_is_500(app, client, monkeypatch):
    monkeypatch.setitem(app.config, "MAILGUN_WEBHOOK_SIGNING_KEY", None)
    resp = _post(client, _event("delivered", "msg_1"))
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Webhook signing key not configured"}

def test_event_without_type_is_400(client):
    payload = _event("", "msg_1")
    resp = _post(client, payload)
    assert resp.status_code == 400

def test_tenant_signing_key_is_used_for_its_domain(app, client):
    with app.app_context():
        db.session.add(Tenant(name="Acme", mail_domain="mg.acme.com", webhook_signing_key="acme-key"))
        db.session.commit()
        DeliveryStateTracker().record_send("msg_t", "a@example.com")

    payload = _event("clicked", "msg_t", key="acme-key")
    payload["event-data"]["envelope"] = {"sender": "news@acme.com"}
    resp = _post(client, payload)
    assert resp.status_code == 200

    with app.app_context():
        assert OutboundEmail.query.filter_by(message_id="msg_t").one().status == "clicked"

def test_outbound_message_id_variable_links_event(app, client):
    with app.app_context():
        DeliveryStateTracker().record_send("ours-1", "a@example.com")

    payload = _event("opened", "provider-generated-id", **{"user-variables": {"outbound_message_id": "ours-1"}})
    resp = _post(client, payload)
    assert resp.status_code == 200

    with app.app_context():
        assert OutboundEmail.query.filter_by(message_id="ours-1").one().status == "opened"

def _inbound_form(key="testsecret", **extra):
    form = {
        "from": "Jane <Jane@Example.com>",
        "sender": "Jane@Example.com",
        "recipient": "support@inbound.acme.com",
        "subject": "Help",
        "body-plain": "Hi there",
        "Message-Id": "<in-1@example.com>",
        **mailgun_signature(key),
    }
    form.update(extra)
    return form

def test_inbound_email_is_stored(app, client):
    resp = client.post("/webhooks/mailgun/inbound", data=_inbound_form())
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["message"] == "Email has been successfully processed"

    with app.app_context():
        email = db.session.get(InboundEmail, body["email_id"])
        assert email.sender == "jane@example.com"
        assert email.recipient == "support@inbound.acme.com"
        assert email.message_id == "in-1@example.com"
        assert email.body_plain == "Hi there"
        assert "signature" not in email.raw_data

def test_inbound_bad_signature_is_406(app, client):
    resp = client.post("/webhooks/mailgun/inbound", data=_inbound_form(key="wrong"))
    assert resp.status_code == 406
    assert resp.get_json() == {"error": "Signature is invalid"}

    with app.app_context():
        assert InboundEmail.query.count() == 0

def test_inbound_stale_signature_is_406(client):
    form = _inbound_form()
    form.update(mailgun_signature("testsecret", int(time.time()) - 301))
    resp = client.post("/webhooks/mailgun/inbound", data=form)
    assert resp.status_code == 406
    assert resp.get_json() == {"error": "Signature timestamp is too old"}

def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}

def test_inbound_non_ascii_signature_is_406(app, client):
    form = _inbound_form()
    form["signature"] = "é" * 64
    resp = client.post("/webhooks/mailgun/inbound", data=form)
    assert resp.status_code == 406
    assert resp.get_json() == {"error": "Signature is invalid"}

def test_inbound_attachments_are_stored(app, client, tmp_path, monkeypatch):
    monkeypatch.setitem(app.config, "INBOUND_ATTACHMENTS_DIR", str(tmp_path))
    form = _inbound_form(**{"attachment-count": "2"})
    form["attachment-1"] = (io.BytesIO(b"%PDF-1.4 invoice"), "invoice 2024.pdf", "application/pdf")
    form["attachment-2"] = (io.BytesIO(b"hello"), "notes.txt", "text/plain")

    resp = client.post("/webhooks/mailgun/inbound", data=form, content_type="multipart/form-data")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["attachments"] == 2

    with app.app_context():
        email = db.session.get(InboundEmail, body["email_id"])
        assert email.attachment_count == 2
        first, second = email.attachments
        assert first.original_name == "invoice 2024.pdf"
        assert first.filename == "invoice_2024.pdf"
        assert first.content_type == "application/pdf"
        assert first.size == len(b"%PDF-1.4 invoice")
        assert (tmp_path / first.file_path).read_bytes() == b"%PDF-1.4 invoice"
        assert second.size == 5
        assert "attachment-1" not in email.raw_data

def test_oversized_inbound_attachment_is_skipped(app, client, tmp_path, monkeypatch):
    monkeypatch.setitem(app.config, "INBOUND_ATTACHMENTS_DIR", str(tmp_path))
    monkeypatch.setitem(app.config, "INBOUND_MAX_ATTACHMENT_SIZE", 10)
    form = _inbound_form(**{"attachment-count": "1"})
    form["attachment-1"] = (io.BytesIO(b"x" * 11), "big.bin", "application/octet-stream")

    resp = client.post("/webhooks/mailgun/inbound", data=form, content_type="multipart/form-data")
    assert resp.status_code == 200

    with app.app_context():
        email = db.session.get(InboundEmail, resp.get_json()["email_id"])
        assert email.attachment_count == 0
        assert InboundEmailAttachment.query.count() == 0
    assert list(tmp_path.iterdir()) == []

def test_inbound_attachment_metadata_without_file_part(app, client, tmp_path, monkeypatch):
    monkeypatch.setitem(app.config, "INBOUND_ATTACHMENTS_DIR", str(tmp_path))
    form = _inbound_form(**{
        "attachment-count": "1",
        "name-1": "photo.jpg",
        "content-type-1": "image/jpeg",
        "size-1": "2048",
    })

    resp = client.post("/webhooks/mailgun/inbound", data=form)
    assert resp.status_code == 200

    with app.app_context():
        attachment = InboundEmailAttachment.query.one()
        assert attachment.filename == "photo.jpg"
        assert attachment.size == 2048
        assert attachment.file_path is None
