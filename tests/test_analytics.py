from inbounder.services.tracking import DeliveryStateTracker

T = 1_700_000_000

def _seed(app):
    with app.app_context():
        tracker = DeliveryStateTracker()
        tracker.record_send("a1", "one@example.com", campaign_id="spring", user_id="u1")
        tracker.record_send("a2", "two@example.com", campaign_id="spring", user_id="u2")
        tracker.apply_event("a1", "delivered", {"timestamp": T})
        tracker.apply_event("a1", "opened", {"timestamp": T + 5})
        tracker.apply_event("a1", "opened", {"timestamp": T + 9})
        tracker.apply_event("a2", "failed", {"timestamp": T})

def test_campaign_analytics(app, client):
    _seed(app)
    resp = client.get("/analytics/campaigns/spring")
    assert resp.status_code == 200
    body = resp.get_json()

    assert body["campaign_id"] == "spring"
    assert body["cumulative"]["total_sent"] == 2
    assert body["cumulative"]["delivered"] == 1
    assert body["cumulative"]["opened"] == 1
    assert body["cumulative"]["failed"] == 1
    assert body["current"]["opened"] == 1
    assert body["events"]["opened"] == 2
    assert {e["message_id"] for e in body["recent"]} == {"a1", "a2"}

def test_recent_list_honours_limit(app, client):
    _seed(app)
    body = client.get("/analytics/campaigns/spring?limit=1").get_json()
    assert len(body["recent"]) == 1

    # garbage falls back to the default
    body = client.get("/analytics/campaigns/spring?limit=lots").get_json()
    assert len(body["recent"]) == 2

def test_user_analytics(app, client):
    _seed(app)
    body = client.get("/analytics/users/u2").get_json()
    assert body["user_id"] == "u2"
    assert body["cumulative"]["total_sent"] == 1
    assert body["cumulative"]["failed"] == 1
    assert body["current"]["failed"] == 1

def test_message_detail_includes_event_log(app, client):
    _seed(app)
    body = client.get("/analytics/messages/a1").get_json()
    assert body["status"] == "opened"
    assert [e["event"] for e in body["events"]] == ["delivered", "opened", "opened"]

def test_unknown_message_is_404(client):
    resp = client.get("/analytics/messages/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"

def test_bearer_token_required_when_configured(app, client, monkeypatch):
    monkeypatch.setitem(app.config, "ANALYTICS_API_TOKEN", "s3cret")

    assert client.get("/analytics/campaigns/spring").status_code == 401
    assert client.get(
        "/analytics/campaigns/spring", headers={"Authorization": "Bearer wrong"}
    ).status_code == 401
    assert client.get(
        "/analytics/campaigns/spring", headers={"Authorization": "Bearer é"}
    ).status_code == 401
    assert client.get(
        "/analytics/campaigns/spring", headers={"Authorization": "Bearer s3cret"}
    ).status_code == 200
