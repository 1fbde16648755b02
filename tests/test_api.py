import pytest
from fastapi.testclient import TestClient

import main
from app.services.router import EventRouter
from app.services.sms_gateway import SMSGateway


@pytest.fixture
def client(settings, store, providers):
    store.add_member("g1", user_id="u1", name="Asha", tokens=["tok-a"])
    sent = []
    router = EventRouter(settings, store=store, client=providers.client())
    gateway = SMSGateway(settings, store=store, sender=lambda to, body: sent.append((to, body)) or "sid-1")
    main.app.dependency_overrides[main.get_router] = lambda: router
    main.app.dependency_overrides[main.get_sms_gateway] = lambda: gateway
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


REMINDER = {
    "type": "payment_reminder",
    "data": {"groupId": "g1", "groupName": "Office Bhishi", "amount": 5000, "drawDate": "2024-06-11", "daysUntilDraw": 2},
}


def test_send_notifications_ok(client, providers):
    resp = client.post("/functions/v1/send-notifications", json=REMINDER)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["counts"] == {"ok": 1, "error": 0}
    assert body["groupName"] == "Office Bhishi"
    assert body["results"][0]["to"] == "tok-a"
    assert providers.pushed_tokens == ["tok-a"]


def test_unknown_type_is_400(client):
    resp = client.post("/functions/v1/send-notifications", json={"type": "birthday", "data": {}})
    assert resp.status_code == 400
    assert "Invalid notification type" in resp.json()["error"]


def test_missing_type_is_400(client):
    resp = client.post("/functions/v1/send-notifications", json={"data": {}})
    assert resp.status_code == 400


def test_invalid_data_is_400(client):
    resp = client.post(
        "/functions/v1/send-notifications", json={"type": "payment_reminder", "data": {"groupId": "g1"}}
    )
    assert resp.status_code == 400
    assert "payment_reminder" in resp.json()["error"]


def test_store_failure_is_500(client, store):
    store.fail.add("fetch_group_members")
    resp = client.post("/functions/v1/send-notifications", json=REMINDER)
    assert resp.status_code == 500
    assert "Failed to fetch group members" in resp.json()["error"]


def test_other_methods_are_405(client):
    assert client.get("/functions/v1/send-notifications").status_code == 405
    assert client.put("/functions/v1/send-sms", json={}).status_code == 405


def test_send_sms_otp(client):
    resp = client.post("/functions/v1/send-sms", json={"type": "otp_sms", "data": {"to": "9876543210", "otp": "1234"}})
    assert resp.status_code == 200
    assert resp.json()["result"]["to"] == "+919876543210"


def test_send_sms_bad_type_is_400(client):
    resp = client.post("/functions/v1/send-sms", json={"type": "fax", "data": {}})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid SMS type"}
