import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient

import app as app_module
from flux.config import Config
from flux.conversation import Conversation
from flux.session_store import InMemorySessionStore

from conftest import FakeAI, FakeMarket, FakeWeather, RecordingSender

SECRET = "test-secret"


def payload(*messages, phone_number_id="1234567890"):
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "changes": [{
                "value": {
                    "metadata": {"phone_number_id": phone_number_id},
                    "messages": list(messages),
                },
            }],
        }],
    }


def text_message(message_id, sender, body, **extra):
    return {"id": message_id, "from": sender, "type": "text", "text": {"body": body}, **extra}


def sign(body):
    return "sha256=" + hmac.new(SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def client(monkeypatch, sender):
    monkeypatch.setattr(Config, "app_secret", SECRET)
    monkeypatch.setattr(Config, "verify_token", "verify-me")
    monkeypatch.setattr(app_module.GraphApi, "mark_read", staticmethod(lambda *args: {"success": True}))

    store = InMemorySessionStore()
    app_module.app.state.store = store
    app_module.app.state.conversation = Conversation(
        store, sender, FakeWeather(), FakeMarket(), FakeAI(), progress_delays=(0, 0, 0)
    )
    with TestClient(app_module.app) as test_client:
        yield test_client
    app_module.app.state.store = None
    app_module.app.state.conversation = None


def post(client, body):
    raw = json.dumps(body).encode("utf-8")
    return client.post(
        "/webhook",
        content=raw,
        headers={"Content-Type": "application/json", "x-hub-signature-256": sign(raw)},
    )


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_webhook_verification(client):
    ok = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "42"})
    bad = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "42"})

    assert ok.status_code == 200
    assert ok.text == "42"
    assert bad.status_code == 403


def test_unsigned_post_is_rejected(client, sender):
    response = client.post("/webhook", json=payload(text_message("wamid.1", "2348000000001", "help")))

    assert response.status_code == 403


def test_bad_signature_is_rejected(client):
    response = client.post(
        "/webhook",
        content=b"{}",
        headers={"x-hub-signature-256": "sha256=deadbeef"},
    )

    assert response.status_code == 403


def test_text_message_is_dispatched(client, sender):
    response = post(client, payload(text_message("wamid.1", "2348000000001", "help")))

    assert response.status_code == 200
    assert response.text == "EVENT_RECEIVED"
    assert wait_for(lambda: len(sender.sent) == 1)
    assert sender.sent[0][0] == "2348000000001"
    assert "Available Commands" in sender.sent[0][1]


def test_duplicate_delivery_is_handled_once(client, sender):
    body = payload(text_message("wamid.7", "2348000000001", "help"))

    post(client, body)
    post(client, body)

    assert wait_for(lambda: len(sender.sent) >= 1)
    time.sleep(0.1)
    assert len(sender.sent) == 1


def test_group_and_non_text_messages_get_no_reply(client, sender):
    post(client, payload(
        text_message("wamid.2", "2348000000001", "advice", group_id="120363043968066561"),
        {"id": "wamid.3", "from": "2348000000001", "type": "image", "image": {"id": "m1"}},
        text_message("wamid.4", "2348000000002", "status"),
    ))

    assert wait_for(lambda: len(sender.sent) == 1)
    time.sleep(0.1)
    assert [to for to, _ in sender.sent] == ["2348000000002"]


def test_status_updates_are_accepted(client, sender):
    body = {
        "object": "whatsapp_business_account",
        "entry": [{"changes": [{"value": {
            "metadata": {"phone_number_id": "1234567890"},
            "statuses": [{"id": "wamid.9", "status": "read", "recipient_id": "2348000000001"}],
        }}]}],
    }

    assert post(client, body).status_code == 200
    assert sender.sent == []
