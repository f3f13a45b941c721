# tests/test_whatsapp_webhook.py
"""Tests for the Twilio webhook routes and signature validation."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import (
    compute_twilio_signature,
    get_conversation_service,
    get_session_store,
    require_twilio_signature,
)
from app.core.config import settings
from app.core.errors import InvalidSessionError
from app.main import app


@pytest.fixture
def fake_service():
    service = AsyncMock()
    service.handle_inbound = AsyncMock(return_value=None)
    return service


@pytest.fixture
def client(fake_service, store):
    app.dependency_overrides[get_conversation_service] = lambda: fake_service
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[require_twilio_signature] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_incoming_message_builds_event(client, fake_service):
    resp = client.post(
        "/api/webhook/message",
        data={
            "From": "whatsapp:+919812345678",
            "Body": "taken",
            "ProfileName": "Ramesh",
            "NumMedia": "1",
            "MediaUrl0": "https://api.twilio.com/media/ME1",
            "MediaContentType0": "audio/ogg",
        },
    )

    assert resp.status_code == 200
    assert resp.text == "OK"
    event = fake_service.handle_inbound.await_args.args[0]
    assert event.sender_id == "whatsapp:+919812345678"
    assert event.text == "taken"
    assert event.display_name == "Ramesh"
    assert event.media[0].is_audio


def test_invalid_session_surfaces_as_500(client, fake_service):
    fake_service.handle_inbound.side_effect = InvalidSessionError("no phone")

    resp = client.post("/api/webhook/message", data={"Body": "hi"})

    assert resp.status_code == 500


def test_status_callback_is_acknowledged(client):
    resp = client.post(
        "/api/webhook/status",
        data={"MessageSid": "SM1", "MessageStatus": "delivered", "To": "whatsapp:+919812345678"},
    )

    assert resp.status_code == 200
    assert resp.text == "OK"


def test_health_reports_session_count(client, event_loop, store):
    event_loop.run_until_complete(store.get_or_create("+911"))

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["sessions"] == 1


# ── Signature validation ─────────────────────────────────


@pytest.fixture
def signed_client(fake_service, monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "secret-token")
    monkeypatch.setattr(settings, "SKIP_WEBHOOK_VALIDATION", False)
    app.dependency_overrides[get_conversation_service] = lambda: fake_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_missing_signature_is_forbidden(signed_client, fake_service):
    resp = signed_client.post("/api/webhook/message", data={"From": "whatsapp:+911", "Body": "hi"})

    assert resp.status_code == 403
    fake_service.handle_inbound.assert_not_awaited()


def test_valid_signature_is_accepted(signed_client, fake_service):
    data = {"From": "whatsapp:+911", "Body": "hi"}
    signature = compute_twilio_signature("secret-token", "http://testserver/api/webhook/message", data)

    resp = signed_client.post("/api/webhook/message", data=data, headers={"X-Twilio-Signature": signature})

    assert resp.status_code == 200
    fake_service.handle_inbound.assert_awaited_once()


def test_tampered_body_is_forbidden(signed_client):
    signature = compute_twilio_signature(
        "secret-token", "http://testserver/api/webhook/message", {"From": "whatsapp:+911", "Body": "hi"}
    )

    resp = signed_client.post(
        "/api/webhook/message",
        data={"From": "whatsapp:+911", "Body": "reset"},
        headers={"X-Twilio-Signature": signature},
    )

    assert resp.status_code == 403

