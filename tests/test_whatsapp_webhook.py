"""WhatsApp webhook tests.

Tier 1 (unit, no HTTP): Evolution payload normalisation and sender filtering
Tier 2 (integration): POST /api/whatsapp/webhook with processing patched out
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from kimo.app.routes import whatsapp as whatsapp_route
from kimo.app.routes.whatsapp import parse_evolution_webhook


def _payload(
    text: str | None = "45 12",
    remote_jid: str = "5511999990000@s.whatsapp.net",
    from_me: bool = False,
    message_id: str = "MSG1",
    event: str = "messages.upsert",
    **extra_key,
) -> dict:
    message = {"conversation": text} if text is not None else {}
    return {
        "event": event,
        "instance": "kimo",
        "data": {
            "key": {"remoteJid": remote_jid, "fromMe": from_me, "id": message_id, **extra_key},
            "pushName": "Carlos",
            "message": message,
            "messageTimestamp": 1760000000,
        },
    }


# ===========================================================================
# Tier 1: Normalisation
# ===========================================================================


class TestParseEvolutionWebhook:

    def test_plain_text(self):
        message = parse_evolution_webhook(_payload())
        assert message.phone == "5511999990000"
        assert message.text == "45 12"
        assert message.message_id == "MSG1"
        assert message.sender_name == "Carlos"
        assert message.audio_url is None
        assert message.timestamp is not None

    def test_extended_text(self):
        body = _payload(text=None)
        body["data"]["message"] = {"extendedTextMessage": {"text": "  resumo  "}}
        assert parse_evolution_webhook(body).text == "resumo"

    def test_button_reply_maps_to_command(self):
        body = _payload(text=None)
        body["data"]["message"] = {
            "buttonsResponseMessage": {"selectedButtonId": "registrar", "selectedDisplayText": "🚗 Registrar corrida"}
        }
        assert parse_evolution_webhook(body).text == "registrar"

    def test_audio(self):
        body = _payload(text=None)
        body["data"]["message"] = {"audioMessage": {"url": "https://cdn.example/a.ogg", "mimetype": "audio/ogg"}}
        message = parse_evolution_webhook(body)
        assert message.text is None
        assert message.audio_url == "https://cdn.example/a.ogg"

    @pytest.mark.parametrize("event", ["MESSAGES_UPSERT", "messages.upsert"])
    def test_event_name_variants(self, event):
        assert parse_evolution_webhook(_payload(event=event)) is not None

    @pytest.mark.parametrize("body", [
        _payload(event="connection.update"),
        _payload(from_me=True),
        _payload(remote_jid="120363000000000000@g.us"),
        _payload(remote_jid="status@broadcast"),
        _payload(remote_jid="12036300000@newsletter"),
        _payload(text=None),
        _payload(text="   "),
        {"event": "messages.upsert"},
    ])
    def test_ignored(self, body):
        assert parse_evolution_webhook(body) is None

    def test_lid_resolved_through_sender_pn(self):
        body = _payload(remote_jid="987654321@lid", senderPn="5511988887777@s.whatsapp.net")
        assert parse_evolution_webhook(body).phone == "5511988887777"

    def test_lid_without_alternate_is_rejected(self):
        assert parse_evolution_webhook(_payload(remote_jid="987654321@lid")) is None

    def test_device_suffix_stripped(self):
        body = _payload(remote_jid="5511999990000:12@s.whatsapp.net")
        assert parse_evolution_webhook(body).phone == "5511999990000"


# ===========================================================================
# Tier 2: Route
# ===========================================================================


@pytest.fixture
def app():
    from kimo.app.main import app

    whatsapp_route._recent_messages.clear()
    yield app
    whatsapp_route._recent_messages.clear()


async def _post(app, body, headers=None):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post("/api/whatsapp/webhook", json=body, headers=headers or {})


class TestWebhookRoute:

    async def test_accepts_and_dispatches(self, app, settings):
        with patch.object(whatsapp_route, "get_settings", return_value=settings), \
             patch.object(whatsapp_route, "_process_inbound", new=AsyncMock()) as process:
            resp = await _post(app, _payload())
            for task in list(whatsapp_route._background_tasks):
                await task

        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "status": "accepted"}
        process.assert_awaited_once()
        assert process.await_args.args[0].text == "45 12"

    async def test_duplicate_message_id(self, app, settings):
        with patch.object(whatsapp_route, "get_settings", return_value=settings), \
             patch.object(whatsapp_route, "_process_inbound", new=AsyncMock()) as process:
            first = await _post(app, _payload(message_id="DUP"))
            second = await _post(app, _payload(message_id="DUP"))
            for task in list(whatsapp_route._background_tasks):
                await task

        assert first.json()["status"] == "accepted"
        assert second.json()["status"] == "duplicate"
        assert process.await_count == 1

    async def test_ignored_payload(self, app, settings):
        with patch.object(whatsapp_route, "get_settings", return_value=settings), \
             patch.object(whatsapp_route, "_process_inbound", new=AsyncMock()) as process:
            resp = await _post(app, _payload(from_me=True))

        assert resp.json()["status"] == "ignored"
        process.assert_not_called()

    async def test_token_required_when_configured(self, app, settings):
        settings.webhook_token = "s3cret"
        with patch.object(whatsapp_route, "get_settings", return_value=settings), \
             patch.object(whatsapp_route, "_process_inbound", new=AsyncMock()):
            rejected = await _post(app, _payload(message_id="T1"))
            accepted = await _post(app, _payload(message_id="T2"), headers={"apikey": "s3cret"})

        assert rejected.status_code == 401
        assert accepted.status_code == 200


class TestHealth:

    async def test_health(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/health")
        assert resp.json() == {"status": "ok", "service": "kimo"}
