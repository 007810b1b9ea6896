"""Tests for the outbound collaborators: Evolution messaging, Groq transcription, QuickChart URLs.

HTTP is served by ``httpx.MockTransport`` so no request leaves the process.
"""

import json
from urllib.parse import parse_qs, urlparse
from unittest.mock import patch

import httpx
import pytest

from kimo.domain.errors import TranscriptionError
from kimo.services.chart_service import ChartService, color_for_percentage
from kimo.services.messaging_service import MessagingService
from kimo.services.transcription_service import GROQ_TRANSCRIPTION_URL, TranscriptionService

_RealAsyncClient = httpx.AsyncClient


def _mock_clients(handler):
    """Patch httpx.AsyncClient so every client is served by ``handler``."""
    def _factory(*args, **kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), timeout=kwargs.get("timeout"))

    return patch("httpx.AsyncClient", new=_factory)


@pytest.fixture
def evolution_settings(settings):
    settings.evolution_api_url = "https://evo.example/"
    settings.evolution_api_key = "evo-key"
    settings.evolution_instance_name = "kimo"
    return settings


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------

class TestMessagingService:

    @pytest.mark.parametrize("phone,expected", [
        ("11999990000", "5511999990000"),
        ("+55 (11) 99999-0000", "5511999990000"),
        ("5511999990000", "5511999990000"),
    ])
    def test_format_number(self, settings, phone, expected):
        assert MessagingService(settings).format_number(phone) == expected

    async def test_not_configured(self, settings):
        result = await MessagingService(settings).send_text("5511999990000", "oi")
        assert result == {"ok": False, "error": "evolution_not_configured"}

    async def test_send_text(self, evolution_settings):
        seen = []

        def handler(request: httpx.Request):
            seen.append(request)
            return httpx.Response(201, json={"key": {"id": "ABC"}})

        with _mock_clients(handler):
            result = await MessagingService(evolution_settings).send_text("11999990000", "Olá")

        assert result["ok"] is True
        request = seen[0]
        assert str(request.url) == "https://evo.example/message/sendText/kimo"
        assert request.headers["apikey"] == "evo-key"
        assert json.loads(request.content) == {"number": "5511999990000", "text": "Olá"}

    async def test_buttons_payload(self, evolution_settings):
        seen = []

        def handler(request: httpx.Request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={})

        with _mock_clients(handler):
            await MessagingService(evolution_settings).send_buttons(
                "5511999990000", "Menu", [{"id": "resumo", "text": "Ver resumo"}],
            )

        assert seen[0]["buttons"] == [
            {"buttonId": "resumo", "buttonText": {"displayText": "Ver resumo"}, "type": 1}
        ]

    async def test_http_error_is_reported(self, evolution_settings):
        with _mock_clients(lambda request: httpx.Response(500, text="boom")):
            result = await MessagingService(evolution_settings).send_image("5511999990000", "https://x", "c")

        assert result["ok"] is False
        assert result["error"] == "http_500"

    async def test_timeout_is_reported(self, evolution_settings):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with _mock_clients(handler):
            result = await MessagingService(evolution_settings).send_text("5511999990000", "oi")

        assert result == {"ok": False, "error": "timeout"}


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------

class TestTranscriptionService:

    @pytest.fixture
    def groq_settings(self, settings):
        settings.groq_api_key = "groq-key"
        return settings

    async def test_not_configured(self, settings):
        with pytest.raises(TranscriptionError):
            await TranscriptionService(settings).transcribe("https://cdn.example/a.ogg")

    async def test_downloads_then_transcribes(self, groq_settings):
        def handler(request: httpx.Request):
            if request.method == "GET":
                return httpx.Response(200, content=b"OggS...")
            assert str(request.url) == GROQ_TRANSCRIPTION_URL
            assert request.headers["authorization"] == "Bearer groq-key"
            return httpx.Response(200, json={"text": " rodei 12 km e ganhei 45 "})

        with _mock_clients(handler):
            text = await TranscriptionService(groq_settings).transcribe("https://cdn.example/a.ogg")

        assert text == "rodei 12 km e ganhei 45"

    @pytest.mark.parametrize("response", [
        httpx.Response(200, json={"text": "  "}),
        httpx.Response(502, text="bad gateway"),
        httpx.Response(200, text="not json"),
    ])
    async def test_failures_raise(self, groq_settings, response):
        def handler(request: httpx.Request):
            if request.method == "GET":
                return httpx.Response(200, content=b"OggS...")
            return response

        with _mock_clients(handler):
            with pytest.raises(TranscriptionError):
                await TranscriptionService(groq_settings).transcribe("https://cdn.example/a.ogg")


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------

def _decode(url: str) -> tuple[dict, dict]:
    query = parse_qs(urlparse(url).query)
    return query, json.loads(query["chart"][0])


class TestChartService:

    def test_weekly_progress(self, settings):
        url = ChartService(settings).weekly_progress(["seg", "ter"], [200, 150], [50, 30], [150, 120])
        query, config = _decode(url)

        assert url.startswith(settings.quickchart_base_url + "?")
        assert query["width"] == ["800"]
        assert config["data"]["labels"] == ["seg", "ter"]

    def test_profit_trend_goal_line(self, settings):
        _, config = _decode(ChartService(settings).profit_trend(["seg"], [100], weekly_goal=700))
        goal_line = config["data"]["datasets"][-1]
        assert goal_line["data"] == [100.0]

    def test_goal_gauge(self, settings):
        query, config = _decode(ChartService(settings).goal_progress(900, 1000, 90))
        assert query["width"] == ["600"]
        assert config["type"] == "radialGauge"
        assert config["data"]["datasets"][0]["data"] == [90]

    @pytest.mark.parametrize("percentage,color", [
        (120, "rgba(75, 192, 192, 0.8)"),
        (75, "rgba(255, 206, 86, 0.8)"),
        (50, "rgba(255, 159, 64, 0.8)"),
        (10, "rgba(255, 99, 132, 0.8)"),
    ])
    def test_color_bands(self, percentage, color):
        assert color_for_percentage(percentage) == color
