"""WhatsApp messaging via Evolution API.

Endpoints used:
- POST /message/sendText/{instance}     — plain text
- POST /message/sendButtons/{instance}  — reply buttons (not every instance supports them)
- POST /message/sendMedia/{instance}    — image with caption (charts)

Every send returns a result dict and never raises; callers decide on
fallbacks by looking at ``result["ok"]``.
"""

import logging
import re

import httpx

from kimo.app.config import Settings, get_settings

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


class MessagingService:
    """Send WhatsApp messages through an Evolution API instance."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.evolution_api_url.rstrip("/")

    @property
    def _configured(self) -> bool:
        return bool(
            self.settings.evolution_api_url
            and self.settings.evolution_api_key
            and self.settings.evolution_instance_name
        )

    def format_number(self, phone: str) -> str:
        """Digits only, with the country code prefixed when missing."""
        digits = _NON_DIGITS.sub("", phone or "")
        country = self.settings.messaging_country_code
        if country and not digits.startswith(country):
            digits = country + digits
        return digits

    async def send_text(self, to: str, message: str) -> dict:
        payload = {"number": self.format_number(to), "text": message}
        return await self._post("sendText", payload, to)

    async def send_buttons(self, to: str, message: str, buttons: list[dict], title: str = "KIMO") -> dict:
        """Send reply buttons; ``buttons`` are ``{"id": ..., "text": ...}`` dicts."""
        payload = {
            "number": self.format_number(to),
            "title": title,
            "description": message,
            "footer": "",
            "buttons": [
                {"buttonId": b["id"], "buttonText": {"displayText": b["text"]}, "type": 1}
                for b in buttons
            ],
        }
        return await self._post("sendButtons", payload, to)

    async def send_image(self, to: str, url: str, caption: str = "") -> dict:
        payload = {
            "number": self.format_number(to),
            "mediatype": "image",
            "media": url,
            "caption": caption,
        }
        return await self._post("sendMedia", payload, to)

    async def _post(self, endpoint: str, payload: dict, to: str) -> dict:
        if not self._configured:
            logger.warning("Evolution API not configured — %s not sent to %s", endpoint, to)
            return {"ok": False, "error": "evolution_not_configured"}

        url = f"{self.base_url}/message/{endpoint}/{self.settings.evolution_instance_name}"
        headers = {"apikey": self.settings.evolution_api_key, "Content-Type": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self.settings.messaging_timeout_seconds) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error("Evolution %s timed out for %s", endpoint, to)
            return {"ok": False, "error": "timeout"}
        except httpx.HTTPError as e:
            logger.error("Evolution %s error for %s: %s", endpoint, to, e)
            return {"ok": False, "error": str(e)}

        if 200 <= resp.status_code < 300:
            logger.info("Evolution %s sent to %s (status=%d)", endpoint, to, resp.status_code)
            try:
                data = resp.json()
            except ValueError:
                data = {"raw": resp.text}
            return {"ok": True, "data": data}

        logger.error("Evolution %s failed (%d): %s", endpoint, resp.status_code, resp.text[:300])
        return {"ok": False, "error": f"http_{resp.status_code}", "status": resp.status_code}
