"""WhatsApp webhook — inbound messages from the Evolution API gateway.

Only ``messages.upsert`` events from individual senders are processed:
own messages, groups, broadcasts and channels are ignored, and ``@lid``
addressed chats are resolved to a phone number through the alternate
identity fields or rejected.

Returns 200 immediately. The conversation runs in a tracked background
task with its own error boundary, so Evolution never waits on the LLM or
the database and never retries because of a slow reply.
"""

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import ValidationError as PydanticValidationError

from kimo.app.config import get_settings
from kimo.domain.schemas import EvolutionWebhook, InboundMessage, WebhookAck
from kimo.infra.database import async_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/whatsapp", tags=["whatsapp"])

INDIVIDUAL_SUFFIX = "@s.whatsapp.net"
LID_SUFFIX = "@lid"
IGNORED_SUFFIXES = ("@g.us", "@broadcast", "@newsletter")

# Dedup cache: Evolution re-delivers the same message id on retries
_recent_messages: dict[str, float] = {}
DEDUP_WINDOW_SECONDS = 60

# Hold references to background tasks so they don't get garbage collected
_background_tasks: set = set()

_NON_DIGITS = re.compile(r"\D")


def _resolve_sender(remote_jid: str, sender_pn: Optional[str], remote_jid_alt: Optional[str]) -> Optional[str]:
    """Phone digits of an individual sender, or None to reject the message."""
    if not remote_jid or remote_jid.endswith(IGNORED_SUFFIXES):
        return None

    jid = remote_jid
    if jid.endswith(LID_SUFFIX):
        jid = next(
            (alt for alt in (sender_pn, remote_jid_alt) if alt and alt.endswith(INDIVIDUAL_SUFFIX)),
            None,
        )
        if jid is None:
            return None

    phone = _NON_DIGITS.sub("", jid.split("@", 1)[0].split(":", 1)[0])
    return phone or None


def parse_evolution_webhook(body: dict) -> Optional[InboundMessage]:
    """Normalise an Evolution API webhook body into an ``InboundMessage``.

    Returns None for anything that is not a processable message from an
    individual sender.
    """
    try:
        webhook = EvolutionWebhook.model_validate(body)
    except PydanticValidationError as e:
        logger.warning("Unparseable Evolution webhook: %s", e)
        return None

    if webhook.event.lower().replace("_", ".") != "messages.upsert" or webhook.data is None:
        return None

    data = webhook.data
    key = data.key
    if key.from_me:
        return None

    phone = _resolve_sender(key.remote_jid, key.sender_pn, key.remote_jid_alt)
    if phone is None:
        logger.info("Ignoring message from non-individual sender %s", key.remote_jid)
        return None

    message = data.message
    if message is None:
        return None

    text = message.conversation
    if not text and message.extended_text_message:
        text = message.extended_text_message.text
    if not text and message.buttons_response_message:
        text = message.buttons_response_message.selected_button_id
    audio_url = message.audio_message.url if message.audio_message else None

    text = (text or "").strip() or None
    if text is None and audio_url is None:
        return None

    timestamp = (
        datetime.fromtimestamp(data.message_timestamp, tz=timezone.utc)
        if data.message_timestamp
        else None
    )
    return InboundMessage(
        phone=phone,
        message_id=key.id or f"{phone}:{data.message_timestamp}",
        text=text,
        audio_url=audio_url if text is None else None,
        sender_name=data.push_name,
        timestamp=timestamp,
    )


def _is_duplicate(message_id: str) -> bool:
    now = time.monotonic()
    expired = [k for k, t in _recent_messages.items() if now - t > DEDUP_WINDOW_SECONDS]
    for k in expired:
        del _recent_messages[k]

    if message_id in _recent_messages:
        return True
    _recent_messages[message_id] = now
    return False


async def _process_inbound(message: InboundMessage) -> None:
    """Background task: run the conversation for one inbound message."""
    from kimo.services.conversation_service import ConversationService

    try:
        async with async_session() as db:
            service = ConversationService(db)
            if message.audio_url:
                await service.process_audio(message.phone, message.audio_url, message.sender_name)
            else:
                await service.process_message(message.phone, message.text, message.sender_name)
    except Exception:
        logger.exception("Background processing failed for %s (message %s)", message.phone, message.message_id)


@router.post("/webhook", response_model=WebhookAck)
async def whatsapp_webhook(request: Request):
    settings = get_settings()
    body = await request.json()

    # ── 1. Validate webhook token ─────────────────────────────────────
    if settings.webhook_token:
        provided = (
            request.headers.get("apikey")
            or request.headers.get("x-webhook-token")
            or (body.get("apikey") if isinstance(body, dict) else None)
        )
        if provided != settings.webhook_token:
            logger.warning("Invalid WhatsApp webhook token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook token",
            )

    if not isinstance(body, dict):
        return WebhookAck(status="ignored")

    # ── 2. Normalise ──────────────────────────────────────────────────
    message = parse_evolution_webhook(body)
    if message is None:
        return WebhookAck(status="ignored")

    # ── 3. Dedup ──────────────────────────────────────────────────────
    if _is_duplicate(message.message_id):
        logger.debug("Dedup: ignoring duplicate message %s", message.message_id)
        return WebhookAck(status="duplicate")

    logger.info(
        "WhatsApp inbound from %s: %s",
        message.phone, (message.text or "<audio>")[:100],
    )

    # ── 4. Dispatch ───────────────────────────────────────────────────
    task = asyncio.create_task(_process_inbound(message))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return WebhookAck(status="accepted")
