"""Pydantic v2 schemas for webhook payloads, API responses and LLM output."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Evolution API webhook (messages.upsert)
# ---------------------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EvolutionKey(_Payload):
    remote_jid: str = Field(default="", alias="remoteJid")
    from_me: bool = Field(default=False, alias="fromMe")
    id: str = ""
    # Alternate identity fields sent for @lid addressed chats
    remote_jid_alt: Optional[str] = Field(default=None, alias="remoteJidAlt")
    sender_pn: Optional[str] = Field(default=None, alias="senderPn")


class EvolutionExtendedText(_Payload):
    text: str = ""


class EvolutionAudio(_Payload):
    url: Optional[str] = None
    mimetype: Optional[str] = None


class EvolutionButtonsResponse(_Payload):
    selected_button_id: Optional[str] = Field(default=None, alias="selectedButtonId")
    selected_display_text: Optional[str] = Field(default=None, alias="selectedDisplayText")


class EvolutionMessage(_Payload):
    conversation: Optional[str] = None
    extended_text_message: Optional[EvolutionExtendedText] = Field(default=None, alias="extendedTextMessage")
    audio_message: Optional[EvolutionAudio] = Field(default=None, alias="audioMessage")
    buttons_response_message: Optional[EvolutionButtonsResponse] = Field(
        default=None, alias="buttonsResponseMessage"
    )


class EvolutionMessageData(_Payload):
    key: EvolutionKey = Field(default_factory=EvolutionKey)
    push_name: Optional[str] = Field(default=None, alias="pushName")
    message: Optional[EvolutionMessage] = None
    message_type: Optional[str] = Field(default=None, alias="messageType")
    message_timestamp: Optional[int] = Field(default=None, alias="messageTimestamp")


class EvolutionWebhook(_Payload):
    """Envelope posted by Evolution API for every instance event."""

    event: str = ""
    instance: Optional[str] = None
    data: Optional[EvolutionMessageData] = None
    apikey: Optional[str] = None


class InboundMessage(BaseModel):
    """A normalised message from an individual sender."""

    phone: str
    message_id: str
    text: Optional[str] = None
    audio_url: Optional[str] = None
    sender_name: Optional[str] = None
    timestamp: Optional[datetime] = None


class WebhookAck(BaseModel):
    ok: bool = True
    status: str = "accepted"


# ---------------------------------------------------------------------------
# Internal scheduler endpoints
# ---------------------------------------------------------------------------


class JobInfo(BaseModel):
    name: str
    cadence: str
    next_run_at: Optional[datetime] = None
    running: bool = False


class JobRunResponse(BaseModel):
    ok: bool = True
    job: str
    sent: int


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "kimo"


# ---------------------------------------------------------------------------
# LLM structured output
# ---------------------------------------------------------------------------


class ExtractionResponse(BaseModel):
    """What the extraction agent must return for a driver's free text."""

    intent: Literal["trip", "expense", "summary", "unknown"] = "unknown"
    earnings: Optional[float] = Field(default=None, ge=0, description="Valor ganho em reais")
    km: Optional[float] = Field(default=None, ge=0, description="Quilômetros rodados")
    expense_amount: Optional[float] = Field(default=None, ge=0, description="Valor da despesa em reais")
    expense_type: Optional[
        Literal["fuel", "maintenance", "toll", "parking", "cleaning", "other"]
    ] = None
    confidence: float = Field(default=0.5, ge=0, le=1)
