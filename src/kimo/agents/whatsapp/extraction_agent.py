"""Extraction Agent - LLM-based intent + figures from a driver's free text.

Used for transcribed voice notes. Returns ``ExtractedData``; any model,
timeout or schema failure is raised as ``NLPError`` so the caller can
fall back to asking for text.
"""

import logging

from pydantic import ValidationError as PydanticValidationError

from kimo.agents.base import BaseAgent
from kimo.app.config import Settings, get_settings
from kimo.domain.enums import ExpenseType, ExtractionIntent
from kimo.domain.errors import NLPError
from kimo.domain.schemas import ExtractionResponse

from .contracts import ExtractedData

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """\
Você é um assistente especializado em extrair informações financeiras de motoristas de aplicativo.

Seu trabalho é identificar:
1. **Intenção**: trip (viagem/corrida), expense (despesa), summary (resumo/consulta), unknown (não identificado)
2. **Dados numéricos**: valores em reais (R$) e quilômetros (km)
3. **Tipo de despesa**: fuel (combustível), maintenance (manutenção), toll (pedágio), parking (estacionamento), cleaning (lavagem), other (outro)

SEMPRE responda APENAS com um JSON válido, sem markdown ou explicações.
"""

PROMPT_TEMPLATE = """\
Extraia as informações do seguinte texto de um motorista de aplicativo:

"{text}"

Retorne um JSON com:
{{
  "intent": "trip | expense | summary | unknown",
  "earnings": number ou null,
  "km": number ou null,
  "expense_amount": number ou null,
  "expense_type": "fuel | maintenance | toll | parking | cleaning | other" ou null,
  "confidence": number entre 0 e 1
}}

Exemplos:
- "Fiz uma corrida de 45 reais e rodei 12 km" -> {{"intent": "trip", "earnings": 45, "km": 12, "confidence": 0.95}}
- "Abasteci 80 reais" -> {{"intent": "expense", "expense_amount": 80, "expense_type": "fuel", "confidence": 0.9}}
- "Quanto eu lucrei hoje?" -> {{"intent": "summary", "confidence": 0.85}}
- "Gastei 150 em manutenção" -> {{"intent": "expense", "expense_amount": 150, "expense_type": "maintenance", "confidence": 0.9}}
"""

EXPENSE_TYPE_MAP: dict[str, ExpenseType] = {
    "fuel": ExpenseType.FUEL,
    "maintenance": ExpenseType.MAINTENANCE_CORRECTIVE,
    "toll": ExpenseType.TOLL,
    "parking": ExpenseType.PARKING,
    "cleaning": ExpenseType.CLEANING,
    "other": ExpenseType.OTHER,
}


class ExtractionAgent(BaseAgent):
    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        super().__init__(
            agent_name="whatsapp_extraction",
            model_name=settings.gemini_model,
            temperature=0.1,
            timeout_seconds=settings.nlp_timeout_seconds,
        )

    async def extract(self, text: str) -> ExtractedData:
        """Classify ``text`` and pull out the numbers it mentions."""
        result = await self.generate_json(
            prompt=PROMPT_TEMPLATE.format(text=text.replace('"', "'")),
            system_instruction=SYSTEM_INSTRUCTION,
            response_schema=ExtractionResponse.model_json_schema(),
        )
        if not result.ok:
            raise NLPError(f"extraction failed: {result.error}")

        try:
            parsed = ExtractionResponse.model_validate(result.data)
        except PydanticValidationError as exc:
            logger.warning("[%s] Schema validation failed: %s", self.agent_name, exc)
            raise NLPError("extraction returned an invalid payload") from exc

        extracted = ExtractedData(
            intent=ExtractionIntent(parsed.intent),
            earnings=parsed.earnings,
            km=parsed.km,
            expense_amount=parsed.expense_amount,
            expense_type=EXPENSE_TYPE_MAP.get(parsed.expense_type) if parsed.expense_type else None,
            confidence=parsed.confidence,
            raw_text=text,
        )
        logger.info(
            "[%s] intent=%s confidence=%.2f",
            self.agent_name, extracted.intent.value, extracted.confidence,
        )
        return extracted
