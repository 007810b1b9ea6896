"""ExtractionAgent maps schema-validated model output onto ExtractedData."""

from unittest.mock import AsyncMock, patch

import pytest

from kimo.agents.base import AgentResult
from kimo.agents.whatsapp.extraction_agent import ExtractionAgent
from kimo.domain.enums import ExpenseType, ExtractionIntent
from kimo.domain.errors import NLPError


@pytest.fixture
def agent(settings):
    return ExtractionAgent(settings)


async def _extract(agent, result: AgentResult, text: str = "abasteci 80 reais"):
    with patch.object(ExtractionAgent, "generate_json", new=AsyncMock(return_value=result)):
        return await agent.extract(text)


class TestExtractionAgent:

    async def test_trip(self, agent):
        data = await _extract(
            agent,
            AgentResult.success({"intent": "trip", "earnings": 45, "km": 12, "confidence": 0.95}),
            "fiz uma corrida de 45 reais e rodei 12 km",
        )
        assert data.intent == ExtractionIntent.TRIP
        assert (data.earnings, data.km) == (45.0, 12.0)
        assert data.raw_text.startswith("fiz uma corrida")

    @pytest.mark.parametrize("raw,expected", [
        ("fuel", ExpenseType.FUEL),
        ("maintenance", ExpenseType.MAINTENANCE_CORRECTIVE),
        ("toll", ExpenseType.TOLL),
    ])
    async def test_expense_types(self, agent, raw, expected):
        data = await _extract(
            agent,
            AgentResult.success({"intent": "expense", "expense_amount": 80, "expense_type": raw, "confidence": 0.9}),
        )
        assert data.intent == ExtractionIntent.EXPENSE
        assert data.expense_type == expected

    async def test_model_failure(self, agent):
        with pytest.raises(NLPError):
            await _extract(agent, AgentResult.failure("Timed out after 15s"))

    @pytest.mark.parametrize("payload", [
        {"intent": "dance", "confidence": 0.9},
        {"intent": "trip", "confidence": 1.7},
        {"intent": "trip", "earnings": -5, "confidence": 0.9},
    ])
    async def test_schema_violations(self, agent, payload):
        with pytest.raises(NLPError):
            await _extract(agent, AgentResult.success(payload))
