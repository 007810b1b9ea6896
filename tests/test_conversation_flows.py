"""End-to-end conversation flows through ConversationService.

Runs the state machine against a real in-memory database with the
messaging gateway mocked, asserting on what the driver would receive and
on what ends up persisted.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from kimo.agents.whatsapp import templates
from kimo.agents.whatsapp.contracts import ExtractedData
from kimo.domain.enums import (
    ConversationState,
    DriverProfile,
    ExpenseType,
    ExtractionIntent,
    FixedCostType,
    PendingTripStatus,
)
from kimo.domain.errors import TranscriptionError
from kimo.domain.models import DriverConfig, Expense, FixedCost, PendingTrip, Trip, User
from kimo.services.conversation_service import ConversationService

PHONE = "5511999990000"


@pytest.fixture
def conversation(db_session, store, messaging_mock, settings):
    return ConversationService(
        db_session, store=store, messaging=messaging_mock, settings=settings,
    )


@pytest.fixture
async def driver(make_user, make_config):
    """A fully onboarded own-paid driver."""
    user = await make_user(phone=PHONE)
    await make_config(user)
    return user


async def _say(conversation, *messages):
    for text in messages:
        await conversation.process_message(PHONE, text)


def _last(messaging_mock) -> str:
    return messaging_mock.sent[-1][1]


async def _rows(db_session, model):
    result = await db_session.execute(select(model))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

class TestOnboarding:

    async def test_own_paid_end_to_end(self, conversation, store, messaging_mock, db_session):
        await conversation.process_message(PHONE, "oi", sender_name="Carlos")
        assert _last(messaging_mock) == templates.ONBOARDING_START
        assert (await store.get(PHONE)).state == ConversationState.ONBOARDING_PROFILE

        await _say(conversation, "1", "50000", "12", "5.50", "150")

        session = await store.get(PHONE)
        assert session.state == ConversationState.IDLE
        assert session.onboarding is None
        assert "Meta sugerida" in _last(messaging_mock)

        users = await _rows(db_session, User)
        assert len(users) == 1
        assert users[0].name == "Carlos"
        assert users[0].weekly_goal == 894.0

        config = (await _rows(db_session, DriverConfig))[0]
        assert config.profile == DriverProfile.OWN_PAID.value
        assert config.car_value == 50000.0
        assert config.avg_fuel_price == 5.5

    async def test_financed_collects_financing(self, conversation, store, db_session):
        await _say(conversation, "oi", "2", "60000", "30000", "1200")
        assert (await store.get(PHONE)).state == ConversationState.ONBOARDING_FINANCING_MONTHS

        await _say(conversation, "36", "11", "5.80", "200")

        config = (await _rows(db_session, DriverConfig))[0]
        assert config.profile == DriverProfile.OWN_FINANCED.value
        assert config.financing_balance == 30000.0
        assert config.financing_monthly_payment == 1200.0
        assert config.financing_remaining_months == 36

    async def test_rented_creates_rental_cost(self, conversation, db_session):
        await _say(conversation, "oi", "3", "700", "12", "5.5", "150")

        costs = await _rows(db_session, FixedCost)
        assert len(costs) == 1
        assert costs[0].type == FixedCostType.RENTAL.value
        assert costs[0].amount == 700.0
        assert (await _rows(db_session, DriverConfig))[0].car_value is None

    @pytest.mark.parametrize("state_inputs,bad,expected", [
        (["oi"], "7", templates.INVALID_PROFILE),
        (["oi", "1", "50000"], "45", templates.INVALID_FUEL_CONSUMPTION),
        (["oi", "2", "60000", "30000", "1200"], "200", templates.INVALID_MONTHS),
        (["oi", "2", "60000", "30000", "1200"], "2,5", templates.INVALID_MONTHS),
    ])
    async def test_invalid_answer_keeps_state(self, conversation, store, messaging_mock, state_inputs, bad, expected):
        await _say(conversation, *state_inputs)
        before = (await store.get(PHONE)).state

        await _say(conversation, bad)

        assert _last(messaging_mock) == expected
        assert (await store.get(PHONE)).state == before

    async def test_reset_trigger_restarts(self, conversation, store, messaging_mock):
        await _say(conversation, "oi", "1", "50000")
        await _say(conversation, "oi")

        session = await store.get(PHONE)
        assert session.state == ConversationState.ONBOARDING_PROFILE
        assert session.onboarding.car_value is None
        assert _last(messaging_mock) == templates.ONBOARDING_START

    async def test_unknown_number_without_opt_in_is_ignored(self, conversation, store, messaging_mock, db_session):
        await _say(conversation, "quanto custa?")

        assert messaging_mock.sent == []
        assert await store.get(PHONE) is None
        assert await _rows(db_session, User) == []

    async def test_opt_in_not_required(self, db_session, store, messaging_mock, settings):
        settings.onboarding_requires_opt_in = False
        service = ConversationService(db_session, store=store, messaging=messaging_mock, settings=settings)

        await service.process_message(PHONE, "quanto custa?")

        assert _last(messaging_mock) == templates.ONBOARDING_START

    @pytest.mark.parametrize("text", ["45 12", "r", "10 20", "vale 30 10", "g80"])
    async def test_fast_path_from_unknown_number_is_ignored(self, conversation, store, messaging_mock, db_session, text):
        await _say(conversation, text)

        assert messaging_mock.sent == []
        assert await store.get(PHONE) is None
        assert await _rows(db_session, Trip) == []

    async def test_audio_from_unknown_number_is_ignored(self, conversation, store, messaging_mock):
        await conversation.process_audio(PHONE, "https://cdn.example/a.ogg")

        assert messaging_mock.sent == []
        assert await store.get(PHONE) is None


# ---------------------------------------------------------------------------
# Quick trip / expense confirmations
# ---------------------------------------------------------------------------

class TestQuickRegistration:

    async def test_quick_trip_confirmed(self, conversation, store, messaging_mock, db_session, driver):
        await _say(conversation, "45 12")
        session = await store.get(PHONE)
        assert session.state == ConversationState.REGISTER_CONFIRM
        assert await _rows(db_session, Trip) == []

        await _say(conversation, "sim")

        session = await store.get(PHONE)
        assert session.state == ConversationState.IDLE
        assert session.confirmation is None
        trips = await _rows(db_session, Trip)
        assert len(trips) == 1
        assert trips[0].earnings == 45.0
        assert trips[0].km == 12.0
        assert "Corrida salva" in _last(messaging_mock)

    async def test_quick_trip_with_fuel(self, conversation, db_session, driver):
        await _say(conversation, "45 12 5", "s")

        expenses = await _rows(db_session, Expense)
        assert [(e.type, e.amount) for e in expenses] == [(ExpenseType.FUEL.value, 5.0)]

    async def test_quick_trip_declined(self, conversation, store, messaging_mock, db_session, driver):
        await _say(conversation, "45 12", "não")

        assert _last(messaging_mock) == templates.REGISTRATION_CANCELLED
        assert (await store.get(PHONE)).state == ConversationState.IDLE
        assert await _rows(db_session, Trip) == []

    async def test_unclear_answer_keeps_confirmation(self, conversation, store, messaging_mock, driver):
        await _say(conversation, "45 12", "talvez")

        assert _last(messaging_mock) == templates.INVALID_CONFIRMATION
        assert (await store.get(PHONE)).state == ConversationState.REGISTER_CONFIRM

    async def test_quick_expense_with_note(self, conversation, db_session, driver):
        await _say(conversation, "m150 reparo freio", "sim")

        expense = (await _rows(db_session, Expense))[0]
        assert expense.type == ExpenseType.MAINTENANCE_CORRECTIVE.value
        assert expense.amount == 150.0
        assert expense.note == "reparo freio"

    async def test_fast_path_escapes_guided_flow(self, conversation, store, driver):
        await _say(conversation, "registrar")
        assert (await store.get(PHONE)).state == ConversationState.REGISTER_EARNINGS

        await _say(conversation, "g80")

        session = await store.get(PHONE)
        assert session.state == ConversationState.REGISTER_CONFIRM
        assert session.registration is None
        assert session.confirmation.amount == 80.0


# ---------------------------------------------------------------------------
# Guided registration
# ---------------------------------------------------------------------------

class TestGuidedRegistration:

    async def test_trip_saved_after_km(self, conversation, store, messaging_mock, db_session, driver):
        await _say(conversation, "registrar", "150", "60")

        trips = await _rows(db_session, Trip)
        assert [(t.earnings, t.km) for t in trips] == [(150.0, 60.0)]
        assert (await store.get(PHONE)).state == ConversationState.IDLE

    async def test_invalid_earnings(self, conversation, store, messaging_mock, driver):
        await _say(conversation, "registrar", "muito")

        assert _last(messaging_mock) == templates.INVALID_EARNINGS
        assert (await store.get(PHONE)).state == ConversationState.REGISTER_EARNINGS

    async def test_expenses_confirmed(self, conversation, messaging_mock, db_session, driver):
        await _say(conversation, "registrar", "200", "100")
        await _say(conversation, "despesa", "70", "20")
        assert "*Confirmar?*" in _last(messaging_mock)

        await _say(conversation, "sim")

        expenses = sorted((e.type, e.amount) for e in await _rows(db_session, Expense))
        assert expenses == [(ExpenseType.FUEL.value, 70.0), (ExpenseType.OTHER.value, 20.0)]
        assert "Lucro líquido:* R$ 110.00" in _last(messaging_mock)

    async def test_no_expenses_saves_nothing(self, conversation, store, messaging_mock, db_session, driver):
        await _say(conversation, "despesa", "0", "0")

        assert _last(messaging_mock) == templates.NOTHING_TO_SAVE
        assert (await store.get(PHONE)).state == ConversationState.IDLE
        assert await _rows(db_session, Expense) == []

    async def test_cancel_inside_flow(self, conversation, store, messaging_mock, driver):
        await _say(conversation, "despesa", "cancelar")

        assert _last(messaging_mock) == templates.FLOW_CANCELLED
        assert (await store.get(PHONE)).state == ConversationState.IDLE

    async def test_cancel_when_idle(self, conversation, messaging_mock, driver):
        await _say(conversation, "cancelar")
        assert _last(messaging_mock) == templates.NOTHING_TO_CANCEL


# ---------------------------------------------------------------------------
# Declining a confirmation
# ---------------------------------------------------------------------------

DECLINES = ["não", "n", "2"]


class TestDeclineConfirmation:
    """Every confirmation producer ends in IDLE with nothing written."""

    async def _assert_declined(self, store, messaging_mock):
        session = await store.get(PHONE)
        assert session.state == ConversationState.IDLE
        assert session.confirmation is None
        assert session.registration is None
        assert _last(messaging_mock) == templates.REGISTRATION_CANCELLED

    @pytest.mark.parametrize("answer", DECLINES)
    async def test_quick_trip(self, conversation, store, messaging_mock, db_session, driver, answer):
        await _say(conversation, "45 12 5", answer)

        await self._assert_declined(store, messaging_mock)
        assert await _rows(db_session, Trip) == []
        assert await _rows(db_session, Expense) == []

    @pytest.mark.parametrize("answer", DECLINES)
    async def test_quick_expense(self, conversation, store, messaging_mock, db_session, driver, answer):
        await _say(conversation, "m150 reparo freio", answer)

        await self._assert_declined(store, messaging_mock)
        assert await _rows(db_session, Expense) == []

    @pytest.mark.parametrize("answer", DECLINES)
    async def test_guided_registration(self, conversation, store, messaging_mock, db_session, driver, answer):
        await _say(conversation, "despesa", "70", "20")
        assert (await store.get(PHONE)).state == ConversationState.REGISTER_CONFIRM

        await _say(conversation, answer)

        await self._assert_declined(store, messaging_mock)
        assert await _rows(db_session, Expense) == []

    @pytest.mark.parametrize("answer", DECLINES)
    async def test_audio(self, db_session, store, messaging_mock, settings, driver, answer):
        transcriber = MagicMock()
        transcriber.transcribe = AsyncMock(return_value="fiz uma corrida de 45 reais e rodei 12 km")
        extractor = MagicMock()
        extractor.extract = AsyncMock(
            return_value=ExtractedData(intent=ExtractionIntent.TRIP, earnings=45, km=12, confidence=0.95)
        )
        service = ConversationService(
            db_session, store=store, messaging=messaging_mock,
            transcriber=transcriber, extractor=extractor, settings=settings,
        )

        await service.process_audio(PHONE, "https://cdn.example/audio.ogg")
        assert (await store.get(PHONE)).state == ConversationState.REGISTER_CONFIRM
        await service.process_message(PHONE, answer)

        await self._assert_declined(store, messaging_mock)
        assert await _rows(db_session, Trip) == []


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

class TestCommands:

    async def test_evaluate_then_ok_with_fuel(self, conversation, messaging_mock, db_session, driver):
        await _say(conversation, "vale 45 12")
        assert "Lucro estimado: R$ 33.74" in _last(messaging_mock)

        pending = await _rows(db_session, PendingTrip)
        assert len(pending) == 1
        assert pending[0].status == PendingTripStatus.PENDING.value

        await _say(conversation, "ok g30")

        await db_session.refresh(pending[0])
        assert pending[0].status == PendingTripStatus.COMPLETED.value
        assert len(await _rows(db_session, Trip)) == 1
        assert [e.amount for e in await _rows(db_session, Expense)] == [30.0]

    async def test_ok_without_pending(self, conversation, messaging_mock, driver):
        await _say(conversation, "ok")
        assert _last(messaging_mock) == templates.NO_PENDING_TRIP

    async def test_cancel_discards_pending(self, conversation, messaging_mock, db_session, driver):
        await _say(conversation, "vale 45 12", "cancelar")

        pending = (await _rows(db_session, PendingTrip))[0]
        assert pending.status == PendingTripStatus.CANCELLED.value
        assert "descartada" in _last(messaging_mock)

    async def test_rest_and_resume(self, conversation, messaging_mock, db_session, driver):
        await _say(conversation, "descanso")
        assert _last(messaging_mock) == templates.REST_ON
        assert (await _rows(db_session, User))[0].is_active is False

        await _say(conversation, "voltei")
        assert _last(messaging_mock) == templates.REST_OFF
        assert (await _rows(db_session, User))[0].is_active is True

    @pytest.mark.parametrize("text,expected", [
        ("meta 0", templates.INVALID_GOAL),
        ("meta 200000", templates.INVALID_GOAL),
        ("preco 25", templates.INVALID_FUEL_PRICE),
    ])
    async def test_out_of_range_values(self, conversation, messaging_mock, driver, text, expected):
        await _say(conversation, text)
        assert _last(messaging_mock) == expected

    async def test_set_goal(self, conversation, messaging_mock, db_session, driver):
        await _say(conversation, "meta 2000")
        assert (await _rows(db_session, User))[0].weekly_goal == 2000.0
        assert _last(messaging_mock) == templates.goal_updated(2000.0)

    async def test_reports(self, conversation, messaging_mock, driver):
        await _say(conversation, "45 12", "sim")

        await _say(conversation, "r")
        assert _last(messaging_mock).startswith("📊 *RESUMO DE HOJE*")

        await _say(conversation, "ontem")
        assert "Nenhum registro" in _last(messaging_mock)

    async def test_command_without_configuration(self, conversation, messaging_mock, make_user):
        await make_user(phone=PHONE)
        await _say(conversation, "resumo")
        assert _last(messaging_mock) == templates.MISSING_CONFIGURATION


# ---------------------------------------------------------------------------
# Menu and charts
# ---------------------------------------------------------------------------

class TestMenuAndCharts:

    async def test_menu_falls_back_to_numbered_text(self, conversation, messaging_mock, driver):
        await _say(conversation, "o que eu faço")

        messaging_mock.send_buttons.assert_awaited_once()
        assert "1. 🚗 Registrar corrida" in _last(messaging_mock)

    async def test_chart_without_data(self, conversation, messaging_mock, driver):
        await _say(conversation, "gráfico semana")
        assert _last(messaging_mock) == templates.CHART_NO_DATA
        assert messaging_mock.images == []

    async def test_chart_sent_as_image(self, conversation, messaging_mock, driver):
        await _say(conversation, "45 12", "sim", "grafico lucro")

        to, url, caption = messaging_mock.images[-1]
        assert to == PHONE
        assert url.startswith("https://quickchart.io/chart?")
        assert caption == templates.CHART_CAPTIONS["lucro"]

    async def test_chart_falls_back_to_link(self, conversation, messaging_mock, driver):
        messaging_mock.send_image = AsyncMock(return_value={"ok": False, "error": "http_500"})
        await _say(conversation, "grafico meta")

        assert "quickchart.io" in _last(messaging_mock)


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------

class TestAudio:

    def _service(self, db_session, store, messaging_mock, settings, extracted=None, transcribe_error=None):
        transcriber = MagicMock()
        if transcribe_error:
            transcriber.transcribe = AsyncMock(side_effect=transcribe_error)
        else:
            transcriber.transcribe = AsyncMock(return_value="fiz uma corrida de 45 reais e rodei 12 km")
        extractor = MagicMock()
        extractor.extract = AsyncMock(return_value=extracted)
        return ConversationService(
            db_session,
            store=store,
            messaging=messaging_mock,
            transcriber=transcriber,
            extractor=extractor,
            settings=settings,
        )

    async def test_trip_from_audio(self, db_session, store, messaging_mock, settings, driver):
        extracted = ExtractedData(intent=ExtractionIntent.TRIP, earnings=45, km=12, confidence=0.95)
        service = self._service(db_session, store, messaging_mock, settings, extracted)

        await service.process_audio(PHONE, "https://cdn.example/audio.ogg")
        assert messaging_mock.sent[0][1] == templates.AUDIO_PROCESSING
        assert (await store.get(PHONE)).state == ConversationState.REGISTER_CONFIRM

        await service.process_message(PHONE, "sim")
        trips = await _rows(db_session, Trip)
        assert [(t.earnings, t.km) for t in trips] == [(45.0, 12.0)]

    async def test_expense_from_audio(self, db_session, store, messaging_mock, settings, driver):
        extracted = ExtractedData(
            intent=ExtractionIntent.EXPENSE, expense_amount=80, expense_type=ExpenseType.FUEL, confidence=0.9,
        )
        service = self._service(db_session, store, messaging_mock, settings, extracted)

        await service.process_audio(PHONE, "https://cdn.example/audio.ogg")
        await service.process_message(PHONE, "sim")

        expense = (await _rows(db_session, Expense))[0]
        assert expense.type == ExpenseType.FUEL.value
        assert expense.amount == 80.0

    async def test_low_confidence(self, db_session, store, messaging_mock, settings, driver):
        extracted = ExtractedData(intent=ExtractionIntent.TRIP, earnings=45, km=12, confidence=0.3)
        service = self._service(db_session, store, messaging_mock, settings, extracted)

        await service.process_audio(PHONE, "https://cdn.example/audio.ogg")

        assert "Não entendi muito bem" in _last(messaging_mock)
        assert (await store.get(PHONE)).state == ConversationState.IDLE

    async def test_incomplete_trip(self, db_session, store, messaging_mock, settings, driver):
        extracted = ExtractedData(intent=ExtractionIntent.TRIP, earnings=45, confidence=0.9)
        service = self._service(db_session, store, messaging_mock, settings, extracted)

        await service.process_audio(PHONE, "https://cdn.example/audio.ogg")
        assert _last(messaging_mock) == templates.AUDIO_INCOMPLETE

    async def test_transcription_failure(self, db_session, store, messaging_mock, settings, driver):
        service = self._service(
            db_session, store, messaging_mock, settings, transcribe_error=TranscriptionError("timeout"),
        )

        await service.process_audio(PHONE, "https://cdn.example/audio.ogg")
        assert _last(messaging_mock) == templates.AUDIO_ERROR

    async def test_unavailable_without_collaborators(self, conversation, messaging_mock, driver):
        await conversation.process_audio(PHONE, "https://cdn.example/audio.ogg")
        assert _last(messaging_mock) == templates.AUDIO_UNAVAILABLE


# ---------------------------------------------------------------------------
# Recovery boundary
# ---------------------------------------------------------------------------

class TestRecovery:

    async def test_unexpected_error_resets_session(self, conversation, store, messaging_mock, driver):
        await _say(conversation, "registrar", "150")
        conversation.finance.register_trip = AsyncMock(side_effect=RuntimeError("boom"))

        await _say(conversation, "60")

        assert _last(messaging_mock) == templates.GENERIC_ERROR
        assert (await store.get(PHONE)).state == ConversationState.IDLE

    async def test_messaging_failure_does_not_raise(self, conversation, messaging_mock, driver):
        messaging_mock.send_text = AsyncMock(return_value={"ok": False, "error": "timeout"})
        await _say(conversation, "45 12")
