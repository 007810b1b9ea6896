"""Conversation Service - the WhatsApp state machine.

Inbound text goes through the deterministic command router first; any
fast-path match resets the session and runs immediately. Otherwise the
session's current state picks the handler:

    IDLE ─┬─ unknown user + opt-in ─► ONBOARDING_PROFILE ─► ... ─► IDLE
          ├─ "registrar" ─► REGISTER_EARNINGS ─► REGISTER_KM ─► IDLE
          ├─ "despesa"   ─► REGISTER_FUEL ─► REGISTER_OTHER_EXPENSES ─► REGISTER_CONFIRM
          └─ menu / reports / charts

REGISTER_CONFIRM is shared by every producer of a yes/no question and
dispatches on the pending confirmation's ``kind``.

``process_message`` and ``process_audio`` are recovery boundaries: nothing
raised inside a handler reaches the transport layer.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from kimo.agents.whatsapp import command_router, templates
from kimo.agents.whatsapp.contracts import ChartKind, CommandKind, FastPathCommand, MenuOption
from kimo.app.config import Settings, get_settings
from kimo.domain.enums import ConversationState, DriverProfile, ExpenseType, ExtractionIntent
from kimo.domain.errors import (
    MissingConfigurationError,
    NLPError,
    PersistenceError,
    TranscriptionError,
    ValidationError,
)
from kimo.domain.models import User
from kimo.domain.values import parse_number
from kimo.services import cost_engine
from kimo.services.chart_service import ChartService
from kimo.services.finance_service import MAX_FUEL_PRICE, MAX_WEEKLY_GOAL, FinanceService, OnboardingAnswers
from kimo.services.messaging_service import MessagingService
from kimo.services.session_store import (
    AudioConfirmation,
    ConfirmationKind,
    ConversationSession,
    GuidedRegistrationConfirmation,
    OnboardingDraft,
    QuickExpenseConfirmation,
    QuickTripConfirmation,
    RegistrationDraft,
    SessionStore,
    get_session_store,
)

logger = logging.getLogger(__name__)

PROFILE_OPTIONS = {
    "1": DriverProfile.OWN_PAID,
    "2": DriverProfile.OWN_FINANCED,
    "3": DriverProfile.RENTED,
    "4": DriverProfile.HYBRID,
}

MAX_FUEL_CONSUMPTION = 30.0
MAX_FINANCING_MONTHS = 120


def _positive(text: str) -> Optional[float]:
    value = parse_number(text)
    return value if value is not None and value > 0 else None


def _non_negative(text: str) -> Optional[float]:
    value = parse_number(text)
    return value if value is not None and value >= 0 else None


class ConversationService:
    """One instance per inbound message; holds no state of its own."""

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[SessionStore] = None,
        messaging=None,
        transcriber=None,
        extractor=None,
        charts: Optional[ChartService] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.finance = FinanceService(db, self.settings)
        self.store = store or get_session_store()
        self.messaging = messaging or MessagingService(self.settings)
        self.charts = charts or ChartService(self.settings)

        if transcriber is None and self.settings.groq_api_key:
            from kimo.services.transcription_service import TranscriptionService
            transcriber = TranscriptionService(self.settings)
        if extractor is None and self.settings.gemini_api_key:
            from kimo.agents.whatsapp.extraction_agent import ExtractionAgent
            extractor = ExtractionAgent(self.settings)
        self.transcriber = transcriber
        self.extractor = extractor

        self._state_handlers = {
            ConversationState.ONBOARDING_PROFILE: self._on_profile,
            ConversationState.ONBOARDING_RENTAL: self._on_rental,
            ConversationState.ONBOARDING_CAR_VALUE: self._on_car_value,
            ConversationState.ONBOARDING_FINANCING_BALANCE: self._on_financing_balance,
            ConversationState.ONBOARDING_FINANCING_PAYMENT: self._on_financing_payment,
            ConversationState.ONBOARDING_FINANCING_MONTHS: self._on_financing_months,
            ConversationState.ONBOARDING_FUEL_CONSUMPTION: self._on_fuel_consumption,
            ConversationState.ONBOARDING_FUEL_PRICE: self._on_fuel_price,
            ConversationState.ONBOARDING_AVG_KM: self._on_avg_km,
            ConversationState.REGISTER_EARNINGS: self._on_registration_earnings,
            ConversationState.REGISTER_KM: self._on_registration_km,
            ConversationState.REGISTER_FUEL: self._on_registration_fuel,
            ConversationState.REGISTER_OTHER_EXPENSES: self._on_registration_other,
            ConversationState.REGISTER_CONFIRM: self._on_confirmation,
        }
        self._command_handlers = {
            CommandKind.QUICK_TRIP: self._cmd_quick_trip,
            CommandKind.EVALUATE_TRIP: self._cmd_evaluate_trip,
            CommandKind.QUICK_EXPENSE: self._cmd_quick_expense,
            CommandKind.REPORT_SUMMARY: self._cmd_summary,
            CommandKind.REPORT_WEEKLY: self._cmd_weekly,
            CommandKind.REPORT_YESTERDAY: self._cmd_yesterday,
            CommandKind.REPORT_LAST_WEEK: self._cmd_last_week,
            CommandKind.SET_GOAL: self._cmd_set_goal,
            CommandKind.UPDATE_FUEL_PRICE: self._cmd_fuel_price,
            CommandKind.PENDING_OK: self._cmd_pending_ok,
            CommandKind.CANCEL: self._cmd_cancel,
            CommandKind.REST: self._cmd_rest,
            CommandKind.RESUME: self._cmd_resume,
        }

    # ==================================================================
    # Entry points
    # ==================================================================

    async def process_message(self, phone: str, text: str, sender_name: Optional[str] = None) -> None:
        """Handle one inbound text message from ``phone``."""
        session = await self.store.get_or_create(phone)
        await self._guarded(session, "process_message", self._handle_text(session, text or "", sender_name))

    async def process_audio(self, phone: str, audio_url: str, sender_name: Optional[str] = None) -> None:
        """Handle one inbound voice note: transcribe, extract, then act."""
        session = await self.store.get_or_create(phone)
        await self._guarded(session, "process_audio", self._handle_audio(session, audio_url))

    async def _guarded(self, session: ConversationSession, action: str, handler) -> None:
        phone = session.phone
        try:
            await handler
        except MissingConfigurationError:
            logger.info("%s: missing driver configuration for %s", action, phone)
            session.reset()
            await self._send(phone, templates.MISSING_CONFIGURATION)
        except ValidationError as e:
            logger.info("%s: validation failed for %s: %s", action, phone, e)
            await self._send(phone, templates.INVALID_INPUT)
        except PersistenceError as e:
            logger.error("%s: persistence failed for %s: %s", action, phone, e)
            session.reset()
            await self._send(phone, templates.SAVE_ERROR)
        except Exception:
            logger.exception("%s: unexpected failure for %s", action, phone)
            session.reset()
            await self._send(phone, templates.GENERIC_ERROR)
        finally:
            if session.user_id is None and session.state == ConversationState.IDLE:
                # Unknown sender with nothing in flight
                await self.store.delete(phone)
            else:
                session.touch()
                await self.store.set(session)

    # ==================================================================
    # Text dispatch
    # ==================================================================

    async def _handle_text(self, session: ConversationSession, text: str, sender_name: Optional[str]) -> None:
        user = await self.finance.users.find_by_phone(session.phone)
        if user is not None:
            session.user_id = user.id
            await self.finance.users.touch(user)

        command = command_router.route(text)
        if command is not None:
            previous_state = session.state
            session.reset()
            if user is None:
                logger.info("Ignoring %s from unknown number %s", command.kind.value, session.phone)
                return
            logger.info("Fast path %s for %s", command.kind.value, session.phone)
            await self._command_handlers[command.kind](session, user, command, previous_state)
            return

        if session.state != ConversationState.IDLE and command_router.is_reset_trigger(text):
            logger.info("Reset trigger from %s in state %s", session.phone, session.state.value)
            session.reset()

        if session.state == ConversationState.IDLE:
            await self._on_idle(session, user, text, sender_name)
            return

        handler = self._state_handlers[session.state]
        await handler(session, user, text)

    # ------------------------------------------------------------------
    # Idle
    # ------------------------------------------------------------------

    async def _on_idle(
        self,
        session: ConversationSession,
        user: Optional[User],
        text: str,
        sender_name: Optional[str],
    ) -> None:
        opted_in = (
            not self.settings.onboarding_requires_opt_in
            or command_router.is_opt_in(text, self.settings.onboarding_trigger_list)
        )

        if user is None:
            if opted_in:
                await self._start_onboarding(session, sender_name)
            else:
                logger.info("Ignoring message from unknown number %s", session.phone)
            return

        if await self.finance.configs.find_by_user_id(user.id) is None:
            if opted_in or command_router.is_reset_trigger(text):
                await self._start_onboarding(session, sender_name or user.name)
            else:
                await self._send(session.phone, templates.MISSING_CONFIGURATION)
            return

        chart = command_router.match_chart(text)
        if chart is not None:
            await self._send_chart(session.phone, user, chart)
            return

        option = command_router.match_menu_option(text)
        if option == MenuOption.REGISTER_TRIP:
            await self._start_registration(session)
        elif option == MenuOption.REGISTER_EXPENSE:
            await self._start_expenses(session)
        elif option == MenuOption.SUMMARY:
            await self._cmd_summary(session, user)
        elif option == MenuOption.WEEKLY:
            await self._cmd_weekly(session, user)
        elif option == MenuOption.INSIGHTS:
            insights = await self.finance.get_insights(user.id)
            await self._send(session.phone, templates.insights_report(insights))
        elif option == MenuOption.CHARTS:
            await self._send(session.phone, templates.CHART_MENU)
        else:
            await self._send_menu(session.phone, user.name or sender_name)

    # ==================================================================
    # Onboarding
    # ==================================================================

    async def _start_onboarding(self, session: ConversationSession, name: Optional[str]) -> None:
        logger.info("Starting onboarding for %s", session.phone)
        session.reset()
        session.onboarding = OnboardingDraft(name=name)
        session.state = ConversationState.ONBOARDING_PROFILE
        await self._send(session.phone, templates.ONBOARDING_START)

    async def _on_profile(self, session, user, text) -> None:
        profile = PROFILE_OPTIONS.get(command_router.normalize(text))
        if profile is None:
            await self._send(session.phone, templates.INVALID_PROFILE)
            return

        session.onboarding.profile = profile
        name = templates.PROFILE_NAMES[profile.value]
        if profile == DriverProfile.RENTED:
            session.state = ConversationState.ONBOARDING_RENTAL
            await self._send(session.phone, templates.ask_rental(name))
        else:
            session.state = ConversationState.ONBOARDING_CAR_VALUE
            await self._send(session.phone, templates.ask_car_value(name))

    async def _on_rental(self, session, user, text) -> None:
        value = _positive(text)
        if value is None:
            await self._send(session.phone, templates.invalid_value("900"))
            return
        session.onboarding.weekly_rental = value
        session.state = ConversationState.ONBOARDING_FUEL_CONSUMPTION
        await self._send(session.phone, templates.ASK_FUEL_CONSUMPTION)

    async def _on_car_value(self, session, user, text) -> None:
        value = _positive(text)
        if value is None:
            await self._send(session.phone, templates.invalid_value("50000"))
            return
        session.onboarding.car_value = value
        if session.onboarding.profile == DriverProfile.OWN_FINANCED:
            session.state = ConversationState.ONBOARDING_FINANCING_BALANCE
            await self._send(session.phone, templates.ask_financing_balance(value))
        else:
            session.state = ConversationState.ONBOARDING_FUEL_CONSUMPTION
            await self._send(session.phone, templates.ASK_FUEL_CONSUMPTION)

    async def _on_financing_balance(self, session, user, text) -> None:
        value = _non_negative(text)
        if value is None:
            await self._send(session.phone, templates.invalid_value("30000"))
            return
        session.onboarding.financing_balance = value
        session.state = ConversationState.ONBOARDING_FINANCING_PAYMENT
        await self._send(session.phone, templates.ask_financing_payment(value))

    async def _on_financing_payment(self, session, user, text) -> None:
        value = _positive(text)
        if value is None:
            await self._send(session.phone, templates.invalid_value("800"))
            return
        session.onboarding.financing_monthly_payment = value
        session.state = ConversationState.ONBOARDING_FINANCING_MONTHS
        await self._send(session.phone, templates.ask_financing_months(value))

    async def _on_financing_months(self, session, user, text) -> None:
        value = _positive(text)
        if value is None or value != int(value) or value > MAX_FINANCING_MONTHS:
            await self._send(session.phone, templates.INVALID_MONTHS)
            return
        session.onboarding.financing_remaining_months = int(value)
        session.state = ConversationState.ONBOARDING_FUEL_CONSUMPTION
        await self._send(session.phone, templates.ASK_FUEL_CONSUMPTION)

    async def _on_fuel_consumption(self, session, user, text) -> None:
        value = _positive(text)
        if value is None or value > MAX_FUEL_CONSUMPTION:
            await self._send(session.phone, templates.INVALID_FUEL_CONSUMPTION)
            return
        session.onboarding.fuel_consumption = value
        session.state = ConversationState.ONBOARDING_FUEL_PRICE
        await self._send(session.phone, templates.ask_fuel_price(value))

    async def _on_fuel_price(self, session, user, text) -> None:
        value = _positive(text)
        if value is None or value > MAX_FUEL_PRICE:
            await self._send(session.phone, templates.invalid_value("5.50"))
            return
        session.onboarding.avg_fuel_price = value
        session.state = ConversationState.ONBOARDING_AVG_KM
        await self._send(session.phone, templates.ask_avg_km(value))

    async def _on_avg_km(self, session, user, text) -> None:
        value = _positive(text)
        if value is None:
            await self._send(session.phone, templates.invalid_value("150"))
            return

        draft = session.onboarding
        answers = OnboardingAnswers(
            profile=draft.profile,
            fuel_consumption=draft.fuel_consumption,
            avg_fuel_price=draft.avg_fuel_price,
            avg_km_per_day=value,
            car_value=draft.car_value,
            weekly_rental=draft.weekly_rental,
            financing_balance=draft.financing_balance,
            financing_monthly_payment=draft.financing_monthly_payment,
            financing_remaining_months=draft.financing_remaining_months,
            name=draft.name,
        )
        try:
            user, _ = await self.finance.save_onboarding(session.phone, answers)
            goal = await self.finance.calculate_suggested_goal(user.id)
            await self.finance.users.update_goal(user, goal.suggested_weekly_goal)
        except PersistenceError as e:
            logger.error("Onboarding save failed for %s: %s", session.phone, e)
            session.reset()
            await self._send(session.phone, templates.ONBOARDING_SAVE_ERROR)
            return

        session.reset()
        session.user_id = user.id
        logger.info(
            "Onboarding complete for %s: suggested weekly goal %.2f",
            session.phone, goal.suggested_weekly_goal,
        )
        await self._send(session.phone, templates.onboarding_complete(goal))

    # ==================================================================
    # Guided registration
    # ==================================================================

    async def _start_registration(self, session: ConversationSession) -> None:
        session.reset()
        session.registration = RegistrationDraft()
        session.state = ConversationState.REGISTER_EARNINGS
        await self._send(session.phone, templates.START_REGISTRATION)

    async def _start_expenses(self, session: ConversationSession) -> None:
        session.reset()
        session.registration = RegistrationDraft()
        session.state = ConversationState.REGISTER_FUEL
        await self._send(session.phone, templates.START_EXPENSES)

    async def _on_registration_earnings(self, session, user, text) -> None:
        value = _positive(text)
        if value is None:
            await self._send(session.phone, templates.INVALID_EARNINGS)
            return
        session.registration.earnings = value
        session.state = ConversationState.REGISTER_KM
        await self._send(session.phone, templates.ask_registration_km(value))

    async def _on_registration_km(self, session, user, text) -> None:
        value = _positive(text)
        if value is None:
            await self._send(session.phone, templates.INVALID_KM)
            return

        earnings = session.registration.earnings
        await self.finance.register_trip(user.id, earnings, value)
        session.reset()
        await self._send(session.phone, templates.registration_trip_saved(earnings, value))

    async def _on_registration_fuel(self, session, user, text) -> None:
        value = _non_negative(text)
        if value is None:
            await self._send(session.phone, templates.INVALID_FUEL)
            return
        session.registration.fuel = value
        session.state = ConversationState.REGISTER_OTHER_EXPENSES
        await self._send(session.phone, templates.ask_other_expenses(value))

    async def _on_registration_other(self, session, user, text) -> None:
        value = _non_negative(text)
        if value is None:
            await self._send(session.phone, templates.INVALID_OTHER_EXPENSES)
            return

        fuel = session.registration.fuel or 0.0
        if fuel == 0 and value == 0:
            session.reset()
            await self._send(session.phone, templates.NOTHING_TO_SAVE)
            return

        today = self.finance.today()
        earnings = await self.finance.trips.total_earnings_by_user_and_date(user.id, today)
        prior_expenses = await self.finance.expenses.total_by_user_and_date(user.id, today)

        session.registration.other_expenses = value
        session.confirm(GuidedRegistrationConfirmation(fuel=fuel, other_expenses=value))
        await self._send(
            session.phone,
            templates.confirm_guided_expenses(earnings, fuel, value, prior_expenses),
        )

    # ==================================================================
    # Shared confirmation
    # ==================================================================

    async def _on_confirmation(self, session, user, text) -> None:
        confirmation = session.confirmation
        if confirmation is None or user is None:
            session.reset()
            await self._on_idle(session, user, text, None)
            return

        if command_router.is_negative(text):
            logger.info("%s confirmation declined by %s", confirmation.kind.value, session.phone)
            session.reset()
            await self._send(session.phone, templates.REGISTRATION_CANCELLED)
            return
        if not command_router.is_affirmative(text):
            await self._send(session.phone, templates.INVALID_CONFIRMATION)
            return

        savers = {
            ConfirmationKind.QUICK_TRIP: self._save_quick_trip,
            ConfirmationKind.QUICK_EXPENSE: self._save_quick_expense,
            ConfirmationKind.GUIDED_REGISTRATION: self._save_guided_registration,
            ConfirmationKind.AUDIO: self._save_audio,
        }
        # Cleared first so a failed save cannot be confirmed twice.
        session.reset()
        await savers[confirmation.kind](session, user, confirmation)

    async def _save_quick_trip(self, session, user: User, c: QuickTripConfirmation) -> None:
        await self.finance.register_trip(user.id, c.earnings, c.km)
        if c.fuel:
            await self.finance.register_expense(user.id, ExpenseType.FUEL, c.fuel)
        await self._send(session.phone, templates.trip_saved(c.earnings, c.km, c.fuel))

    async def _save_quick_expense(self, session, user: User, c: QuickExpenseConfirmation) -> None:
        await self.finance.register_expense(user.id, c.expense_type, c.amount, note=c.note)
        await self._send(session.phone, templates.expense_saved(c.label, c.amount, c.note))

    async def _save_guided_registration(self, session, user: User, c: GuidedRegistrationConfirmation) -> None:
        today = self.finance.today()
        if c.fuel > 0:
            await self.finance.register_expense(user.id, ExpenseType.FUEL, c.fuel, today)
        if c.other_expenses > 0:
            await self.finance.register_expense(
                user.id, ExpenseType.OTHER, c.other_expenses, today, note="Outras despesas"
            )

        summary = await self.finance.calculate_daily_summary(user.id, today)
        insight = None
        try:
            insights = await self.finance.get_insights(user.id, today)
            found = insights.insights + insights.warnings
            insight = found[0] if found else None
        except MissingConfigurationError:
            pass
        await self._send(session.phone, templates.day_registered(summary.profit, summary.cost_per_km, insight))

    async def _save_audio(self, session, user: User, c: AudioConfirmation) -> None:
        if c.intent == ExtractionIntent.TRIP.value:
            await self.finance.register_trip(user.id, c.earnings, c.km)
            await self._send(session.phone, templates.trip_saved(c.earnings, c.km, None))
        else:
            expense_type = c.expense_type or ExpenseType.OTHER
            await self.finance.register_expense(user.id, expense_type, c.expense_amount, note=c.transcript or None)
            await self._send(
                session.phone,
                templates.expense_saved(templates.expense_label(expense_type), c.expense_amount, None),
            )

    # ==================================================================
    # Fast-path commands
    # ==================================================================

    async def _cmd_quick_trip(self, session, user, command: FastPathCommand, previous_state=None) -> None:
        if not command.earnings or not command.km or (command.fuel is not None and command.fuel <= 0):
            await self._send(session.phone, templates.INVALID_QUICK_TRIP)
            return
        session.confirm(QuickTripConfirmation(earnings=command.earnings, km=command.km, fuel=command.fuel))
        await self._send(session.phone, templates.confirm_quick_trip(command.earnings, command.km, command.fuel))

    async def _cmd_evaluate_trip(self, session, user, command: FastPathCommand, previous_state=None) -> None:
        if not command.earnings or not command.km:
            await self._send(session.phone, templates.INVALID_EVALUATION)
            return
        evaluation = await self.finance.evaluate_trip(user.id, command.earnings, command.km)
        await self.finance.open_pending_trip(user.id, command.earnings, command.km)
        logger.info(
            "Evaluated trip for %s: %s (%.2f/km)",
            session.phone, evaluation.recommendation.value, evaluation.profit_per_km,
        )
        await self._send(session.phone, templates.trip_evaluation(evaluation))

    async def _cmd_quick_expense(self, session, user, command: FastPathCommand, previous_state=None) -> None:
        if not command.amount:
            await self._send(session.phone, templates.INVALID_QUICK_EXPENSE)
            return
        session.confirm(
            QuickExpenseConfirmation(
                expense_type=command.expense_type,
                label=command.expense_label,
                amount=command.amount,
                note=command.note,
            )
        )
        await self._send(
            session.phone,
            templates.confirm_quick_expense(command.expense_label, command.amount, command.note),
        )

    async def _cmd_summary(self, session, user, command=None, previous_state=None) -> None:
        insights = await self.finance.get_insights(user.id)
        await self._send(session.phone, templates.summary(insights))

    async def _cmd_weekly(self, session, user, command=None, previous_state=None) -> None:
        result = await self.finance.calculate_breakeven(user.id)
        await self._send(session.phone, templates.weekly_breakeven(result))

    async def _cmd_yesterday(self, session, user, command=None, previous_state=None) -> None:
        day = self.finance.today() - timedelta(days=1)
        summary = await self.finance.summaries.find_by_user_and_date(user.id, day)
        await self._send(session.phone, templates.yesterday(summary))

    async def _cmd_last_week(self, session, user, command=None, previous_state=None) -> None:
        start, _ = cost_engine.week_bounds(self.finance.today(), self.settings.week_start_weekday)
        progress = await self.finance.get_weekly_progress(user.id, start - timedelta(days=1))
        await self._send(session.phone, templates.last_week(progress))

    async def _cmd_set_goal(self, session, user, command: FastPathCommand, previous_state=None) -> None:
        if command.value is None or not 0 < command.value <= MAX_WEEKLY_GOAL:
            await self._send(session.phone, templates.INVALID_GOAL)
            return
        await self.finance.set_weekly_goal(user.id, command.value)
        await self._send(session.phone, templates.goal_updated(command.value))

    async def _cmd_fuel_price(self, session, user, command: FastPathCommand, previous_state=None) -> None:
        if command.value is None or not 0 < command.value <= MAX_FUEL_PRICE:
            await self._send(session.phone, templates.INVALID_FUEL_PRICE)
            return
        await self.finance.update_fuel_price(user.id, command.value)
        await self._send(session.phone, templates.fuel_price_updated(command.value))

    async def _cmd_pending_ok(self, session, user, command: FastPathCommand, previous_state=None) -> None:
        if command.fuel is not None and command.fuel <= 0:
            await self._send(session.phone, templates.INVALID_PENDING_FUEL)
            return
        result = await self.finance.complete_pending_trip(user.id, fuel=command.fuel)
        if result is None:
            await self._send(session.phone, templates.NO_PENDING_TRIP)
            return
        pending, _ = result
        await self._send(session.phone, templates.pending_completed(pending.earnings, pending.km, pending.fuel))

    async def _cmd_cancel(self, session, user, command=None, previous_state=None) -> None:
        pending = await self.finance.cancel_pending_trip(user.id)
        if pending is not None:
            await self._send(session.phone, templates.pending_cancelled(pending.earnings, pending.km))
        elif previous_state not in (None, ConversationState.IDLE):
            await self._send(session.phone, templates.FLOW_CANCELLED)
        else:
            await self._send(session.phone, templates.NOTHING_TO_CANCEL)

    async def _cmd_rest(self, session, user, command=None, previous_state=None) -> None:
        await self.finance.users.set_active(user, False)
        logger.info("User %s entered rest mode", user.id)
        await self._send(session.phone, templates.REST_ON)

    async def _cmd_resume(self, session, user, command=None, previous_state=None) -> None:
        await self.finance.users.set_active(user, True)
        logger.info("User %s left rest mode", user.id)
        await self._send(session.phone, templates.REST_OFF)

    # ==================================================================
    # Audio
    # ==================================================================

    async def _handle_audio(self, session: ConversationSession, audio_url: str) -> None:
        phone = session.phone
        user = await self.finance.users.find_by_phone(phone)
        if user is None:
            logger.info("Ignoring audio from unknown number %s", phone)
            return
        session.user_id = user.id

        if self.transcriber is None or self.extractor is None:
            await self._send(phone, templates.AUDIO_UNAVAILABLE)
            return

        await self._send(phone, templates.AUDIO_PROCESSING)
        try:
            transcript = await self.transcriber.transcribe(audio_url)
            data = await self.extractor.extract(transcript)
        except (TranscriptionError, NLPError) as e:
            logger.warning("Audio processing failed for %s: %s", phone, e)
            await self._send(phone, templates.AUDIO_ERROR)
            return

        if data.confidence < self.settings.nlp_confidence_threshold:
            await self._send(phone, templates.audio_low_confidence(transcript))
            return

        session.reset()
        if data.intent == ExtractionIntent.TRIP:
            if not data.earnings or not data.km:
                await self._send(phone, templates.AUDIO_INCOMPLETE)
                return
            session.confirm(
                AudioConfirmation(
                    intent=data.intent.value, earnings=data.earnings, km=data.km, transcript=transcript
                )
            )
            await self._send(phone, templates.confirm_audio_trip(data.earnings, data.km))
        elif data.intent == ExtractionIntent.EXPENSE:
            if not data.expense_amount:
                await self._send(phone, templates.AUDIO_INCOMPLETE)
                return
            expense_type = data.expense_type or ExpenseType.OTHER
            session.confirm(
                AudioConfirmation(
                    intent=data.intent.value,
                    expense_amount=data.expense_amount,
                    expense_type=expense_type,
                    transcript=transcript,
                )
            )
            await self._send(
                phone, templates.confirm_audio_expense(data.expense_amount, templates.expense_label(expense_type))
            )
        elif data.intent == ExtractionIntent.SUMMARY:
            await self._cmd_summary(session, user)
        else:
            await self._send(phone, templates.audio_unknown(transcript))

    # ==================================================================
    # Charts
    # ==================================================================

    async def _send_chart(self, phone: str, user: User, kind: ChartKind) -> None:
        url = await self._chart_url(user, kind)
        if url is None:
            text = templates.CHART_NO_GOAL if kind == ChartKind.GOAL else templates.CHART_NO_DATA
            await self._send(phone, text)
            return

        caption = templates.CHART_CAPTIONS[kind.value]
        result = await self.messaging.send_image(phone, url, caption)
        if not result.get("ok"):
            logger.warning("Chart image failed for %s (%s), sending link", phone, result.get("error"))
            await self._send(phone, templates.chart_fallback(caption, url))

    async def _chart_url(self, user: User, kind: ChartKind) -> Optional[str]:
        if kind == ChartKind.GOAL:
            if not user.weekly_goal:
                return None
            progress = await self.finance.get_weekly_progress(user.id)
            return self.charts.goal_progress(progress.total_profit, user.weekly_goal, progress.percentage_complete)

        progress = await self.finance.get_weekly_progress(user.id)
        if kind == ChartKind.EXPENSES:
            totals = await self.finance.expenses.totals_by_type(user.id, progress.start, progress.end)
            if not totals:
                return None
            return self.charts.expenses_pie(
                [templates.expense_label(t) for t in totals], list(totals.values())
            )

        days = progress.daily_summaries
        if not days:
            return None
        labels = [cost_engine.WEEKDAY_NAMES[d.date.weekday()][:3] for d in days]
        if kind == ChartKind.PROFIT:
            return self.charts.profit_trend(labels, [d.profit for d in days], user.weekly_goal)
        return self.charts.weekly_progress(
            labels,
            [d.earnings for d in days],
            [d.expenses for d in days],
            [d.profit for d in days],
        )

    # ==================================================================
    # Outbound
    # ==================================================================

    async def _send(self, phone: str, text: str) -> dict:
        result = await self.messaging.send_text(phone, text)
        if not result.get("ok"):
            logger.warning("Message to %s not delivered: %s", phone, result.get("error"))
        return result

    async def _send_menu(self, phone: str, name: Optional[str]) -> None:
        message = templates.main_menu(name)
        result = await self.messaging.send_buttons(phone, message, templates.MENU_BUTTONS)
        if not result.get("ok"):
            logger.warning("Buttons unavailable for %s (%s), sending numbered menu", phone, result.get("error"))
            await self._send(phone, templates.numbered_options(message, templates.MENU_BUTTONS))
