"""Finance Service - async use cases over the cost engine.

Loads a driver's rows through the repositories, maps them onto the plain
``cost_engine`` dataclasses and persists whatever the use case produces.
Every entry point that needs the driver's cost profile raises
``MissingConfigurationError`` when onboarding never finished.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from kimo.app.config import Settings, get_settings
from kimo.domain.enums import (
    OWNED_PROFILES,
    CostFrequency,
    DriverProfile,
    ExpenseType,
    FixedCostType,
)
from kimo.domain.errors import MissingConfigurationError, NotFoundError, ValidationError
from kimo.domain.models import (
    DailySummary,
    DriverConfig,
    Expense,
    FixedCost,
    PendingTrip,
    Trip,
    User,
)
from kimo.domain.values import distance, local_today, money
from kimo.infra.repositories import (
    DailySummaryRepository,
    DriverConfigRepository,
    ExpenseRepository,
    FixedCostRepository,
    PendingTripRepository,
    TripRepository,
    UserRepository,
)
from kimo.services import cost_engine
from kimo.services.cost_engine import CostProfile, FixedCostItem

logger = logging.getLogger(__name__)

MAX_WEEKLY_GOAL = 100_000.0
MAX_FUEL_PRICE = 20.0
TRAILING_DAYS = 7


@dataclass
class Insights:
    profile: DriverProfile
    insights: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)
    metrics: dict = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.insights and not self.warnings


@dataclass
class DayFigures:
    date: date
    earnings: float
    expenses: float
    profit: float
    km: float


@dataclass
class WeeklyProgress:
    start: date
    end: date
    weekly_goal: Optional[float]
    total_profit: float
    remaining_to_goal: float
    percentage_complete: float
    days_with_data: int
    daily_summaries: list[DayFigures] = field(default_factory=list)


@dataclass
class OnboardingAnswers:
    """Everything collected by the onboarding flow."""

    profile: DriverProfile
    fuel_consumption: float
    avg_fuel_price: float
    avg_km_per_day: float
    car_value: Optional[float] = None
    weekly_rental: Optional[float] = None
    financing_balance: Optional[float] = None
    financing_monthly_payment: Optional[float] = None
    financing_remaining_months: Optional[int] = None
    name: Optional[str] = None


class FinanceService:
    """Driver-facing financial use cases."""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.users = UserRepository(db)
        self.configs = DriverConfigRepository(db)
        self.fixed_costs = FixedCostRepository(db)
        self.trips = TripRepository(db)
        self.expenses = ExpenseRepository(db)
        self.summaries = DailySummaryRepository(db)
        self.pending_trips = PendingTripRepository(db)

    def today(self) -> date:
        return local_today(self.settings.timezone)

    # ------------------------------------------------------------------
    # Users and configuration
    # ------------------------------------------------------------------

    async def create_user(
        self,
        phone: str,
        name: Optional[str] = None,
        weekly_goal: Optional[float] = None,
    ) -> User:
        """Get-or-create a user by phone."""
        if not phone or not phone.strip():
            raise ValidationError("phone", "is required")
        user = await self.users.find_by_phone(phone)
        if user is not None:
            return user
        if weekly_goal is not None:
            weekly_goal = money(weekly_goal, "weekly_goal")
        user = User(phone=phone, name=name, weekly_goal=weekly_goal, is_active=True)
        await self.users.save(user)
        logger.info("Created user %s for phone %s", user.id, phone)
        return user

    async def require_user(self, user_id: str) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def save_onboarding(self, phone: str, answers: OnboardingAnswers) -> tuple[User, DriverConfig]:
        """Persist user, driver config and the rental fixed cost, if any."""
        user = await self.create_user(phone, name=answers.name)
        config = DriverConfig(
            user_id=user.id,
            profile=answers.profile.value,
            car_value=money(answers.car_value, "car_value") if answers.car_value else None,
            fuel_consumption=answers.fuel_consumption,
            avg_fuel_price=money(answers.avg_fuel_price, "avg_fuel_price"),
            avg_km_per_day=distance(answers.avg_km_per_day, "avg_km_per_day"),
            work_days_per_week=self.settings.default_work_days_per_week,
            financing_balance=answers.financing_balance,
            financing_monthly_payment=answers.financing_monthly_payment,
            financing_remaining_months=answers.financing_remaining_months,
        )
        # Validates efficiency and work days before anything is written
        self._to_cost_profile(config)
        await self.configs.save(config)

        if answers.weekly_rental:
            for cost in await self.fixed_costs.find_active_by_user_id(user.id):
                if cost.type == FixedCostType.RENTAL.value:
                    await self.fixed_costs.deactivate(cost, self.today())
            await self.fixed_costs.save(
                FixedCost(
                    user_id=user.id,
                    type=FixedCostType.RENTAL.value,
                    amount=money(answers.weekly_rental, "weekly_rental"),
                    frequency=CostFrequency.WEEKLY.value,
                    description="Aluguel do carro",
                    is_active=True,
                    start_date=self.today(),
                )
            )

        logger.info("Onboarding saved for user %s (profile=%s)", user.id, answers.profile.value)
        return user, config

    async def get_cost_profile(self, user_id: str) -> tuple[CostProfile, list[FixedCostItem]]:
        config = await self.configs.find_by_user_id(user_id)
        if config is None:
            raise MissingConfigurationError(user_id)
        items = [
            FixedCostItem(
                type=c.type,
                amount=c.amount,
                frequency=c.frequency,
                is_active=c.is_active,
            )
            for c in await self.fixed_costs.find_active_by_user_id(user_id)
        ]
        return self._to_cost_profile(config), items

    @staticmethod
    def _to_cost_profile(config: DriverConfig) -> CostProfile:
        return CostProfile(
            profile=config.profile,
            fuel_consumption=config.fuel_consumption,
            avg_fuel_price=config.avg_fuel_price,
            avg_km_per_day=config.avg_km_per_day,
            work_days_per_week=config.work_days_per_week or 6,
            car_value=config.car_value,
            financing_monthly_payment=config.financing_monthly_payment,
        )

    async def set_weekly_goal(self, user_id: str, value: float) -> User:
        if value is None or not 0 < value <= MAX_WEEKLY_GOAL:
            raise ValidationError("weekly_goal", "must be between 0 and 100000")
        user = await self.require_user(user_id)
        return await self.users.update_goal(user, money(value, "weekly_goal"))

    async def update_fuel_price(self, user_id: str, price: float) -> DriverConfig:
        if price is None or not 0 < price <= MAX_FUEL_PRICE:
            raise ValidationError("avg_fuel_price", "must be between 0 and 20")
        config = await self.configs.find_by_user_id(user_id)
        if config is None:
            raise MissingConfigurationError(user_id)
        return await self.configs.update_fuel_price(config, money(price, "avg_fuel_price"))

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_trip(
        self,
        user_id: str,
        earnings: float,
        km: float,
        day: Optional[date] = None,
        minutes: int = 0,
        personal: bool = False,
    ) -> Trip:
        if earnings is None or earnings <= 0:
            raise ValidationError("earnings", "must be greater than zero")
        if km is None or km <= 0:
            raise ValidationError("km", "must be greater than zero")
        if minutes < 0:
            raise ValidationError("time_online_minutes", "must be non-negative")
        day = day or self.today()

        trip = await self.trips.save(
            Trip(
                user_id=user_id,
                date=day,
                earnings=money(earnings, "earnings"),
                km=distance(km, "km"),
                time_online_minutes=int(minutes),
                is_personal_use=personal,
            )
        )
        await self.calculate_daily_summary(user_id, day)
        return trip

    async def register_expense(
        self,
        user_id: str,
        expense_type: ExpenseType,
        amount: float,
        day: Optional[date] = None,
        note: Optional[str] = None,
    ) -> Expense:
        if amount is None or amount <= 0:
            raise ValidationError("amount", "must be greater than zero")
        day = day or self.today()

        expense = await self.expenses.save(
            Expense(
                user_id=user_id,
                date=day,
                type=ExpenseType(expense_type).value,
                amount=money(amount, "amount"),
                note=note,
            )
        )
        await self.calculate_daily_summary(user_id, day)
        return expense

    async def calculate_daily_summary(self, user_id: str, day: date) -> DailySummary:
        """Recompute and upsert the (user, day) aggregate."""
        earnings = round(await self.trips.total_earnings_by_user_and_date(user_id, day), 2)
        km = round(await self.trips.total_km_by_user_and_date(user_id, day), 2)
        expenses = round(await self.expenses.total_by_user_and_date(user_id, day), 2)
        profit = round(earnings - expenses, 2)
        cost_per_km = round(expenses / km, 2) if km > 0 else None

        return await self.summaries.upsert(
            user_id=user_id,
            day=day,
            earnings=earnings,
            expenses=expenses,
            km=km,
            profit=profit,
            cost_per_km=cost_per_km,
        )

    # ------------------------------------------------------------------
    # Engine use cases
    # ------------------------------------------------------------------

    async def calculate_suggested_goal(self, user_id: str) -> cost_engine.SuggestedGoal:
        profile, items = await self.get_cost_profile(user_id)
        return cost_engine.suggested_goal(profile, items)

    async def calculate_breakeven(self, user_id: str, reference: Optional[date] = None) -> cost_engine.Breakeven:
        profile, items = await self.get_cost_profile(user_id)
        reference = reference or self.today()
        start, _ = cost_engine.week_bounds(reference, self.settings.week_start_weekday)

        rows = await self.summaries.find_by_user_and_date_range(user_id, start, reference)
        earnings = sum(r.earnings for r in rows)
        expenses = sum(r.expenses for r in rows)

        return cost_engine.breakeven(
            profile,
            items,
            reference,
            earnings_to_date=earnings,
            expenses_to_date=expenses,
            week_start_weekday=self.settings.week_start_weekday,
        )

    async def average_profit_per_km(self, user_id: str, reference: Optional[date] = None) -> Optional[float]:
        """Trailing 7-day profit / km, or None without data."""
        reference = reference or self.today()
        start = reference - timedelta(days=TRAILING_DAYS - 1)
        rows = await self.summaries.find_by_user_and_date_range(user_id, start, reference)
        return cost_engine.average_profit_per_km((r.profit, r.km) for r in rows)

    async def evaluate_trip(
        self,
        user_id: str,
        earnings: float,
        km: float,
        reference: Optional[date] = None,
    ) -> cost_engine.TripEvaluation:
        profile, _ = await self.get_cost_profile(user_id)
        average = await self.average_profit_per_km(user_id, reference)
        return cost_engine.evaluate_trip(profile, earnings, km, average)

    async def get_insights(self, user_id: str, day: Optional[date] = None) -> Insights:
        profile, items = await self.get_cost_profile(user_id)
        day = day or self.today()

        total_earnings = await self.trips.total_earnings_by_user_and_date(user_id, day)
        total_km = await self.trips.total_km_by_user_and_date(user_id, day)
        total_minutes = await self.trips.total_minutes_by_user_and_date(user_id, day)
        total_expenses = await self.expenses.total_by_user_and_date(user_id, day)
        fuel_expenses = await self.expenses.total_fuel_by_user_and_date(user_id, day)

        result = Insights(profile=profile.profile)
        expected_per_km = cost_engine.fuel_cost_per_km(profile)
        actual_per_km = fuel_expenses / total_km if total_km > 0 else 0.0

        delta = cost_engine.fuel_spend_delta(fuel_expenses, total_km, expected_per_km)
        if delta < -cost_engine.FUEL_INSIGHT_THRESHOLD:
            saved = abs(delta)
            result.insights.append(f"💰 Hoje você economizou R$ {saved:.2f} otimizando onde abastecer!")
            result.tips.append(f"Se você economizasse assim todo dia, guardaria R$ {saved * 30:.2f} no mês.")
        elif delta > cost_engine.FUEL_INSIGHT_THRESHOLD:
            result.warnings.append(
                f"⚠️ Você gastou R$ {delta:.2f} a mais do que o esperado com combustível hoje."
            )
            result.tips.append("Dica: Procure postos mais baratos na região.")

        weekly_depreciation = cost_engine.weekly_depreciation(profile.car_value)
        if profile.profile in OWNED_PROFILES and weekly_depreciation:
            result.insights.append(
                f"📉 Essa semana sua depreciação estimada é de R$ {weekly_depreciation:.2f}."
            )

        if profile.profile != DriverProfile.RENTED and total_km > 0:
            result.insights.append(f"💸 Seu custo por KM hoje foi de R$ {total_expenses / total_km:.2f}.")

        if profile.profile == DriverProfile.RENTED:
            weekly_rental = sum(
                cost_engine.to_weekly(i) for i in items if i.type == FixedCostType.RENTAL
            )
            if weekly_rental > 0:
                daily_rental = weekly_rental / 7
                day_profit = total_earnings - total_expenses - daily_rental
                if day_profit > 0:
                    result.insights.append(
                        f"✅ Hoje você cobriu o aluguel (R$ {daily_rental:.2f}) e lucrou R$ {day_profit:.2f}!"
                    )
                else:
                    result.warnings.append(
                        f"⚠️ Você ainda não cobriu o aluguel de hoje (faltam R$ {abs(day_profit):.2f})."
                    )

        profit = total_earnings - total_expenses
        result.metrics = {
            "fuel_cost_per_km": round(actual_per_km, 2),
            "expected_fuel_cost_per_km": round(expected_per_km, 2),
            "average_earnings_per_hour": round(total_earnings / total_minutes * 60, 2) if total_minutes else 0.0,
            "profit_margin": round(profit / total_earnings * 100, 2) if total_earnings > 0 else 0.0,
            "weekly_depreciation": round(weekly_depreciation, 2) if weekly_depreciation else None,
        }
        return result

    async def get_weekly_progress(self, user_id: str, reference: Optional[date] = None) -> WeeklyProgress:
        """Profit over the 7 days ending at ``reference`` against the weekly goal."""
        user = await self.require_user(user_id)
        if await self.configs.find_by_user_id(user_id) is None:
            raise MissingConfigurationError(user_id)

        end = reference or self.today()
        start = end - timedelta(days=TRAILING_DAYS - 1)
        rows = await self.summaries.find_by_user_and_date_range(user_id, start, end)
        total_profit = round(await self.summaries.total_profit_by_user_and_date_range(user_id, start, end), 2)

        goal = user.weekly_goal
        remaining = round(goal - total_profit, 2) if goal else 0.0
        percentage = round(total_profit / goal * 100, 2) if goal and goal > 0 else 0.0

        return WeeklyProgress(
            start=start,
            end=end,
            weekly_goal=goal,
            total_profit=total_profit,
            remaining_to_goal=remaining,
            percentage_complete=percentage,
            days_with_data=len(rows),
            daily_summaries=[
                DayFigures(date=r.date, earnings=r.earnings, expenses=r.expenses, profit=r.profit, km=r.km)
                for r in rows
            ],
        )

    # ------------------------------------------------------------------
    # Pending trips
    # ------------------------------------------------------------------

    async def open_pending_trip(self, user_id: str, earnings: float, km: float) -> PendingTrip:
        """Remember an evaluated trip so its outcome can be asked later."""
        pending = PendingTrip(
            user_id=user_id,
            earnings=money(earnings, "earnings"),
            km=distance(km, "km"),
            estimated_duration_minutes=PendingTrip.estimate_duration(km),
        )
        await self.pending_trips.save(pending)
        logger.info(
            "Pending trip %s opened for user %s (eta=%d min)",
            pending.id, user_id, pending.estimated_duration_minutes,
        )
        return pending

    async def complete_pending_trip(
        self,
        user_id: str,
        fuel: Optional[float] = None,
        day: Optional[date] = None,
    ) -> Optional[tuple[PendingTrip, Trip]]:
        """Register the latest open pending trip as done; None if there is none."""
        pending = await self.pending_trips.find_latest_open_by_user(user_id)
        if pending is None:
            return None
        if fuel is not None and fuel <= 0:
            raise ValidationError("fuel", "must be greater than zero")

        day = day or self.today()
        trip = await self.register_trip(user_id, pending.earnings, pending.km, day)
        if fuel:
            await self.register_expense(user_id, ExpenseType.FUEL, fuel, day)

        pending.complete(fuel=fuel)
        await self.pending_trips.update(pending)
        return pending, trip

    async def cancel_pending_trip(self, user_id: str) -> Optional[PendingTrip]:
        pending = await self.pending_trips.find_latest_open_by_user(user_id)
        if pending is None:
            return None
        pending.cancel()
        await self.pending_trips.update(pending)
        return pending
