"""Cost Engine - pure cost, depreciation, goal and trip-profit formulas.

No I/O happens here. ``FinanceService`` loads rows from the database, maps
them into ``CostProfile`` / ``FixedCostItem`` and calls these functions.
All amounts are in BRL and distances in km.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from kimo.domain.enums import (
    DEPRECIATING_PROFILES,
    CostFrequency,
    DriverProfile,
    FixedCostType,
    Recommendation,
)
from kimo.domain.errors import ValidationError
from kimo.domain.values import format_brl

WEEKS_PER_MONTH = 4.33
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365
WEEKS_PER_YEAR = 52
MONTHS_PER_YEAR = 12

ANNUAL_DEPRECIATION_RATE = 0.18
TRIP_DEPRECIATION_KM_PER_YEAR = 50_000

DAILY_MAINTENANCE_ESTIMATE = 10.0
MAINTENANCE_PER_KM = 0.30
MONTHLY_INSURANCE_ESTIMATE = 200.0
MONTHLY_TAX_ESTIMATE = 100.0
PROFIT_MARGIN = 0.25

REJECT_BELOW_PER_KM = 1.5
ACCEPT_FROM_PER_KM = 2.5
BELOW_AVERAGE_FACTOR = 0.8

FUEL_INSIGHT_THRESHOLD = 5.0

WEEKDAY_NAMES = ["segunda", "terça", "quarta", "quinta", "sexta", "sábado", "domingo"]

# Multiplier applied to an amount of <source> frequency to obtain <target>.
_CONVERSIONS: dict[CostFrequency, dict[CostFrequency, float]] = {
    CostFrequency.DAILY: {
        CostFrequency.DAILY: 1.0,
        CostFrequency.WEEKLY: 7.0,
        CostFrequency.MONTHLY: float(DAYS_PER_MONTH),
        CostFrequency.YEARLY: float(DAYS_PER_YEAR),
    },
    CostFrequency.WEEKLY: {
        CostFrequency.DAILY: 1 / 7,
        CostFrequency.WEEKLY: 1.0,
        CostFrequency.MONTHLY: WEEKS_PER_MONTH,
        CostFrequency.YEARLY: float(WEEKS_PER_YEAR),
    },
    CostFrequency.MONTHLY: {
        CostFrequency.DAILY: 1 / DAYS_PER_MONTH,
        CostFrequency.WEEKLY: 1 / WEEKS_PER_MONTH,
        CostFrequency.MONTHLY: 1.0,
        CostFrequency.YEARLY: float(MONTHS_PER_YEAR),
    },
    CostFrequency.YEARLY: {
        CostFrequency.DAILY: 1 / DAYS_PER_YEAR,
        CostFrequency.WEEKLY: 1 / WEEKS_PER_YEAR,
        CostFrequency.MONTHLY: 1 / MONTHS_PER_YEAR,
        CostFrequency.YEARLY: 1.0,
    },
}


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass
class CostProfile:
    """A driver's vehicle/cost profile, detached from persistence."""

    profile: DriverProfile
    fuel_consumption: float
    avg_fuel_price: float
    avg_km_per_day: float
    work_days_per_week: int = 6
    car_value: Optional[float] = None
    financing_monthly_payment: Optional[float] = None

    def __post_init__(self):
        self.profile = DriverProfile(self.profile)
        if not self.fuel_consumption or self.fuel_consumption <= 0:
            raise ValidationError("fuel_consumption", "must be greater than zero")
        if not 1 <= int(self.work_days_per_week) <= 7:
            raise ValidationError("work_days_per_week", "must be between 1 and 7")
        if self.avg_fuel_price is None or self.avg_fuel_price < 0:
            raise ValidationError("avg_fuel_price", "must be non-negative")
        if self.avg_km_per_day is None or self.avg_km_per_day < 0:
            raise ValidationError("avg_km_per_day", "must be non-negative")


@dataclass
class FixedCostItem:
    type: FixedCostType
    amount: float
    frequency: CostFrequency
    is_active: bool = True

    def __post_init__(self):
        self.type = FixedCostType(self.type)
        self.frequency = CostFrequency(self.frequency)
        if self.amount is None or self.amount < 0:
            raise ValidationError("amount", "must be non-negative")


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass
class SuggestedGoal:
    daily_fuel_cost: float
    daily_maintenance_cost: float
    daily_depreciation_cost: float
    daily_fixed_costs: float
    total_daily_cost: float
    suggested_daily_goal: float
    suggested_weekly_goal: float
    daily_profit: float
    weekly_profit: float
    monthly_profit: float
    work_days_per_week: int
    avg_km_per_day: float
    profit_margin_pct: float


@dataclass
class TripEvaluation:
    earnings: float
    km: float
    fuel_cost: float
    depreciation_cost: float
    maintenance_cost: float
    total_cost: float
    profit: float
    profit_per_km: float
    recommendation: Recommendation
    message: str
    user_average_profit_per_km: Optional[float] = None

    @property
    def difference_from_average(self) -> Optional[float]:
        if self.user_average_profit_per_km is None:
            return None
        return round(self.profit_per_km - self.user_average_profit_per_km, 2)


@dataclass
class Breakeven:
    profile: DriverProfile
    week_start: date
    week_end: date
    weekly_fixed_costs: float
    weekly_variable_costs: float
    weekly_total_costs: float
    weekly_earnings: float
    weekly_profit: float
    remaining_to_breakeven: float
    days_left: int
    daily_target_to_breakeven: float
    message: str = ""


# ---------------------------------------------------------------------------
# Fixed-cost normalisation
# ---------------------------------------------------------------------------

def convert_amount(amount: float, source: CostFrequency, target: CostFrequency) -> float:
    """Convert a recurring amount between frequencies (unrounded)."""
    return amount * _CONVERSIONS[CostFrequency(source)][CostFrequency(target)]


def to_daily(item: FixedCostItem) -> float:
    return convert_amount(item.amount, item.frequency, CostFrequency.DAILY)


def to_weekly(item: FixedCostItem) -> float:
    return convert_amount(item.amount, item.frequency, CostFrequency.WEEKLY)


def to_monthly(item: FixedCostItem) -> float:
    return convert_amount(item.amount, item.frequency, CostFrequency.MONTHLY)


def sum_active(items: Iterable[FixedCostItem], target: CostFrequency) -> float:
    return sum(convert_amount(i.amount, i.frequency, target) for i in items if i.is_active)


# ---------------------------------------------------------------------------
# Per-profile costs
# ---------------------------------------------------------------------------

def fuel_cost_per_km(profile: CostProfile) -> float:
    """Average fuel price divided by km per litre."""
    return profile.avg_fuel_price / profile.fuel_consumption


def monthly_depreciation(car_value: Optional[float]) -> Optional[float]:
    """18% a year over 12 months, or None without a vehicle value."""
    if not car_value:
        return None
    return car_value * ANNUAL_DEPRECIATION_RATE / MONTHS_PER_YEAR


def weekly_depreciation(car_value: Optional[float]) -> Optional[float]:
    monthly = monthly_depreciation(car_value)
    if monthly is None:
        return None
    return monthly / WEEKS_PER_MONTH


def weekly_fixed_costs(profile: CostProfile, fixed_costs: Iterable[FixedCostItem]) -> float:
    """Active fixed costs + financing + depreciation, all per week."""
    total = sum_active(fixed_costs, CostFrequency.WEEKLY)
    if profile.financing_monthly_payment:
        total += profile.financing_monthly_payment / WEEKS_PER_MONTH
    if profile.profile in DEPRECIATING_PROFILES:
        total += weekly_depreciation(profile.car_value) or 0.0
    return total


# ---------------------------------------------------------------------------
# Suggested goal
# ---------------------------------------------------------------------------

def suggested_goal(profile: CostProfile, fixed_costs: Iterable[FixedCostItem]) -> SuggestedGoal:
    """Daily cost of operating the car plus a 25% margin, per worked day."""
    work_days = int(profile.work_days_per_week)
    work_days_per_month = work_days * WEEKS_PER_MONTH

    daily_fuel = profile.avg_km_per_day / profile.fuel_consumption * profile.avg_fuel_price
    daily_maintenance = DAILY_MAINTENANCE_ESTIMATE

    daily_depreciation = 0.0
    if profile.car_value:
        daily_depreciation = profile.car_value * ANNUAL_DEPRECIATION_RATE / (work_days * WEEKS_PER_YEAR)

    monthly_fixed = (
        (profile.financing_monthly_payment or 0.0)
        + sum_active(fixed_costs, CostFrequency.MONTHLY)
        + MONTHLY_INSURANCE_ESTIMATE
        + MONTHLY_TAX_ESTIMATE
    )
    daily_fixed = monthly_fixed / work_days_per_month

    total_daily = daily_fuel + daily_maintenance + daily_depreciation + daily_fixed
    raw_daily_goal = total_daily * (1 + PROFIT_MARGIN)
    daily_profit = raw_daily_goal - total_daily

    return SuggestedGoal(
        daily_fuel_cost=round(daily_fuel, 2),
        daily_maintenance_cost=round(daily_maintenance, 2),
        daily_depreciation_cost=round(daily_depreciation, 2),
        daily_fixed_costs=round(daily_fixed, 2),
        total_daily_cost=round(total_daily, 2),
        suggested_daily_goal=float(math.ceil(raw_daily_goal)),
        suggested_weekly_goal=float(math.ceil(raw_daily_goal * work_days)),
        daily_profit=round(daily_profit, 2),
        weekly_profit=round(daily_profit * work_days, 2),
        monthly_profit=round(daily_profit * work_days_per_month, 2),
        work_days_per_week=work_days,
        avg_km_per_day=profile.avg_km_per_day,
        profit_margin_pct=PROFIT_MARGIN * 100,
    )


# ---------------------------------------------------------------------------
# Trip evaluation
# ---------------------------------------------------------------------------

def average_profit_per_km(summaries: Iterable[tuple[float, float]]) -> Optional[float]:
    """Sum of profit over sum of km for (profit, km) pairs; None without data."""
    rows = list(summaries)
    if not rows:
        return None
    total_km = sum(km for _, km in rows)
    if total_km <= 0:
        return None
    return sum(profit for profit, _ in rows) / total_km


def classify_trip(
    profit: float,
    profit_per_km: float,
    user_average: Optional[float],
) -> tuple[Recommendation, str]:
    """Accept/reject/neutral: loss first, then the driver's own average, then fixed thresholds."""
    if profit <= 0:
        return Recommendation.REJECT, "⛔ *NÃO ACEITE!* Você vai ter prejuízo nessa corrida!"

    if user_average is not None and user_average > 0:
        avg = format_brl(user_average)
        if profit_per_km < user_average * BELOW_AVERAGE_FACTOR:
            return (
                Recommendation.REJECT,
                f"⚠️ *ABAIXO DA SUA MÉDIA!* Você costuma lucrar {avg}/km.",
            )
        if profit_per_km >= user_average:
            return (
                Recommendation.ACCEPT,
                f"✅ *ACIMA DA SUA MÉDIA!* Você lucra em média {avg}/km.",
            )
        return (
            Recommendation.NEUTRAL,
            f"🤔 *PERTO DA SUA MÉDIA.* Um pouco abaixo dos seus {avg}/km.",
        )

    if profit_per_km < REJECT_BELOW_PER_KM:
        return Recommendation.REJECT, "⛔ *LUCRO BAIXO!* Menos de R$ 1.50/km."
    if profit_per_km >= ACCEPT_FROM_PER_KM:
        return Recommendation.ACCEPT, "✅ *BOM LUCRO!* R$ 2.50/km ou mais."
    return Recommendation.NEUTRAL, "🤔 *RAZOÁVEL.* Entre R$ 1.50 e R$ 2.50/km."


def evaluate_trip(
    profile: CostProfile,
    earnings: float,
    km: float,
    user_average: Optional[float] = None,
) -> TripEvaluation:
    """Estimate the profit of a candidate trip and recommend accept/reject."""
    if earnings is None or earnings <= 0:
        raise ValidationError("earnings", "must be greater than zero")
    if km is None or km <= 0:
        raise ValidationError("km", "must be greater than zero")

    fuel_cost = km * fuel_cost_per_km(profile)
    depreciation_cost = 0.0
    if profile.car_value:
        depreciation_cost = km * profile.car_value * ANNUAL_DEPRECIATION_RATE / TRIP_DEPRECIATION_KM_PER_YEAR
    maintenance_cost = km * MAINTENANCE_PER_KM

    total_cost = fuel_cost + depreciation_cost + maintenance_cost
    profit = earnings - total_cost
    profit_per_km = profit / km

    recommendation, message = classify_trip(profit, profit_per_km, user_average)

    return TripEvaluation(
        earnings=round(earnings, 2),
        km=round(km, 2),
        fuel_cost=round(fuel_cost, 2),
        depreciation_cost=round(depreciation_cost, 2),
        maintenance_cost=round(maintenance_cost, 2),
        total_cost=round(total_cost, 2),
        profit=round(profit, 2),
        profit_per_km=round(profit_per_km, 2),
        recommendation=recommendation,
        message=message,
        user_average_profit_per_km=round(user_average, 2) if user_average is not None else None,
    )


# ---------------------------------------------------------------------------
# Breakeven
# ---------------------------------------------------------------------------

def week_bounds(reference: date, week_start_weekday: int = 0) -> tuple[date, date]:
    """First and last day of the week containing ``reference``."""
    offset = (reference.weekday() - week_start_weekday) % 7
    start = reference - timedelta(days=offset)
    return start, start + timedelta(days=6)


def breakeven(
    profile: CostProfile,
    fixed_costs: Iterable[FixedCostItem],
    reference: date,
    earnings_to_date: float,
    expenses_to_date: float,
    week_start_weekday: int = 0,
) -> Breakeven:
    """How much per remaining day is needed to close the week at zero profit."""
    start, end = week_bounds(reference, week_start_weekday)
    fixed = weekly_fixed_costs(profile, fixed_costs)

    total_costs = fixed + expenses_to_date
    profit = earnings_to_date - total_costs
    remaining = total_costs - earnings_to_date
    days_left = (end - reference).days
    daily_target = remaining / days_left if days_left > 0 else 0.0

    end_name = WEEKDAY_NAMES[end.weekday()]
    if remaining <= 0:
        message = f"🎉 Parabéns! Você já fechou a semana no positivo com {format_brl(abs(profit))}!"
    elif days_left == 0:
        outcome = "lucro" if profit >= 0 else "prejuízo"
        message = f"Hoje é {end_name}! Você fechou a semana com {outcome} de {format_brl(abs(profit))}."
    else:
        message = (
            f"Para fechar a semana no zero a zero, você precisa rodar "
            f"{format_brl(daily_target)} por dia daqui até {end_name} ({days_left} dias)."
        )

    return Breakeven(
        profile=profile.profile,
        week_start=start,
        week_end=end,
        weekly_fixed_costs=round(fixed, 2),
        weekly_variable_costs=round(expenses_to_date, 2),
        weekly_total_costs=round(total_costs, 2),
        weekly_earnings=round(earnings_to_date, 2),
        weekly_profit=round(profit, 2),
        remaining_to_breakeven=round(max(0.0, remaining), 2),
        days_left=days_left,
        daily_target_to_breakeven=round(max(0.0, daily_target), 2),
        message=message,
    )


def fuel_spend_delta(actual_fuel_spend: float, km: float, expected_per_km: float) -> float:
    """Money saved (negative) or overspent (positive) on fuel versus the profile rate."""
    if km <= 0 or actual_fuel_spend <= 0:
        return 0.0
    return (actual_fuel_spend / km - expected_per_km) * km
