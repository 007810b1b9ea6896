"""Domain enumerations for the KIMO driver assistant.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class DriverProfile(str, Enum):
    """Vehicle-ownership category; decides which cost formulas apply."""

    OWN_PAID = "own_paid"
    OWN_FINANCED = "own_financed"
    RENTED = "rented"
    HYBRID = "hybrid"


OWNED_PROFILES = frozenset({DriverProfile.OWN_PAID, DriverProfile.OWN_FINANCED})
DEPRECIATING_PROFILES = frozenset(
    {DriverProfile.OWN_PAID, DriverProfile.OWN_FINANCED, DriverProfile.HYBRID}
)


class FixedCostType(str, Enum):
    """Kinds of recurring costs a driver carries."""

    RENTAL = "rental"
    FINANCING = "financing"
    INSURANCE = "insurance"
    TRACKER = "tracker"
    IPVA = "ipva"
    PHONE_PLAN = "phone_plan"
    WASH = "wash"
    OTHER = "other"


class CostFrequency(str, Enum):
    """How often a fixed cost recurs."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ExpenseType(str, Enum):
    """Category of a one-off expense."""

    FUEL = "fuel"
    MAINTENANCE_PREVENTIVE = "maintenance_preventive"
    MAINTENANCE_CORRECTIVE = "maintenance_corrective"
    TIRES = "tires"
    CLEANING = "cleaning"
    TOLL = "toll"
    PARKING = "parking"
    PLATFORM_FEE = "platform_fee"
    OTHER = "other"


class PendingTripStatus(str, Enum):
    """Lifecycle of an evaluated-but-unconfirmed trip."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


OPEN_PENDING_STATUSES = (PendingTripStatus.PENDING.value, PendingTripStatus.IN_PROGRESS.value)


class Recommendation(str, Enum):
    """Trip evaluation outcome."""

    ACCEPT = "accept"
    REJECT = "reject"
    NEUTRAL = "neutral"


class ConversationState(str, Enum):
    """Flat conversation states. IDLE is both initial and resting state."""

    IDLE = "idle"

    ONBOARDING_PROFILE = "onboarding_profile"
    ONBOARDING_RENTAL = "onboarding_rental"
    ONBOARDING_CAR_VALUE = "onboarding_car_value"
    ONBOARDING_FINANCING_BALANCE = "onboarding_financing_balance"
    ONBOARDING_FINANCING_PAYMENT = "onboarding_financing_payment"
    ONBOARDING_FINANCING_MONTHS = "onboarding_financing_months"
    ONBOARDING_FUEL_CONSUMPTION = "onboarding_fuel_consumption"
    ONBOARDING_FUEL_PRICE = "onboarding_fuel_price"
    ONBOARDING_AVG_KM = "onboarding_avg_km"

    REGISTER_EARNINGS = "register_earnings"
    REGISTER_KM = "register_km"
    REGISTER_FUEL = "register_fuel"
    REGISTER_OTHER_EXPENSES = "register_other_expenses"
    REGISTER_CONFIRM = "register_confirm"


class ExtractionIntent(str, Enum):
    """Intent returned by the NLP extraction collaborator."""

    TRIP = "trip"
    EXPENSE = "expense"
    SUMMARY = "summary"
    UNKNOWN = "unknown"
