"""Typed dataclasses for the WhatsApp agents' I/O contracts."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kimo.domain.enums import ExpenseType, ExtractionIntent


class CommandKind(str, Enum):
    """Fast-path shorthands, in matching priority order."""

    QUICK_TRIP = "quick_trip"
    EVALUATE_TRIP = "evaluate_trip"
    QUICK_EXPENSE = "quick_expense"
    REPORT_SUMMARY = "report_summary"
    REPORT_WEEKLY = "report_weekly"
    REPORT_YESTERDAY = "report_yesterday"
    REPORT_LAST_WEEK = "report_last_week"
    SET_GOAL = "set_goal"
    UPDATE_FUEL_PRICE = "update_fuel_price"
    PENDING_OK = "pending_ok"
    CANCEL = "cancel"
    REST = "rest"
    RESUME = "resume"


class MenuOption(str, Enum):
    """Idle-state menu entries (keyword or number)."""

    REGISTER_TRIP = "register_trip"
    REGISTER_EXPENSE = "register_expense"
    SUMMARY = "summary"
    WEEKLY = "weekly"
    INSIGHTS = "insights"
    CHARTS = "charts"


class ChartKind(str, Enum):
    WEEKLY = "semana"
    PROFIT = "lucro"
    EXPENSES = "despesas"
    GOAL = "meta"


@dataclass
class FastPathCommand:
    """Output of the deterministic command router.

    Numeric fields are None when the token did not parse; range checks
    are left to the handler so it can answer with a specific message.
    """
    kind: CommandKind
    earnings: float | None = None
    km: float | None = None
    fuel: float | None = None
    amount: float | None = None
    expense_code: str | None = None
    expense_type: ExpenseType | None = None
    expense_label: str | None = None
    note: str | None = None
    value: float | None = None
    raw_text: str = ""


@dataclass
class ExtractedData:
    """Output of the LLM extraction agent."""
    intent: ExtractionIntent = ExtractionIntent.UNKNOWN
    earnings: Optional[float] = None
    km: Optional[float] = None
    expense_amount: Optional[float] = None
    expense_type: Optional[ExpenseType] = None
    confidence: float = 0.0
    raw_text: str = ""
