"""Command Router - DETERMINISTIC only, no LLM calls.

Recognises the fast-path shorthands a driver can type from any state,
plus the small vocabularies used by the state machine (reset triggers,
yes/no answers, idle menu aliases, chart names).
"""

import re
from typing import Optional

from kimo.domain.enums import ExpenseType

from .contracts import ChartKind, CommandKind, FastPathCommand, MenuOption

_NUM = r"(\d+(?:[.,]\d+)?)"

# "45 12" / "45 12 5"  ->  earnings, km[, fuel]
QUICK_TRIP_PATTERN = re.compile(rf"^{_NUM}\s+{_NUM}(?:\s+{_NUM})?$")

# "vale 45 12" / "v 45 12"
EVALUATE_PATTERN = re.compile(rf"^(?:vale|v)\s+{_NUM}\s+{_NUM}$", re.IGNORECASE)

# "g80", "m150 reparo freio"
QUICK_EXPENSE_PATTERN = re.compile(rf"^([gmpel]){_NUM}(?:\s+(.+))?$", re.IGNORECASE)

# "meta 1500" / "definir meta 1500"
GOAL_PATTERN = re.compile(rf"^(?:definir\s+meta|meta)\s+{_NUM}$", re.IGNORECASE)

# "preco 5.89" / "preço 5,89"
FUEL_PRICE_PATTERN = re.compile(rf"^pre[cç]o\s+{_NUM}$", re.IGNORECASE)

# "ok" / "ok g30"
PENDING_OK_PATTERN = re.compile(rf"^ok(?:\s+g\s*{_NUM})?$", re.IGNORECASE)

EXPENSE_CODES: dict[str, tuple[ExpenseType, str]] = {
    "g": (ExpenseType.FUEL, "Combustível"),
    "m": (ExpenseType.MAINTENANCE_CORRECTIVE, "Manutenção"),
    "p": (ExpenseType.TOLL, "Pedágio"),
    "e": (ExpenseType.PARKING, "Estacionamento"),
    "l": (ExpenseType.CLEANING, "Lavagem"),
}

REPORT_WORDS: dict[str, CommandKind] = {
    "r": CommandKind.REPORT_SUMMARY,
    "resumo": CommandKind.REPORT_SUMMARY,
    "m": CommandKind.REPORT_WEEKLY,
    "meta": CommandKind.REPORT_WEEKLY,
    "ontem": CommandKind.REPORT_YESTERDAY,
    "semana": CommandKind.REPORT_LAST_WEEK,
    "semana passada": CommandKind.REPORT_LAST_WEEK,
}

SIMPLE_WORDS: dict[str, CommandKind] = {
    "cancelar": CommandKind.CANCEL,
    "descanso": CommandKind.REST,
    "pausar": CommandKind.REST,
    "voltei": CommandKind.RESUME,
    "ativar": CommandKind.RESUME,
}

RESET_TRIGGERS = {"oi", "olá", "ola", "menu", "recomeçar", "recomecar", "sair"}

AFFIRMATIVE = {"sim", "s", "1", "yes"}
NEGATIVE = {"não", "nao", "n", "2", "no"}

MENU_ALIASES: dict[str, MenuOption] = {
    "registrar": MenuOption.REGISTER_TRIP,
    "registrar corrida": MenuOption.REGISTER_TRIP,
    "registrar dia": MenuOption.REGISTER_TRIP,
    "corrida": MenuOption.REGISTER_TRIP,
    "1": MenuOption.REGISTER_TRIP,
    "c": MenuOption.REGISTER_TRIP,
    "despesa": MenuOption.REGISTER_EXPENSE,
    "registrar despesa": MenuOption.REGISTER_EXPENSE,
    "2": MenuOption.REGISTER_EXPENSE,
    "d": MenuOption.REGISTER_EXPENSE,
    "resumo": MenuOption.SUMMARY,
    "3": MenuOption.SUMMARY,
    "r": MenuOption.SUMMARY,
    "meta": MenuOption.WEEKLY,
    "4": MenuOption.WEEKLY,
    "m": MenuOption.WEEKLY,
    "insights": MenuOption.INSIGHTS,
    "5": MenuOption.INSIGHTS,
    "i": MenuOption.INSIGHTS,
    "grafico": MenuOption.CHARTS,
    "gráfico": MenuOption.CHARTS,
    "graficos": MenuOption.CHARTS,
    "gráficos": MenuOption.CHARTS,
    "6": MenuOption.CHARTS,
}

CHART_PATTERN = re.compile(r"^gr[aá]ficos?\s+(semana|lucro|despesas|meta)$")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize(text: str) -> str:
    """Lowercase, trim and collapse inner whitespace."""
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def _to_float(token: Optional[str]) -> float | None:
    if token is None:
        return None
    try:
        return float(token.replace(",", "."))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Fast paths
# ---------------------------------------------------------------------------

def route(text: str) -> FastPathCommand | None:
    """Classify ``text`` as a fast-path command, or None to fall through.

    Checked in priority order; the first match wins.
    """
    raw = re.sub(r"\s+", " ", (text or "").strip())
    normalized = raw.lower()
    if not normalized:
        return None

    match = QUICK_TRIP_PATTERN.match(normalized)
    if match:
        return FastPathCommand(
            kind=CommandKind.QUICK_TRIP,
            earnings=_to_float(match.group(1)),
            km=_to_float(match.group(2)),
            fuel=_to_float(match.group(3)),
            raw_text=raw,
        )

    match = EVALUATE_PATTERN.match(normalized)
    if match:
        return FastPathCommand(
            kind=CommandKind.EVALUATE_TRIP,
            earnings=_to_float(match.group(1)),
            km=_to_float(match.group(2)),
            raw_text=raw,
        )

    match = QUICK_EXPENSE_PATTERN.match(raw)
    if match:
        code = match.group(1).lower()
        expense_type, label = EXPENSE_CODES[code]
        note = match.group(3).strip() if match.group(3) else None
        return FastPathCommand(
            kind=CommandKind.QUICK_EXPENSE,
            amount=_to_float(match.group(2)),
            expense_code=code,
            expense_type=expense_type,
            expense_label=label,
            note=note or None,
            raw_text=raw,
        )

    if normalized in REPORT_WORDS:
        return FastPathCommand(kind=REPORT_WORDS[normalized], raw_text=raw)

    match = GOAL_PATTERN.match(normalized)
    if match:
        return FastPathCommand(kind=CommandKind.SET_GOAL, value=_to_float(match.group(1)), raw_text=raw)

    match = FUEL_PRICE_PATTERN.match(normalized)
    if match:
        return FastPathCommand(
            kind=CommandKind.UPDATE_FUEL_PRICE, value=_to_float(match.group(1)), raw_text=raw
        )

    match = PENDING_OK_PATTERN.match(normalized)
    if match:
        return FastPathCommand(kind=CommandKind.PENDING_OK, fuel=_to_float(match.group(1)), raw_text=raw)

    if normalized in SIMPLE_WORDS:
        return FastPathCommand(kind=SIMPLE_WORDS[normalized], raw_text=raw)

    return None


# ---------------------------------------------------------------------------
# State-machine vocabularies
# ---------------------------------------------------------------------------

def is_reset_trigger(text: str) -> bool:
    return normalize(text) in RESET_TRIGGERS


def is_opt_in(text: str, triggers: list[str]) -> bool:
    """True when the message opens with one of the onboarding phrases."""
    normalized = re.sub(r"[!?.,]+$", "", normalize(text))
    return any(normalized == t or normalized.startswith(t + " ") for t in triggers)


def is_affirmative(text: str) -> bool:
    normalized = normalize(text)
    return normalized in AFFIRMATIVE or normalized.startswith("sim")


def is_negative(text: str) -> bool:
    normalized = normalize(text)
    return normalized in NEGATIVE or normalized.startswith(("não", "nao"))


def match_menu_option(text: str) -> MenuOption | None:
    return MENU_ALIASES.get(normalize(text))


def match_chart(text: str) -> ChartKind | None:
    match = CHART_PATTERN.match(normalize(text))
    if not match:
        return None
    return ChartKind(match.group(1))
