"""Money, distance and time helpers shared by the engine and the conversation."""

import re
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from kimo.domain.errors import ValidationError

_NUMBER_CHARS = re.compile(r"[^\d.,]")


def money(value: float, field: str = "amount") -> float:
    """Validate and round a monetary amount to 2 decimals."""
    if value is None or value < 0:
        raise ValidationError(field, "must be a non-negative amount")
    return round(float(value), 2)


def distance(value: float, field: str = "km") -> float:
    """Validate and round a distance (km) to 2 decimals."""
    if value is None or value < 0:
        raise ValidationError(field, "must be a non-negative distance")
    return round(float(value), 2)


def parse_number(text: str) -> float | None:
    """Parse a user-typed number, accepting ``.`` or ``,`` as decimal separator.

    "45", "45,50", "R$ 45.5", "1.500,00" and "50.000" all parse. Returns None
    when nothing numeric is left after stripping.
    """
    cleaned = _NUMBER_CHARS.sub("", text or "")
    if not cleaned:
        return None

    if "," in cleaned and "." in cleaned:
        # pt-BR thousands separator with decimal comma
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".", 1).replace(",", "")
    elif cleaned.count(".") > 1 or re.fullmatch(r"\d{1,3}\.\d{3}", cleaned):
        cleaned = cleaned.replace(".", "")

    try:
        return float(cleaned)
    except ValueError:
        return None


def format_brl(value: float | None) -> str:
    """Render an amount as ``R$ 12.34``."""
    return f"R$ {(value or 0.0):.2f}"


def format_km(value: float | None) -> str:
    """Render a distance without trailing zeros: 12 -> "12", 12.5 -> "12.5"."""
    value = value or 0.0
    return f"{value:.2f}".rstrip("0").rstrip(".")


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_now(tz_name: str) -> datetime:
    """Current time in the configured business timezone."""
    return datetime.now(ZoneInfo(tz_name))


def local_today(tz_name: str) -> date:
    """Current calendar date in the configured business timezone."""
    return local_now(tz_name).date()
