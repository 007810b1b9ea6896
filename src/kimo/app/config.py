"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from the project root regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./kimo.db"

    # WhatsApp gateway (Evolution API)
    evolution_api_url: str = ""
    evolution_api_key: str = ""
    evolution_instance_name: str = ""
    messaging_timeout_seconds: float = 10.0
    messaging_country_code: str = "55"

    # Speech-to-text (Groq Whisper)
    groq_api_key: str = ""
    transcription_model: str = "whisper-large-v3"
    transcription_timeout_seconds: float = 30.0

    # NLP extraction (Gemini)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    nlp_timeout_seconds: float = 15.0
    nlp_confidence_threshold: float = 0.6

    # Charts
    quickchart_base_url: str = "https://quickchart.io/chart"

    # Conversation
    onboarding_requires_opt_in: bool = True
    onboarding_triggers: str = "oi,olá,ola,oie,começar,comecar,iniciar,cadastrar,bom dia,boa tarde,boa noite"
    default_work_days_per_week: int = 6

    # Finance
    week_start_weekday: int = 0  # 0 = Monday (ISO week)

    # Scheduler
    scheduler_enabled: bool = True
    timezone: str = "America/Sao_Paulo"
    daily_greeting_hour: int = 8
    weekly_summary_weekday: int = 6  # Sunday
    weekly_summary_hour: int = 20
    registration_reminder_hours: str = "10,13,16,19"
    pending_trip_interval_minutes: int = 10
    dispatch_delay_seconds: float = 1.0

    # Transport / internal endpoints
    webhook_token: str = ""
    internal_token: str = "kimo-internal"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def onboarding_trigger_list(self) -> list[str]:
        """Parse comma-separated onboarding opt-in phrases into a list."""
        return [t.strip().lower() for t in self.onboarding_triggers.split(",") if t.strip()]

    @property
    def registration_reminder_hour_list(self) -> list[int]:
        """Parse comma-separated reminder hours into a sorted list."""
        return sorted(int(h) for h in self.registration_reminder_hours.split(",") if h.strip())


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
