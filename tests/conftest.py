"""Shared test infrastructure for the KIMO test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- settings: Settings isolated from the environment (no API keys, no delays)
- messaging_mock: mock MessagingService capturing outbound messages
- store: fresh in-memory conversation session store
- make_user / make_config: factories for User and DriverConfig rows
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import Base first, then models to register all tables
from kimo.infra.database import Base

import kimo.domain.models  # noqa: F401

from kimo.app.config import Settings
from kimo.domain.enums import DriverProfile
from kimo.domain.models import DriverConfig, User
from kimo.services.session_store import InMemorySessionStore


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    """Settings that ignore .env and the process environment's API keys."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        evolution_api_url="",
        evolution_api_key="",
        evolution_instance_name="",
        groq_api_key="",
        gemini_api_key="",
        onboarding_requires_opt_in=True,
        scheduler_enabled=False,
        dispatch_delay_seconds=0,
        webhook_token="",
    )


# ---------------------------------------------------------------------------
# Messaging mock
# ---------------------------------------------------------------------------

@pytest.fixture
def messaging_mock():
    """Mock MessagingService that captures outbound messages.

    send_text appends (to, message) tuples to .sent; send_image appends
    (to, url, caption) to .images. Buttons are reported as unsupported so
    the numbered-text fallback is exercised.
    """
    mock = MagicMock()
    mock.sent = []
    mock.images = []

    async def _capture_text(to: str, message: str):
        mock.sent.append((to, message))
        return {"ok": True}

    async def _capture_image(to: str, url: str, caption: str = ""):
        mock.images.append((to, url, caption))
        return {"ok": True}

    mock.send_text = AsyncMock(side_effect=_capture_text)
    mock.send_image = AsyncMock(side_effect=_capture_image)
    mock.send_buttons = AsyncMock(return_value={"ok": False, "error": "buttons_unsupported"})
    return mock


@pytest.fixture
def store():
    return InMemorySessionStore()


# ---------------------------------------------------------------------------
# User / config factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db_session):
    """Factory that creates a User row.

    Usage:
        user = await make_user(phone="5511999990000", weekly_goal=1500)
    """
    async def _factory(
        phone: str = "5511999990000",
        name: str = "Test Driver",
        weekly_goal: float | None = 1500.0,
        is_active: bool = True,
    ) -> User:
        user = User(
            id=str(uuid.uuid4()),
            phone=phone,
            name=name,
            weekly_goal=weekly_goal,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _factory


@pytest.fixture
def make_config(db_session):
    """Factory that creates a DriverConfig row for an existing user.

    Defaults describe a paid-off R$ 50.000 car doing 12 km/l at R$ 5.50.
    """
    async def _factory(
        user: User,
        profile: DriverProfile = DriverProfile.OWN_PAID,
        car_value: float | None = 50000.0,
        fuel_consumption: float = 12.0,
        avg_fuel_price: float = 5.50,
        avg_km_per_day: float = 150.0,
        work_days_per_week: int = 6,
        financing_monthly_payment: float | None = None,
    ) -> DriverConfig:
        config = DriverConfig(
            id=str(uuid.uuid4()),
            user_id=user.id,
            profile=profile.value,
            car_value=car_value,
            fuel_consumption=fuel_consumption,
            avg_fuel_price=avg_fuel_price,
            avg_km_per_day=avg_km_per_day,
            work_days_per_week=work_days_per_week,
            financing_monthly_payment=financing_monthly_payment,
        )
        db_session.add(config)
        await db_session.commit()
        return config

    return _factory
