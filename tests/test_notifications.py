"""Tests for NotificationService: the four scheduled jobs.

Covers the resting-user gate, per-candidate error isolation, throttling
between sends and the pending-trip reminder bookkeeping.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from kimo.agents.whatsapp import templates
from kimo.domain.enums import PendingTripStatus
from kimo.domain.models import PendingTrip
from kimo.domain.values import utcnow
from kimo.services.finance_service import FinanceService
from kimo.services.notification_service import NotificationService


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def notifier(db_session, messaging_mock, settings):
    return NotificationService(db_session, messaging_mock, delay_seconds=0, settings=settings)


async def _make_pending(db, user_id, minutes_ago=40, eta=36, status=PendingTripStatus.PENDING) -> PendingTrip:
    pending = PendingTrip(
        id=str(uuid.uuid4()),
        user_id=user_id,
        earnings=45.0,
        km=12.0,
        estimated_duration_minutes=eta,
        status=status.value,
        evaluated_at=utcnow() - timedelta(minutes=minutes_ago),
    )
    db.add(pending)
    await db.commit()
    return pending


def _recipients(messaging_mock) -> list[str]:
    return [to for to, _ in messaging_mock.sent]


# ---------------------------------------------------------------------------
# Broadcast jobs
# ---------------------------------------------------------------------------

class TestDailyGreeting:

    async def test_includes_yesterday_summary(self, notifier, messaging_mock, db_session, settings, make_user):
        user = await make_user()
        finance = FinanceService(db_session, settings)
        await finance.register_trip(user.id, 250.0, 120.0, day=finance.today() - timedelta(days=1))

        sent = await notifier.send_daily_greetings()

        assert sent == 1
        assert "Resumo de ontem" in messaging_mock.sent[0][1]
        assert "R$ 250.00" in messaging_mock.sent[0][1]

    async def test_without_history(self, notifier, messaging_mock, make_user):
        await make_user()
        await notifier.send_daily_greetings()
        assert messaging_mock.sent[0][1] == templates.good_morning(None)

    async def test_resting_users_are_skipped(self, notifier, messaging_mock, make_user):
        await make_user(phone="5511900000001")
        await make_user(phone="5511900000002", is_active=False)

        sent = await notifier.send_daily_greetings()

        assert sent == 1
        assert _recipients(messaging_mock) == ["5511900000001"]

    async def test_one_failure_does_not_stop_the_batch(self, notifier, messaging_mock, make_user):
        await make_user(phone="5511900000001")
        await make_user(phone="5511900000002")
        await make_user(phone="5511900000003")
        delivered = []

        async def _flaky(to, message):
            if to == "5511900000002":
                raise RuntimeError("gateway exploded")
            delivered.append(to)
            return {"ok": True}

        messaging_mock.send_text = AsyncMock(side_effect=_flaky)

        sent = await notifier.send_daily_greetings()

        assert sent == 2
        assert sorted(delivered) == ["5511900000001", "5511900000003"]

    async def test_undelivered_messages_are_not_counted(self, notifier, messaging_mock, make_user):
        await make_user()
        messaging_mock.send_text = AsyncMock(return_value={"ok": False, "error": "http_500"})

        assert await notifier.send_daily_greetings() == 0

    async def test_throttles_between_sends(self, db_session, messaging_mock, settings, make_user):
        await make_user(phone="5511900000001")
        await make_user(phone="5511900000002")
        notifier = NotificationService(db_session, messaging_mock, delay_seconds=1.5, settings=settings)

        with patch("kimo.services.notification_service.asyncio.sleep", new=AsyncMock()) as sleep:
            await notifier.send_daily_greetings()

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.5)


class TestWeeklySummary:

    async def test_progress_against_goal(self, notifier, messaging_mock, db_session, settings, make_user, make_config):
        user = await make_user(weekly_goal=1000.0)
        await make_config(user)
        finance = FinanceService(db_session, settings)
        await finance.register_trip(user.id, 900.0, 200.0)

        sent = await notifier.send_weekly_summaries()

        assert sent == 1
        text = messaging_mock.sent[0][1]
        assert "RESUMO DA SEMANA" in text
        assert "Quase lá" in text
        assert "Dias trabalhados: 1/7" in text

    async def test_users_without_config_are_skipped(self, notifier, messaging_mock, make_user):
        await make_user()
        assert await notifier.send_weekly_summaries() == 0
        assert messaging_mock.sent == []


class TestRegistrationReminder:

    async def test_only_users_without_earnings_today(self, notifier, messaging_mock, db_session, settings, make_user):
        idle = await make_user(phone="5511900000001")
        busy = await make_user(phone="5511900000002")
        finance = FinanceService(db_session, settings)
        await finance.register_trip(busy.id, 45.0, 12.0)

        sent = await notifier.send_registration_reminders()

        assert sent == 1
        assert messaging_mock.sent == [(idle.phone, templates.REGISTRATION_REMINDER)]


# ---------------------------------------------------------------------------
# Pending-trip reminders
# ---------------------------------------------------------------------------

class TestPendingTripReminders:

    async def test_due_trip_is_reminded_once(self, notifier, messaging_mock, db_session, make_user):
        user = await make_user()
        pending = await _make_pending(db_session, user.id)

        assert await notifier.send_pending_trip_reminders() == 1
        assert "Lembrete" in messaging_mock.sent[0][1]
        assert pending.reminder_sent_at is not None

        assert await notifier.send_pending_trip_reminders() == 0
        assert len(messaging_mock.sent) == 1

    async def test_not_yet_due(self, notifier, messaging_mock, db_session, make_user):
        user = await make_user()
        await _make_pending(db_session, user.id, minutes_ago=10)

        assert await notifier.send_pending_trip_reminders() == 0
        assert messaging_mock.sent == []

    async def test_resting_user_is_not_reminded(self, notifier, messaging_mock, db_session, make_user):
        user = await make_user(is_active=False)
        pending = await _make_pending(db_session, user.id)

        assert await notifier.send_pending_trip_reminders() == 0
        assert pending.reminder_sent_at is None

    async def test_failed_delivery_is_retried(self, notifier, messaging_mock, db_session, make_user):
        user = await make_user()
        pending = await _make_pending(db_session, user.id)
        messaging_mock.send_text = AsyncMock(return_value={"ok": False, "error": "timeout"})

        assert await notifier.send_pending_trip_reminders() == 0
        assert pending.reminder_sent_at is None

        messaging_mock.send_text = AsyncMock(return_value={"ok": True})
        assert await notifier.send_pending_trip_reminders() == 1

    async def test_long_trip_is_reminded_not_cancelled(self, notifier, messaging_mock, db_session, make_user):
        user = await make_user()
        # 50 km -> 150 min estimate
        pending = await _make_pending(db_session, user.id, minutes_ago=155, eta=PendingTrip.estimate_duration(50))

        assert await notifier.send_pending_trip_reminders() == 1
        assert pending.reminder_sent_at is not None
        assert pending.status == PendingTripStatus.PENDING.value
        assert len(messaging_mock.sent) == 1

    async def test_old_closed_trips_are_purged(self, notifier, db_session, make_user):
        user = await make_user()
        await _make_pending(db_session, user.id, minutes_ago=60 * 24 * 8, status=PendingTripStatus.COMPLETED)

        await notifier.send_pending_trip_reminders()

        result = await db_session.execute(select(PendingTrip))
        assert result.scalars().all() == []
