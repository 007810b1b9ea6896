"""Notification Service — proactive WhatsApp messages run by the scheduler.

Each job scans its candidates, skips resting users (``is_active`` False),
builds the text from the same finance use cases the chat uses, sends one
message per candidate with a fixed delay in between, and returns how many
messages went out. A failure on one candidate is logged and the batch
moves on.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from kimo.agents.whatsapp import templates
from kimo.app.config import Settings, get_settings
from kimo.domain.errors import MissingConfigurationError
from kimo.domain.models import User
from kimo.domain.values import utcnow
from kimo.services.finance_service import FinanceService

logger = logging.getLogger(__name__)

CLOSED_PENDING_RETENTION_DAYS = 7


class NotificationService:
    """Bodies of the four scheduled jobs."""

    def __init__(
        self,
        db: AsyncSession,
        messaging,
        delay_seconds: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.messaging = messaging
        self.delay_seconds = self.settings.dispatch_delay_seconds if delay_seconds is None else delay_seconds
        self.finance = FinanceService(db, self.settings)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def send_daily_greetings(self) -> int:
        """Morning message with yesterday's summary, when there is one."""
        yesterday = self.finance.today() - timedelta(days=1)

        async def build(user: User) -> Optional[str]:
            summary = await self.finance.summaries.find_by_user_and_date(user.id, yesterday)
            return templates.good_morning(summary)

        return await self._broadcast("daily_greeting", build)

    async def send_weekly_summaries(self) -> int:
        """Trailing-week profit against the weekly goal."""

        async def build(user: User) -> Optional[str]:
            try:
                progress = await self.finance.get_weekly_progress(user.id)
            except MissingConfigurationError:
                logger.info("weekly_summary: user %s has no driver config, skipping", user.id)
                return None
            return templates.weekly_summary(progress)

        return await self._broadcast("weekly_summary", build)

    async def send_registration_reminders(self) -> int:
        """Nudge users who have not registered any earnings today."""
        today = self.finance.today()

        async def build(user: User) -> Optional[str]:
            earnings = await self.finance.trips.total_earnings_by_user_and_date(user.id, today)
            if earnings > 0:
                return None
            return templates.REGISTRATION_REMINDER

        return await self._broadcast("registration_reminder", build)

    async def send_pending_trip_reminders(self) -> int:
        """Ask about evaluated trips whose estimated duration has passed.

        A trip is reminded at most once; the marker is written only after
        the gateway accepted the message. Long trips are reminded
        like any other; only closed trips are ever purged.
        """
        now = utcnow()
        sent = 0
        candidates = [p.id for p in await self.finance.pending_trips.find_pending_for_reminders(now)]
        logger.info("pending_trip_reminder: %d candidates", len(candidates))

        for pending_id in candidates:
            try:
                # Re-read by id; a rollback on a previous candidate expires loaded rows
                pending = await self.finance.pending_trips.find_by_id(pending_id)
                user = await self.finance.users.find_by_id(pending.user_id) if pending else None
                if user is None:
                    continue
                if not user.is_active:
                    logger.info("pending_trip_reminder: user %s is resting, skipping", user.id)
                    continue
                message = templates.pending_reminder(
                    int(pending.elapsed_minutes(now)), pending.earnings, pending.km
                )
                if await self._deliver(user.phone, message, "pending_trip_reminder"):
                    pending.mark_reminder_sent(now)
                    await self.finance.pending_trips.update(pending)
                    sent += 1
            except Exception as e:
                logger.error("pending_trip_reminder failed for trip %s: %s", pending_id, e)

        try:
            purged = await self.finance.pending_trips.delete_old_closed(
                now - timedelta(days=CLOSED_PENDING_RETENTION_DAYS)
            )
            if purged:
                logger.info("pending_trip_reminder: purged %d closed trips", purged)
        except Exception as e:
            logger.error("pending_trip_reminder cleanup failed: %s", e)

        logger.info("pending_trip_reminder: %d sent", sent)
        return sent

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _broadcast(self, job: str, build) -> int:
        user_ids = [u.id for u in await self.finance.users.find_all()]
        sent = 0
        for user_id in user_ids:
            try:
                user = await self.finance.users.find_by_id(user_id)
                if not user.is_active:
                    logger.info("%s: user %s is resting, skipping", job, user_id)
                    continue
                message = await build(user)
                if message is None:
                    continue
                if await self._deliver(user.phone, message, job):
                    sent += 1
            except Exception as e:
                logger.error("%s failed for user %s: %s", job, user_id, e)

        logger.info("%s: %d sent to %d users", job, sent, len(user_ids))
        return sent

    async def _deliver(self, phone: str, message: str, job: str) -> bool:
        result = await self.messaging.send_text(phone, message)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if not result.get("ok"):
            logger.warning("%s: delivery to %s failed: %s", job, phone, result.get("error"))
            return False
        return True
