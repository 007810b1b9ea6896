"""Periodic job runner for the notification dispatcher.

A ``ScheduledJob`` couples a name, a cadence and an async ``run_once``.
``PeriodicRunner`` gives every job its own asyncio task that sleeps until
the cadence's next due time (in the business timezone), runs the job
inside a recovery boundary and loops. Cadence values come from settings;
job bodies live in ``NotificationService``.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from functools import lru_cache
from typing import Awaitable, Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from kimo.app.config import Settings, get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cadences
# ---------------------------------------------------------------------------

class EveryMinutes:
    """Every ``n`` minutes, aligned to wall-clock multiples of ``n`` since midnight."""

    def __init__(self, minutes: int):
        if minutes <= 0:
            raise ValueError("minutes must be positive")
        self.minutes = minutes

    def next_after(self, now: datetime) -> datetime:
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        elapsed = int((now.replace(tzinfo=None) - midnight.replace(tzinfo=None)).total_seconds() // 60)
        slot = (elapsed // self.minutes + 1) * self.minutes
        return midnight + timedelta(minutes=slot)

    def describe(self) -> str:
        return f"every {self.minutes} min"


class AtHours:
    """At the top of each listed hour, optionally only on some weekdays (0 = Monday)."""

    def __init__(self, hours: Iterable[int], weekdays: Optional[Iterable[int]] = None):
        self.hours = sorted(set(hours))
        self.weekdays = sorted(set(weekdays)) if weekdays is not None else None
        if not self.hours or any(not 0 <= h <= 23 for h in self.hours):
            raise ValueError("hours must be within 0-23")
        if self.weekdays is not None and (not self.weekdays or any(not 0 <= d <= 6 for d in self.weekdays)):
            raise ValueError("weekdays must be within 0-6")

    def next_after(self, now: datetime) -> datetime:
        for offset in range(8):
            day = now.date() + timedelta(days=offset)
            if self.weekdays is not None and day.weekday() not in self.weekdays:
                continue
            for hour in self.hours:
                candidate = datetime.combine(day, time(hour=hour), tzinfo=now.tzinfo)
                if candidate > now:
                    return candidate
        raise RuntimeError("no due time within a week")

    def describe(self) -> str:
        hours = ", ".join(f"{h:02d}:00" for h in self.hours)
        if self.weekdays is None:
            return f"daily at {hours}"
        return f"weekdays {self.weekdays} at {hours}"


@dataclass
class ScheduledJob:
    name: str
    cadence: EveryMinutes | AtHours
    run_once: Callable[[], Awaitable[int]]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class PeriodicRunner:

    def __init__(self, jobs: Iterable[ScheduledJob], timezone: str = "America/Sao_Paulo"):
        self.jobs: dict[str, ScheduledJob] = {job.name: job for job in jobs}
        self.tz = ZoneInfo(timezone)
        self._tasks: dict[str, asyncio.Task] = {}
        self._next_run: dict[str, datetime] = {}
        self._running: set[str] = set()

    def now(self) -> datetime:
        return datetime.now(self.tz)

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Spawn one loop task per job. Must be called from a running event loop."""
        if self._tasks:
            return
        for job in self.jobs.values():
            self._tasks[job.name] = asyncio.create_task(self._loop(job), name=f"job:{job.name}")
        logger.info("Scheduler started with %d jobs: %s", len(self._tasks), ", ".join(self._tasks))

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._next_run.clear()
        logger.info("Scheduler stopped")

    async def run(self, name: str) -> int:
        """Run job ``name`` now, outside its cadence. Raises KeyError if unknown."""
        job = self.jobs[name]
        return await self._execute(job)

    def describe(self) -> list[dict]:
        return [
            {
                "name": job.name,
                "cadence": job.cadence.describe(),
                "next_run_at": self._next_run.get(job.name),
                "running": job.name in self._running,
            }
            for job in self.jobs.values()
        ]

    async def _loop(self, job: ScheduledJob) -> None:
        while True:
            now = self.now()
            due = job.cadence.next_after(now)
            self._next_run[job.name] = due
            await asyncio.sleep(max((due - now).total_seconds(), 0))
            await self._execute(job)

    async def _execute(self, job: ScheduledJob) -> int:
        self._running.add(job.name)
        try:
            sent = await job.run_once()
            logger.info("Job %s finished: %s messages sent", job.name, sent)
            return sent or 0
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Job %s failed: %s", job.name, e)
            return 0
        finally:
            self._running.discard(job.name)


# ---------------------------------------------------------------------------
# Default jobs
# ---------------------------------------------------------------------------

def _notification_job(method: str, settings: Settings, messaging=None) -> Callable[[], Awaitable[int]]:
    async def run_once() -> int:
        from kimo.infra.database import async_session
        from kimo.services.messaging_service import MessagingService
        from kimo.services.notification_service import NotificationService

        async with async_session() as db:
            service = NotificationService(db, messaging or MessagingService(settings), settings=settings)
            return await getattr(service, method)()

    return run_once


def build_default_jobs(settings: Optional[Settings] = None, messaging=None) -> list[ScheduledJob]:
    settings = settings or get_settings()
    return [
        ScheduledJob(
            name="daily_greeting",
            cadence=AtHours([settings.daily_greeting_hour]),
            run_once=_notification_job("send_daily_greetings", settings, messaging),
        ),
        ScheduledJob(
            name="weekly_summary",
            cadence=AtHours([settings.weekly_summary_hour], weekdays=[settings.weekly_summary_weekday]),
            run_once=_notification_job("send_weekly_summaries", settings, messaging),
        ),
        ScheduledJob(
            name="registration_reminder",
            cadence=AtHours(settings.registration_reminder_hour_list),
            run_once=_notification_job("send_registration_reminders", settings, messaging),
        ),
        ScheduledJob(
            name="pending_trip_reminder",
            cadence=EveryMinutes(settings.pending_trip_interval_minutes),
            run_once=_notification_job("send_pending_trip_reminders", settings, messaging),
        ),
    ]


@lru_cache
def get_runner() -> PeriodicRunner:
    """Process-wide runner over the default jobs."""
    settings = get_settings()
    return PeriodicRunner(build_default_jobs(settings), settings.timezone)
