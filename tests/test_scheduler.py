"""Tests for the periodic runner, its cadences and the internal scheduler endpoints."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from httpx import ASGITransport, AsyncClient

from kimo.app.config import get_settings
from kimo.services.scheduler import (
    AtHours,
    EveryMinutes,
    PeriodicRunner,
    ScheduledJob,
    build_default_jobs,
    get_runner,
)

SP = ZoneInfo("America/Sao_Paulo")


# ---------------------------------------------------------------------------
# Cadences
# ---------------------------------------------------------------------------

class TestEveryMinutes:

    @pytest.mark.parametrize("now,expected", [
        (datetime(2026, 10, 19, 8, 3, tzinfo=SP), datetime(2026, 10, 19, 8, 10, tzinfo=SP)),
        (datetime(2026, 10, 19, 8, 10, tzinfo=SP), datetime(2026, 10, 19, 8, 20, tzinfo=SP)),
        (datetime(2026, 10, 19, 23, 55, tzinfo=SP), datetime(2026, 10, 20, 0, 0, tzinfo=SP)),
    ])
    def test_aligned_slots(self, now, expected):
        assert EveryMinutes(10).next_after(now) == expected

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            EveryMinutes(0)


class TestAtHours:

    def test_later_today(self):
        cadence = AtHours([10, 13, 16, 19])
        assert cadence.next_after(datetime(2026, 10, 19, 11, 30, tzinfo=SP)) == datetime(2026, 10, 19, 13, 0, tzinfo=SP)

    def test_rolls_to_next_day(self):
        cadence = AtHours([8])
        assert cadence.next_after(datetime(2026, 10, 19, 8, 0, tzinfo=SP)) == datetime(2026, 10, 20, 8, 0, tzinfo=SP)

    def test_weekday_filter(self):
        # Monday 2026-10-19 -> next Sunday 20:00
        cadence = AtHours([20], weekdays=[6])
        assert cadence.next_after(datetime(2026, 10, 19, 9, 0, tzinfo=SP)) == datetime(2026, 10, 25, 20, 0, tzinfo=SP)

    @pytest.mark.parametrize("hours,weekdays", [([], None), ([24], None), ([8], [7]), ([8], [])])
    def test_validation(self, hours, weekdays):
        with pytest.raises(ValueError):
            AtHours(hours, weekdays)

    def test_describe(self):
        assert AtHours([8]).describe() == "daily at 08:00"
        assert EveryMinutes(10).describe() == "every 10 min"


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class TestPeriodicRunner:

    async def test_run_returns_sent_count(self):
        job = ScheduledJob("greet", AtHours([8]), AsyncMock(return_value=3))
        runner = PeriodicRunner([job])

        assert await runner.run("greet") == 3
        job.run_once.assert_awaited_once()

    async def test_run_unknown_job(self):
        runner = PeriodicRunner([])
        with pytest.raises(KeyError):
            await runner.run("nope")

    async def test_failing_job_is_contained(self):
        job = ScheduledJob("boom", EveryMinutes(5), AsyncMock(side_effect=RuntimeError("db down")))
        runner = PeriodicRunner([job])

        assert await runner.run("boom") == 0
        assert runner.describe()[0]["running"] is False

    async def test_start_and_stop(self):
        job = ScheduledJob("tick", EveryMinutes(10), AsyncMock(return_value=0))
        runner = PeriodicRunner([job])

        runner.start()
        await asyncio.sleep(0)
        assert runner.started
        info = runner.describe()[0]
        assert info["name"] == "tick"
        assert info["next_run_at"] is not None

        await runner.stop()
        assert not runner.started
        job.run_once.assert_not_awaited()

    def test_default_jobs(self, settings):
        jobs = {job.name: job for job in build_default_jobs(settings)}
        assert set(jobs) == {"daily_greeting", "weekly_summary", "registration_reminder", "pending_trip_reminder"}
        assert jobs["registration_reminder"].cadence.hours == [10, 13, 16, 19]
        assert jobs["weekly_summary"].cadence.weekdays == [6]
        assert jobs["pending_trip_reminder"].cadence.minutes == 10


# ---------------------------------------------------------------------------
# Internal endpoints
# ---------------------------------------------------------------------------

class TestSchedulerEndpoints:

    @pytest.fixture
    def client_runner(self):
        from kimo.app.main import app

        job = ScheduledJob("daily_greeting", AtHours([8]), AsyncMock(return_value=2))
        runner = PeriodicRunner([job])
        app.dependency_overrides[get_runner] = lambda: runner
        yield app, runner
        app.dependency_overrides.clear()

    async def test_requires_token(self, client_runner):
        app, _ = client_runner
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/internal/scheduler/jobs", headers={"X-Internal-Token": "wrong"})
        assert resp.status_code == 401

    async def test_list_and_run(self, client_runner):
        app, runner = client_runner
        headers = {"X-Internal-Token": get_settings().internal_token}
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            listed = await client.get("/api/internal/scheduler/jobs", headers=headers)
            ran = await client.post("/api/internal/scheduler/jobs/daily_greeting", headers=headers)
            missing = await client.post("/api/internal/scheduler/jobs/unknown", headers=headers)

        assert listed.status_code == 200
        assert listed.json()[0]["name"] == "daily_greeting"
        assert ran.json() == {"ok": True, "job": "daily_greeting", "sent": 2}
        assert missing.status_code == 404
