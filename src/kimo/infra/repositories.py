"""Async SQLAlchemy repositories, one per persisted entity.

Every write goes through ``_commit`` so a failed flush is rolled back and
surfaces as ``PersistenceError`` instead of a raw driver exception.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kimo.domain.enums import OPEN_PENDING_STATUSES, ExpenseType, PendingTripStatus
from kimo.domain.errors import PersistenceError
from kimo.domain.models import (
    DailySummary,
    DriverConfig,
    Expense,
    FixedCost,
    PendingTrip,
    Trip,
    User,
)
from kimo.domain.values import utcnow

logger = logging.getLogger(__name__)


class _Repository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("%s failed: %s", action, e)
            raise PersistenceError(f"{action} failed") from e

    async def _add(self, row, action: str):
        self.db.add(row)
        await self._commit(action)
        return row


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserRepository(_Repository):

    async def find_by_phone(self, phone: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.phone == phone))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_all(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.created_at))
        return list(result.scalars().all())

    async def find_active(self) -> list[User]:
        result = await self.db.execute(
            select(User).where(User.is_active == True).order_by(User.created_at)  # noqa: E712
        )
        return list(result.scalars().all())

    async def save(self, user: User) -> User:
        return await self._add(user, "save user")

    async def update_goal(self, user: User, weekly_goal: float) -> User:
        user.weekly_goal = weekly_goal
        await self._commit("update weekly goal")
        return user

    async def set_active(self, user: User, active: bool) -> User:
        user.is_active = active
        await self._commit("update user active flag")
        return user

    async def touch(self, user: User, when: Optional[datetime] = None) -> None:
        user.last_activity_at = when or utcnow()
        await self._commit("update last activity")


# ---------------------------------------------------------------------------
# Driver configuration / fixed costs
# ---------------------------------------------------------------------------

class DriverConfigRepository(_Repository):

    async def find_by_user_id(self, user_id: str) -> Optional[DriverConfig]:
        result = await self.db.execute(
            select(DriverConfig).where(DriverConfig.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def save(self, config: DriverConfig) -> DriverConfig:
        """Insert, replacing any previous configuration for the same user."""
        existing = await self.find_by_user_id(config.user_id)
        if existing is not None and existing is not config:
            await self.db.delete(existing)
            await self.db.flush()
        return await self._add(config, "save driver config")

    async def update_fuel_price(self, config: DriverConfig, price: float) -> DriverConfig:
        config.avg_fuel_price = price
        await self._commit("update fuel price")
        return config


class FixedCostRepository(_Repository):

    async def find_by_user_id(self, user_id: str) -> list[FixedCost]:
        result = await self.db.execute(select(FixedCost).where(FixedCost.user_id == user_id))
        return list(result.scalars().all())

    async def find_active_by_user_id(self, user_id: str) -> list[FixedCost]:
        result = await self.db.execute(
            select(FixedCost).where(
                FixedCost.user_id == user_id,
                FixedCost.is_active == True,  # noqa: E712
            )
        )
        return list(result.scalars().all())

    async def save(self, cost: FixedCost) -> FixedCost:
        return await self._add(cost, "save fixed cost")

    async def deactivate(self, cost: FixedCost, end: Optional[date] = None) -> FixedCost:
        cost.is_active = False
        cost.end_date = end
        await self._commit("deactivate fixed cost")
        return cost


# ---------------------------------------------------------------------------
# Trips / expenses
# ---------------------------------------------------------------------------

class TripRepository(_Repository):

    async def save(self, trip: Trip) -> Trip:
        return await self._add(trip, "save trip")

    async def find_by_user_and_date(self, user_id: str, day: date) -> list[Trip]:
        result = await self.db.execute(
            select(Trip).where(Trip.user_id == user_id, Trip.date == day).order_by(Trip.created_at)
        )
        return list(result.scalars().all())

    async def _sum(self, column, user_id: str, day: date) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(column), 0)).where(Trip.user_id == user_id, Trip.date == day)
        )
        return float(result.scalar_one())

    async def total_earnings_by_user_and_date(self, user_id: str, day: date) -> float:
        return await self._sum(Trip.earnings, user_id, day)

    async def total_km_by_user_and_date(self, user_id: str, day: date) -> float:
        return await self._sum(Trip.km, user_id, day)

    async def total_minutes_by_user_and_date(self, user_id: str, day: date) -> float:
        return await self._sum(Trip.time_online_minutes, user_id, day)


class ExpenseRepository(_Repository):

    async def save(self, expense: Expense) -> Expense:
        return await self._add(expense, "save expense")

    async def find_by_user_and_date(self, user_id: str, day: date) -> list[Expense]:
        result = await self.db.execute(
            select(Expense).where(Expense.user_id == user_id, Expense.date == day)
        )
        return list(result.scalars().all())

    async def total_by_user_and_date(self, user_id: str, day: date) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.user_id == user_id, Expense.date == day
            )
        )
        return float(result.scalar_one())

    async def total_fuel_by_user_and_date(self, user_id: str, day: date) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.user_id == user_id,
                Expense.date == day,
                Expense.type == ExpenseType.FUEL.value,
            )
        )
        return float(result.scalar_one())

    async def totals_by_type(self, user_id: str, start: date, end: date) -> dict[str, float]:
        result = await self.db.execute(
            select(Expense.type, func.sum(Expense.amount))
            .where(Expense.user_id == user_id, Expense.date >= start, Expense.date <= end)
            .group_by(Expense.type)
        )
        return {row[0]: round(float(row[1] or 0), 2) for row in result.all()}


# ---------------------------------------------------------------------------
# Daily summaries
# ---------------------------------------------------------------------------

class DailySummaryRepository(_Repository):

    async def find_by_user_and_date(self, user_id: str, day: date) -> Optional[DailySummary]:
        result = await self.db.execute(
            select(DailySummary).where(DailySummary.user_id == user_id, DailySummary.date == day)
        )
        return result.scalar_one_or_none()

    async def find_by_user_and_date_range(self, user_id: str, start: date, end: date) -> list[DailySummary]:
        result = await self.db.execute(
            select(DailySummary)
            .where(
                DailySummary.user_id == user_id,
                and_(DailySummary.date >= start, DailySummary.date <= end),
            )
            .order_by(DailySummary.date)
        )
        return list(result.scalars().all())

    async def total_profit_by_user_and_date_range(self, user_id: str, start: date, end: date) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(DailySummary.profit), 0)).where(
                DailySummary.user_id == user_id,
                DailySummary.date >= start,
                DailySummary.date <= end,
            )
        )
        return float(result.scalar_one())

    async def upsert(
        self,
        user_id: str,
        day: date,
        earnings: float,
        expenses: float,
        km: float,
        profit: float,
        cost_per_km: Optional[float],
    ) -> DailySummary:
        """Insert or overwrite the (user, date) aggregate."""
        summary = await self.find_by_user_and_date(user_id, day)
        if summary is None:
            summary = DailySummary(user_id=user_id, date=day)
            self.db.add(summary)
        summary.earnings = earnings
        summary.expenses = expenses
        summary.km = km
        summary.profit = profit
        summary.cost_per_km = cost_per_km
        await self._commit("upsert daily summary")
        return summary


# ---------------------------------------------------------------------------
# Pending trips
# ---------------------------------------------------------------------------

class PendingTripRepository(_Repository):

    async def save(self, pending: PendingTrip) -> PendingTrip:
        return await self._add(pending, "save pending trip")

    async def update(self, pending: PendingTrip) -> PendingTrip:
        await self._commit("update pending trip")
        return pending

    async def find_by_id(self, pending_id: str) -> Optional[PendingTrip]:
        return await self.db.get(PendingTrip, pending_id)

    async def find_open_by_user(self, user_id: str) -> list[PendingTrip]:
        result = await self.db.execute(
            select(PendingTrip)
            .where(PendingTrip.user_id == user_id, PendingTrip.status.in_(OPEN_PENDING_STATUSES))
            .order_by(PendingTrip.evaluated_at.desc())
        )
        return list(result.scalars().all())

    async def find_latest_open_by_user(self, user_id: str) -> Optional[PendingTrip]:
        open_trips = await self.find_open_by_user(user_id)
        return open_trips[0] if open_trips else None

    async def find_pending_for_reminders(self, now: Optional[datetime] = None) -> list[PendingTrip]:
        """Open trips with no reminder yet whose estimated duration has elapsed."""
        now = now or utcnow()
        result = await self.db.execute(
            select(PendingTrip)
            .where(
                PendingTrip.status.in_(OPEN_PENDING_STATUSES),
                PendingTrip.reminder_sent_at.is_(None),
            )
            .order_by(PendingTrip.evaluated_at)
        )
        return [p for p in result.scalars().all() if p.should_send_reminder(now)]

    async def delete_old_closed(self, before: datetime) -> int:
        """Remove completed/cancelled trips evaluated before ``before``."""
        result = await self.db.execute(
            delete(PendingTrip).where(
                PendingTrip.status.in_(
                    (PendingTripStatus.COMPLETED.value, PendingTripStatus.CANCELLED.value)
                ),
                PendingTrip.evaluated_at < before,
            )
        )
        await self._commit("delete old pending trips")
        return result.rowcount or 0
