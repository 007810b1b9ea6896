"""SQLAlchemy models for drivers, their cost profile and activity records."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from kimo.domain.enums import PendingTripStatus
from kimo.domain.values import as_utc, utcnow
from kimo.infra.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    phone = Column(String(30), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=True)
    weekly_goal = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)  # False = rest mode
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())


class DriverConfig(Base):
    __tablename__ = "driver_configs"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    profile = Column(String(20), nullable=False)  # DriverProfile value
    car_value = Column(Float, nullable=True)
    fuel_consumption = Column(Float, nullable=False)  # km per litre
    avg_fuel_price = Column(Float, nullable=False)
    avg_km_per_day = Column(Float, nullable=False)
    work_days_per_week = Column(Integer, default=6, nullable=False)
    financing_balance = Column(Float, nullable=True)
    financing_monthly_payment = Column(Float, nullable=True)
    financing_remaining_months = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())


class FixedCost(Base):
    __tablename__ = "fixed_costs"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # FixedCostType value
    amount = Column(Float, nullable=False)
    frequency = Column(String(10), nullable=False)  # CostFrequency value
    description = Column(String(200), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=func.now())


class Trip(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    earnings = Column(Float, nullable=False)
    km = Column(Float, nullable=False)
    time_online_minutes = Column(Integer, default=0, nullable=False)
    is_personal_use = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now())


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    type = Column(String(30), nullable=False)  # ExpenseType value
    amount = Column(Float, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=func.now())


class DailySummary(Base):
    __tablename__ = "daily_summaries"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_summary_user_date"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    earnings = Column(Float, default=0.0, nullable=False)
    expenses = Column(Float, default=0.0, nullable=False)
    km = Column(Float, default=0.0, nullable=False)
    profit = Column(Float, default=0.0, nullable=False)
    cost_per_km = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())


class PendingTrip(Base):
    """A trip evaluated with ``vale`` but not yet confirmed as done."""

    __tablename__ = "pending_trips"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    earnings = Column(Float, nullable=False)
    km = Column(Float, nullable=False)
    fuel = Column(Float, nullable=True)
    estimated_duration_minutes = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PendingTripStatus.PENDING.value, index=True)
    evaluated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    @staticmethod
    def estimate_duration(km: float) -> int:
        """Roughly three minutes per km."""
        return int(round(km * 3))

    @property
    def is_open(self) -> bool:
        return self.status in (PendingTripStatus.PENDING.value, PendingTripStatus.IN_PROGRESS.value)

    def elapsed_minutes(self, now: datetime | None = None) -> float:
        now = now or utcnow()
        return (as_utc(now) - as_utc(self.evaluated_at)).total_seconds() / 60

    def should_send_reminder(self, now: datetime | None = None) -> bool:
        """Open, never reminded, and the estimated duration has elapsed."""
        if not self.is_open or self.reminder_sent_at is not None:
            return False
        return self.elapsed_minutes(now) >= (self.estimated_duration_minutes or 0)

    def mark_in_progress(self) -> None:
        self.status = PendingTripStatus.IN_PROGRESS.value

    def complete(self, fuel: float | None = None, now: datetime | None = None) -> None:
        if fuel is not None:
            self.fuel = fuel
        self.status = PendingTripStatus.COMPLETED.value
        self.completed_at = now or utcnow()

    def cancel(self) -> None:
        self.status = PendingTripStatus.CANCELLED.value

    def mark_reminder_sent(self, now: datetime | None = None) -> None:
        self.reminder_sent_at = now or utcnow()
