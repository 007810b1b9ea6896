"""Conversation sessions and the store that keeps them.

Sessions are volatile: the default store is a process-local dict, so a
restart drops every in-flight flow and users simply start again from
IDLE. A durable backend only needs to implement ``SessionStore``.
"""

import abc
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Optional, Union

from kimo.domain.enums import ConversationState, DriverProfile, ExpenseType
from kimo.domain.values import utcnow


class ConfirmationKind(str, Enum):
    """Which producer is waiting for a yes/no."""

    QUICK_TRIP = "quick_trip"
    QUICK_EXPENSE = "quick_expense"
    GUIDED_REGISTRATION = "guided_registration"
    AUDIO = "audio"


# ---------------------------------------------------------------------------
# Flow drafts
# ---------------------------------------------------------------------------

@dataclass
class OnboardingDraft:
    profile: Optional[DriverProfile] = None
    name: Optional[str] = None
    car_value: Optional[float] = None
    weekly_rental: Optional[float] = None
    financing_balance: Optional[float] = None
    financing_monthly_payment: Optional[float] = None
    financing_remaining_months: Optional[int] = None
    fuel_consumption: Optional[float] = None
    avg_fuel_price: Optional[float] = None


@dataclass
class RegistrationDraft:
    earnings: Optional[float] = None
    km: Optional[float] = None
    fuel: Optional[float] = None
    other_expenses: Optional[float] = None


# ---------------------------------------------------------------------------
# Pending confirmations (tagged by ``kind``)
# ---------------------------------------------------------------------------

@dataclass
class QuickTripConfirmation:
    earnings: float
    km: float
    fuel: Optional[float] = None
    kind: ConfirmationKind = field(default=ConfirmationKind.QUICK_TRIP, init=False)


@dataclass
class QuickExpenseConfirmation:
    expense_type: ExpenseType
    label: str
    amount: float
    note: Optional[str] = None
    kind: ConfirmationKind = field(default=ConfirmationKind.QUICK_EXPENSE, init=False)


@dataclass
class GuidedRegistrationConfirmation:
    fuel: float
    other_expenses: float
    kind: ConfirmationKind = field(default=ConfirmationKind.GUIDED_REGISTRATION, init=False)


@dataclass
class AudioConfirmation:
    """Trip or expense figures extracted from a voice note."""

    intent: str
    earnings: Optional[float] = None
    km: Optional[float] = None
    expense_amount: Optional[float] = None
    expense_type: Optional[ExpenseType] = None
    transcript: str = ""
    kind: ConfirmationKind = field(default=ConfirmationKind.AUDIO, init=False)


PendingConfirmation = Union[
    QuickTripConfirmation,
    QuickExpenseConfirmation,
    GuidedRegistrationConfirmation,
    AudioConfirmation,
]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@dataclass
class ConversationSession:
    phone: str
    state: ConversationState = ConversationState.IDLE
    user_id: Optional[str] = None
    onboarding: Optional[OnboardingDraft] = None
    registration: Optional[RegistrationDraft] = None
    confirmation: Optional[PendingConfirmation] = None
    last_interaction: datetime = field(default_factory=utcnow)

    def reset(self) -> None:
        """Back to IDLE with every draft and confirmation cleared."""
        self.state = ConversationState.IDLE
        self.onboarding = None
        self.registration = None
        self.confirmation = None

    def confirm(self, confirmation: PendingConfirmation) -> None:
        self.confirmation = confirmation
        self.state = ConversationState.REGISTER_CONFIRM

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_interaction = now or utcnow()


class SessionStore(abc.ABC):
    """Keyed by the user's phone handle."""

    @abc.abstractmethod
    async def get(self, phone: str) -> Optional[ConversationSession]:
        ...

    @abc.abstractmethod
    async def set(self, session: ConversationSession) -> None:
        ...

    @abc.abstractmethod
    async def delete(self, phone: str) -> None:
        ...

    async def get_or_create(self, phone: str) -> ConversationSession:
        session = await self.get(phone)
        if session is None:
            session = ConversationSession(phone=phone)
            await self.set(session)
        return session


class InMemorySessionStore(SessionStore):

    def __init__(self):
        self._sessions: dict[str, ConversationSession] = {}

    async def get(self, phone: str) -> Optional[ConversationSession]:
        return self._sessions.get(phone)

    async def set(self, session: ConversationSession) -> None:
        self._sessions[session.phone] = session

    async def delete(self, phone: str) -> None:
        self._sessions.pop(phone, None)

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache
def get_session_store() -> SessionStore:
    """Process-wide session store."""
    return InMemorySessionStore()
