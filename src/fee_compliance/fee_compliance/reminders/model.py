from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, TypeVar

from ..core.enums import DueDateSource, FeeStatus, Term

T = TypeVar("T")

_UNPAID = (FeeStatus.UNPAID, FeeStatus.UNPAID, FeeStatus.UNPAID)
_ZERO = (Decimal("0"), Decimal("0"), Decimal("0"))


def replace_at(values: tuple[T, ...], index: int, value: T) -> tuple[T, ...]:
    return values[:index] + (value,) + values[index + 1:]


@dataclass(frozen=True)
class TermReminderState:
    """Visibility pulse state of one term, plus which nudge offsets went out."""

    visible: bool = False
    issued_at: Optional[datetime] = None
    pre_sent: frozenset[int] = field(default_factory=frozenset)
    post_sent: frozenset[int] = field(default_factory=frozenset)


_HIDDEN = (TermReminderState(), TermReminderState(), TermReminderState())


@dataclass(frozen=True)
class ReminderRecord:
    """One student's fee reminder state for one academic year.

    ``version`` is bumped by every successful compare-and-set write.
    """

    reminder_id: int
    student_id: int
    academic_year: str
    registration_date: date
    term_due_dates: tuple[date, date, date]
    fee_amounts: tuple[Decimal, Decimal, Decimal]
    fee_status: tuple[FeeStatus, FeeStatus, FeeStatus] = _UNPAID
    reminder_state: tuple[TermReminderState, TermReminderState, TermReminderState] = _HIDDEN
    current_level: int = 0
    late_fee_applied: tuple[bool, bool, bool] = (False, False, False)
    term_late_fee_accrued: tuple[Decimal, Decimal, Decimal] = _ZERO
    due_date_source: DueDateSource = DueDateSource.FALLBACK
    is_active: bool = True
    last_updated_at: Optional[datetime] = None
    version: int = 0

    def due_date(self, term: Term) -> date:
        return self.term_due_dates[term.index]

    def fee_amount(self, term: Term) -> Decimal:
        return self.fee_amounts[term.index]

    def status(self, term: Term) -> FeeStatus:
        return self.fee_status[term.index]

    def is_paid(self, term: Term) -> bool:
        return self.fee_status[term.index] == FeeStatus.PAID

    def state(self, term: Term) -> TermReminderState:
        return self.reminder_state[term.index]

    def with_state(self, term: Term, state: TermReminderState) -> "ReminderRecord":
        return replace(self, reminder_state=replace_at(self.reminder_state, term.index, state))

    def with_level_recomputed(self) -> "ReminderRecord":
        return replace(self, current_level=derive_level(self.reminder_state))

    def all_terms_paid(self) -> bool:
        return all(s == FeeStatus.PAID for s in self.fee_status)

    def total_fee(self) -> Decimal:
        return sum(self.fee_amounts, Decimal("0"))

    def paid_amount(self) -> Decimal:
        return sum((a for a, s in zip(self.fee_amounts, self.fee_status) if s == FeeStatus.PAID), Decimal("0"))

    def pending_amount(self) -> Decimal:
        return self.total_fee() - self.paid_amount()

    def same_state_as(self, other: "ReminderRecord") -> bool:
        """Equality ignoring bookkeeping fields."""
        return replace(self, last_updated_at=None, version=0) == replace(other, last_updated_at=None, version=0)


def derive_level(states: tuple[TermReminderState, ...]) -> int:
    """Highest term whose reminder is visible, 0 when none is."""
    level = 0
    for term in Term:
        if states[term.index].visible:
            level = int(term)
    return level


@dataclass(frozen=True)
class ReminderStats:
    total_records: int
    paid_students: int
    pending_students: int
    active_reminders: int
    payment_rate: float

    def as_dict(self) -> dict:
        return {
            "total_records": self.total_records,
            "paid_students": self.paid_students,
            "pending_students": self.pending_students,
            "active_reminders": self.active_reminders,
            "payment_rate": self.payment_rate,
        }
