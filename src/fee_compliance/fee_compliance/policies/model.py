from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from ..core.constants import DEFAULT_POST_REMINDER_DAYS, DEFAULT_PRE_REMINDER_DAYS
from ..core.enums import Channel, ReminderKind, Semester, Term


@dataclass(frozen=True)
class PolicyKey:
    course_id: int
    academic_year: str
    year_of_study: int


@dataclass(frozen=True)
class TermSchedule:
    """How one term's due date and late fee are derived."""

    days_from_anchor: int
    anchor_semester: Semester = Semester.SEMESTER_1
    late_fee: Decimal = Decimal("0")
    description: Optional[str] = None


@dataclass(frozen=True)
class TermReminderDays:
    # Pre-due offsets count down to the due date, post-due offsets count up.
    pre_reminder_days: tuple[int, ...] = DEFAULT_PRE_REMINDER_DAYS
    post_reminder_days: tuple[int, ...] = DEFAULT_POST_REMINDER_DAYS


@dataclass(frozen=True)
class TermPolicy:
    key: PolicyKey
    terms: tuple[TermSchedule, TermSchedule, TermSchedule]
    reminder_days: tuple[TermReminderDays, TermReminderDays, TermReminderDays] = (
        TermReminderDays(),
        TermReminderDays(),
        TermReminderDays(),
    )
    is_active: bool = True

    def term(self, term: Term) -> TermSchedule:
        return self.terms[term.index]

    def reminders_for(self, term: Term) -> TermReminderDays:
        return self.reminder_days[term.index]

    def late_fee(self, term: Term) -> Decimal:
        return self.terms[term.index].late_fee


@dataclass(frozen=True)
class ChannelToggles:
    push: bool = True
    email: bool = True
    sms: bool = False

    def enabled(self) -> tuple[Channel, ...]:
        out = []
        if self.push:
            out.append(Channel.PUSH)
        if self.email:
            out.append(Channel.EMAIL)
        if self.sms:
            out.append(Channel.SMS)
        return tuple(out)


@dataclass(frozen=True)
class ReminderChannelSettings:
    """Process-wide channel switches for pre-due and post-due reminders."""

    pre_due: ChannelToggles = field(default_factory=ChannelToggles)
    post_due: ChannelToggles = field(default_factory=ChannelToggles)

    def channels_for(self, kind: ReminderKind) -> tuple[Channel, ...]:
        if kind == ReminderKind.PRE_DUE:
            return self.pre_due.enabled()
        return self.post_due.enabled()
