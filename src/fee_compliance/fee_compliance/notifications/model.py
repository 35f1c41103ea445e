from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import Channel, ReminderKind, Term

FEE_REMINDER_TYPE = "fee_reminder"

_IN_APP_MESSAGES = {
    Term.TERM1: "First hostel fee reminder for {year}. Please check your fee status.",
    Term.TERM2: "Second hostel fee reminder for {year}. Payment is due soon.",
    Term.TERM3: "Final hostel fee reminder for {year}. Immediate payment required.",
}


@dataclass(frozen=True)
class NotificationPayload:
    student_id: int
    academic_year: str
    term: Term
    kind: ReminderKind
    amount: Decimal
    due_date: date
    offset_days: int = 0

    @property
    def title(self) -> str:
        if self.kind == ReminderKind.PRE_DUE:
            return f"Hostel Fee Due In {self.offset_days} Day(s)"
        return f"Hostel Fee Reminder #{int(self.term)}"

    @property
    def priority(self) -> str:
        return "high" if self.term == Term.TERM3 and self.kind != ReminderKind.PRE_DUE else "medium"

    def in_app_message(self) -> str:
        return _IN_APP_MESSAGES[self.term].format(year=self.academic_year)

    def text(self, student_name: str) -> str:
        """Short text used by SMS and push."""
        due = self.due_date.strftime("%d/%m/%Y")
        return (
            f"Dear {student_name}, your Hostel Term {int(self.term)} Fee of Rs.{self.amount} "
            f"is due on {due}. Kindly pay at the earliest to avoid late fee."
        )


@dataclass(frozen=True)
class InAppNotification:
    recipient_id: int
    title: str
    message: str
    priority: str
    type: str = FEE_REMINDER_TYPE
    is_read: bool = False
    created_at: Optional[datetime] = None
    notification_id: Optional[int] = None


@dataclass(frozen=True)
class DispatchReport:
    delivered: tuple[Channel, ...] = ()
    failed: tuple[Channel, ...] = ()
    skipped: tuple[Channel, ...] = ()
    in_app: bool = False
