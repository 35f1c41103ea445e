from __future__ import annotations

from enum import Enum, IntEnum


class Term(IntEnum):
    """Fee installment within an academic year."""

    TERM1 = 1
    TERM2 = 2
    TERM3 = 3

    @property
    def index(self) -> int:
        return int(self) - 1

    @property
    def key(self) -> str:
        return f"term{int(self)}"

    @classmethod
    def parse(cls, value: object) -> "Term":
        """Accept 1, "1", "term1" or "Term 1"."""
        if isinstance(value, Term):
            return value
        text = str(value).strip().lower().replace(" ", "")
        if text.startswith("term"):
            text = text[4:]
        try:
            return cls(int(text))
        except ValueError:
            raise ValueError(f"Unknown term: {value!r}")


class Semester(str, Enum):
    SEMESTER_1 = "Semester 1"
    SEMESTER_2 = "Semester 2"


class FeeStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"


class Channel(str, Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"


class ReminderKind(str, Enum):
    """Which moment relative to the due date a dispatch belongs to."""

    PRE_DUE = "pre_due"
    OVERDUE = "overdue"
    POST_DUE = "post_due"


class DueDateSource(str, Enum):
    POLICY = "policy"
    FALLBACK = "fallback"
