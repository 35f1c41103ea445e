from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import ReminderRecord


class ReminderLedger(Protocol):
    """Persistent reminder records, one per (student, academic year)."""

    def get(self, reminder_id: int) -> Optional[ReminderRecord]:
        raise NotImplementedError

    def get_for_student(self, student_id: int, academic_year: str) -> Optional[ReminderRecord]:
        """Return the record whether active or not."""

        raise NotImplementedError

    def list_active(self) -> Sequence[ReminderRecord]:
        raise NotImplementedError

    def create(self, record: ReminderRecord) -> int:
        """Insert a new record (``reminder_id`` is ignored). Returns the new id."""

        raise NotImplementedError

    def compare_and_set(self, record: ReminderRecord, *, expected_version: int) -> bool:
        """Persist ``record`` only if the stored version still equals ``expected_version``.

        The whole record (parent and term rows) is written atomically and the
        stored version is incremented. ``late_fee_applied`` flags are OR-ed
        with the stored ones so they can never revert. Returns False when the
        stored version moved on (or the record is gone).
        """

        raise NotImplementedError
