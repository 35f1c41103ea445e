from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Student


class StudentDirectory(Protocol):
    """Interface to the student directory (owned by another subsystem)."""

    def get_student(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def list_active_students(self) -> Sequence[Student]:
        raise NotImplementedError
