from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from ..core.enums import Semester


class AcademicCalendar(Protocol):
    """Interface to the academic-calendar store."""

    def get_semester_start(self, course_id: int, academic_year: str, semester: Semester) -> Optional[date]:
        raise NotImplementedError
