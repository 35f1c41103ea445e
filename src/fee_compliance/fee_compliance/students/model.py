from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Student:
    """Read-only view of a hostel student from the student directory."""

    student_id: int
    name: str
    course_id: Optional[int]
    year_of_study: Optional[int]
    academic_year: Optional[str]
    registration_date: date
    category: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    # Post-concession term fees, when the directory has computed them.
    calculated_term_fees: Optional[tuple[Decimal, Decimal, Decimal]] = None
    is_active: bool = True

    @property
    def has_course(self) -> bool:
        return bool(self.course_id) and bool(self.year_of_study)

    @property
    def has_placement(self) -> bool:
        return self.has_course and bool(self.academic_year)
