from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..academic_calendar.repository import AcademicCalendar
from ..common.datetime_utils import Clock, SystemClock, add_days
from ..core.constants import FALLBACK_TERM_OFFSET_DAYS
from ..core.enums import DueDateSource, Semester, Term
from ..core.exceptions import ConfigurationMissingError, ValidationError
from ..policies.model import PolicyKey, TermPolicy
from ..policies.repository import PolicyRepository
from ..students.model import Student

logger = logging.getLogger(__name__)

DueDates = tuple[date, date, date]
SemesterAnchors = dict[Semester, Optional[date]]


@dataclass(frozen=True)
class ResolvedDueDates:
    due_dates: DueDates
    source: DueDateSource
    policy: Optional[TermPolicy] = None

    def due_date(self, term: Term) -> date:
        return self.due_dates[term.index]

    def late_fee(self, term: Term) -> Decimal:
        if self.policy is None:
            return Decimal("0")
        return self.policy.late_fee(term)


def policy_key_for(student: Student, academic_year: Optional[str] = None) -> PolicyKey:
    """Policy key for ``student`` in ``academic_year`` (defaults to the directory's current year)."""
    academic_year = academic_year or student.academic_year
    if not student.has_course or not academic_year:
        raise ValidationError(f"Student {student.student_id} has no course, year of study or academic year")
    return PolicyKey(
        course_id=int(student.course_id),
        academic_year=str(academic_year),
        year_of_study=int(student.year_of_study),
    )


def fallback_due_dates(registration_date: date) -> DueDates:
    """Due dates used when no policy matches the student."""
    first, second, third = FALLBACK_TERM_OFFSET_DAYS
    return (
        add_days(registration_date, first),
        add_days(registration_date, second),
        add_days(registration_date, third),
    )


def anchor_date(semester: Semester, anchors: SemesterAnchors, today: date) -> date:
    """Start date a term offset is measured from.

    Semester 2 falls back to Semester 1 when it is missing (and the other way
    round); with no calendar entry at all the offset is measured from today.
    """
    other = Semester.SEMESTER_1 if semester == Semester.SEMESTER_2 else Semester.SEMESTER_2
    return anchors.get(semester) or anchors.get(other) or today


def policy_due_dates(policy: TermPolicy, anchors: SemesterAnchors, today: date) -> DueDates:
    return tuple(
        add_days(anchor_date(policy.term(t).anchor_semester, anchors, today), policy.term(t).days_from_anchor)
        for t in Term
    )


class DueDateResolver:
    """Resolves a student's three term due dates from policy and calendar."""

    def __init__(self, policies: PolicyRepository, calendar: AcademicCalendar, *, clock: Optional[Clock] = None):
        self._policies = policies
        self._calendar = calendar
        self._clock = clock or SystemClock()

    def semester_anchors(self, key: PolicyKey) -> SemesterAnchors:
        return {
            semester: self._calendar.get_semester_start(key.course_id, key.academic_year, semester)
            for semester in Semester
        }

    def resolve(
        self,
        student: Student,
        *,
        academic_year: Optional[str] = None,
        registration_date: Optional[date] = None,
        strict: bool = False,
    ) -> ResolvedDueDates:
        """Resolve due dates for ``student`` in ``academic_year``.

        Records carry their own academic year; pass it so a record is resolved
        against its year's policy and calendar even after the directory moves on.

        With ``strict`` a missing policy or a missing calendar raises
        ``ConfigurationMissingError`` instead of falling back; the late-fee
        pass needs real configuration before charging anyone.
        """
        key = policy_key_for(student, academic_year)
        registration_date = registration_date or student.registration_date

        policy = self._policies.get_policy(key)
        if policy is None:
            if strict:
                raise ConfigurationMissingError(f"No term policy for {key}")
            logger.debug("No policy for %s, using registration date fallback", key)
            return ResolvedDueDates(due_dates=fallback_due_dates(registration_date), source=DueDateSource.FALLBACK)

        anchors = self.semester_anchors(key)
        if not any(anchors.values()):
            if strict:
                raise ConfigurationMissingError(f"No academic calendar for {key}")
            logger.warning("No academic calendar for %s, measuring term offsets from today", key)

        due_dates = policy_due_dates(policy, anchors, self._clock.now().date())
        return ResolvedDueDates(due_dates=due_dates, source=DueDateSource.POLICY, policy=policy)


def due_dates_in_order(due_dates: DueDates) -> bool:
    return due_dates[0] < due_dates[1] < due_dates[2]
