from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional

from ..common.batch import BatchSummary
from ..common.datetime_utils import Clock, SystemClock
from ..common.validators import require_academic_year
from ..core.constants import RECONCILE_MAX_ATTEMPTS
from ..core.exceptions import DomainError, NotFoundError, StaleRecordError, ValidationError
from ..due_dates.resolver import DueDateResolver, ResolvedDueDates
from ..fees.model import TermAmounts, nominal_term_fees
from ..fees.repository import FeeSchedule
from ..students.model import Student
from ..students.repository import StudentDirectory
from .cas import update_with_retry
from .model import ReminderRecord, ReminderStats
from .repository import ReminderLedger

logger = logging.getLogger(__name__)


class ReminderLedgerService:
    """Use cases around the lifecycle of reminder records.

    Fee amounts and due dates are cached on the record when it is created and
    only re-derived by ``recalculate_all_due_dates``; policy or fee-structure
    edits do not reach existing records on their own.
    """

    def __init__(
        self,
        ledger: ReminderLedger,
        students: StudentDirectory,
        fee_schedule: FeeSchedule,
        resolver: DueDateResolver,
        *,
        clock: Optional[Clock] = None,
        default_academic_year: Optional[str] = None,
    ):
        self._ledger = ledger
        self._students = students
        self._fee_schedule = fee_schedule
        self._resolver = resolver
        self._clock = clock or SystemClock()
        self._default_academic_year = default_academic_year

    def _require_student(self, student_id: int) -> Student:
        student = self._students.get_student(int(student_id))
        if student is None:
            raise ValidationError(f"Student {student_id} not found")
        return student

    def _nominal_fees(self, student: Student, academic_year: str) -> TermAmounts:
        structure = None
        if student.course_id and student.year_of_study:
            structure = self._fee_schedule.get_fee_structure(
                academic_year=academic_year,
                course_id=int(student.course_id),
                year_of_study=int(student.year_of_study),
                category=student.category,
            )
        if structure is None:
            logger.warning("No fee structure for student %s in %s, using default term fees", student.student_id, academic_year)
        return nominal_term_fees(structure)

    def resolve_due_dates(self, student_id: int, academic_year: Optional[str] = None) -> ResolvedDueDates:
        if academic_year is not None:
            academic_year = require_academic_year(academic_year)
        return self._resolver.resolve(self._require_student(student_id), academic_year=academic_year)

    def get_record(self, student_id: int, academic_year: Optional[str] = None) -> ReminderRecord:
        if academic_year is None:
            academic_year = self._require_student(student_id).academic_year
        record = self._ledger.get_for_student(int(student_id), academic_year) if academic_year else None
        if record is None:
            raise NotFoundError(f"No fee reminder for student {student_id}")
        return record

    def create_for_student(
        self,
        student_id: int,
        *,
        registration_date: Optional[date] = None,
        academic_year: Optional[str] = None,
    ) -> ReminderRecord:
        student = self._require_student(student_id)
        academic_year = require_academic_year(academic_year or student.academic_year or "")
        registration_date = registration_date or student.registration_date

        existing = self._ledger.get_for_student(student.student_id, academic_year)
        if existing is not None and existing.is_active:
            raise ValidationError("Fee reminder already exists for this student and academic year")

        resolved = self._resolver.resolve(student, academic_year=academic_year, registration_date=registration_date)
        fees = self._nominal_fees(student, academic_year)
        now = self._clock.now()

        if existing is not None:
            # Re-admission: reuse the row, start the reminder cycle afresh.
            fresh = ReminderRecord(
                reminder_id=existing.reminder_id,
                student_id=student.student_id,
                academic_year=academic_year,
                registration_date=registration_date,
                term_due_dates=resolved.due_dates,
                fee_amounts=fees,
                late_fee_applied=existing.late_fee_applied,
                term_late_fee_accrued=existing.term_late_fee_accrued,
                due_date_source=resolved.source,
                version=existing.version,
            )
            record = update_with_retry(self._ledger, existing, lambda _: fresh, now=now, attempts=1)
            logger.info("Reactivated fee reminder %s for student %s", record.reminder_id, student.student_id)
            return record

        record = ReminderRecord(
            reminder_id=0,
            student_id=student.student_id,
            academic_year=academic_year,
            registration_date=registration_date,
            term_due_dates=resolved.due_dates,
            fee_amounts=fees,
            due_date_source=resolved.source,
            last_updated_at=now,
        )
        reminder_id = self._ledger.create(record)
        logger.info(
            "Created fee reminder %s for student %s (%s, due dates from %s)",
            reminder_id,
            student.student_id,
            academic_year,
            resolved.source.value,
        )
        return replace(record, reminder_id=reminder_id)

    def create_for_all_students(self, academic_year: Optional[str] = None) -> BatchSummary:
        """Backfill records for active students that do not have one yet."""
        summary = BatchSummary(name="reminder_backfill")
        students = self._students.list_active_students()
        summary.total = len(students)

        for student in students:
            year = academic_year or self._default_academic_year or student.academic_year
            try:
                if year:
                    existing = self._ledger.get_for_student(student.student_id, year)
                    if existing is not None and existing.is_active:
                        summary.skipped += 1
                        continue
                self.create_for_student(student.student_id, academic_year=year)
                summary.processed += 1
            except DomainError as e:
                summary.errors += 1
                logger.warning("Backfill skipped student %s: %s", student.student_id, e)
            except Exception:
                summary.errors += 1
                logger.exception("Backfill failed for student %s", student.student_id)

        logger.info("Reminder backfill finished: %s", summary.as_dict())
        return summary

    def recalculate_all_due_dates(self) -> BatchSummary:
        """Re-resolve due dates and fee amounts of every active record.

        Run after an administrator edits a policy or fee structure.
        """
        summary = BatchSummary(name="recalculate_due_dates")
        records = self._ledger.list_active()
        summary.total = len(records)
        now = self._clock.now()

        for record in records:
            try:
                student = self._require_student(record.student_id)
                resolved = self._resolver.resolve(
                    student, academic_year=record.academic_year, registration_date=record.registration_date
                )
                fees = self._nominal_fees(student, record.academic_year)

                def apply(current: ReminderRecord) -> ReminderRecord:
                    return replace(
                        current,
                        term_due_dates=resolved.due_dates,
                        due_date_source=resolved.source,
                        fee_amounts=fees,
                    )

                updated = update_with_retry(self._ledger, record, apply, now=now, attempts=RECONCILE_MAX_ATTEMPTS)
                if updated.version != record.version:
                    summary.processed += 1
            except StaleRecordError as e:
                summary.conflicts += 1
                logger.warning("Recalculation of reminder %s gave up: %s", record.reminder_id, e)
            except DomainError as e:
                summary.skipped += 1
                logger.warning("Recalculation skipped reminder %s: %s", record.reminder_id, e)
            except Exception:
                summary.errors += 1
                logger.exception("Recalculation failed for reminder %s", record.reminder_id)

        logger.info("Due date recalculation finished: %s", summary.as_dict())
        return summary

    def deactivate(self, student_id: int, academic_year: Optional[str] = None) -> ReminderRecord:
        """Stop reminders for a withdrawn student. The record is kept."""
        record = self.get_record(student_id, academic_year)
        if not record.is_active:
            return record
        return update_with_retry(
            self._ledger,
            record,
            lambda current: replace(current, is_active=False),
            now=self._clock.now(),
            attempts=RECONCILE_MAX_ATTEMPTS,
        )

    def stats(self, academic_year: Optional[str] = None) -> ReminderStats:
        records = [r for r in self._ledger.list_active() if academic_year is None or r.academic_year == academic_year]
        total = len(records)
        paid = sum(1 for r in records if r.all_terms_paid())
        active = sum(1 for r in records if r.current_level > 0)
        return ReminderStats(
            total_records=total,
            paid_students=paid,
            pending_students=total - paid,
            active_reminders=active,
            payment_rate=round(paid * 100.0 / total, 1) if total else 0.0,
        )
