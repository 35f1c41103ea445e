from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from ..common.batch import BatchSummary
from ..common.datetime_utils import Clock, SystemClock
from ..core.constants import PAYMENT_TYPE_HOSTEL_FEE, RECONCILE_MAX_ATTEMPTS
from ..core.enums import Term
from ..core.exceptions import ConfigurationMissingError, DomainError, StaleRecordError, ValidationError
from ..due_dates.resolver import DueDateResolver, ResolvedDueDates
from ..fees.model import TermAmounts
from ..fees.repository import FeeSchedule
from ..payments.model import PaymentEntry
from ..payments.repository import PaymentLedger
from ..reminders.cas import update_with_retry
from ..reminders.model import ReminderRecord, replace_at
from ..reminders.repository import ReminderLedger
from ..students.model import Student
from ..students.repository import StudentDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TermAssessment:
    term: Term
    due_date: date
    balance: Decimal
    late_fee: Decimal
    already_applied: bool

    def is_chargeable(self, today: date) -> bool:
        return (
            today >= self.due_date
            and self.balance > 0
            and not self.already_applied
            and self.late_fee > 0
        )


def term_balances(fee_basis: TermAmounts, payments: Sequence[PaymentEntry]) -> TermAmounts:
    paid = {t: Decimal("0") for t in Term}
    for entry in payments:
        paid[entry.term] += entry.amount
    return tuple(fee_basis[t.index] - paid[t] for t in Term)


def assess_terms(
    record: ReminderRecord,
    resolved: ResolvedDueDates,
    balances: TermAmounts,
) -> list[TermAssessment]:
    return [
        TermAssessment(
            term=t,
            due_date=resolved.due_date(t),
            balance=balances[t.index],
            late_fee=resolved.late_fee(t),
            already_applied=record.late_fee_applied[t.index],
        )
        for t in Term
    ]


def apply_late_fee(record: ReminderRecord, term: Term, amount: Decimal) -> ReminderRecord:
    """Charge ``amount`` for ``term`` unless the record already carries it."""
    if record.late_fee_applied[term.index]:
        return record
    accrued = record.term_late_fee_accrued[term.index] + amount
    return replace(
        record,
        late_fee_applied=replace_at(record.late_fee_applied, term.index, True),
        term_late_fee_accrued=replace_at(record.term_late_fee_accrued, term.index, accrued),
    )


class LateFeeProcessor:
    """Daily pass that posts each term's late fee at most once per record."""

    def __init__(
        self,
        ledger: ReminderLedger,
        students: StudentDirectory,
        resolver: DueDateResolver,
        payments: PaymentLedger,
        fee_schedule: FeeSchedule,
        *,
        clock: Optional[Clock] = None,
    ):
        self._ledger = ledger
        self._students = students
        self._resolver = resolver
        self._payments = payments
        self._fee_schedule = fee_schedule
        self._clock = clock or SystemClock()

    def _fee_basis(self, student: Student, record: ReminderRecord) -> TermAmounts:
        # Calculated fees describe the directory's current year only.
        if student.calculated_term_fees is not None and student.academic_year == record.academic_year:
            return student.calculated_term_fees

        structure = self._fee_schedule.get_fee_structure(
            academic_year=record.academic_year,
            course_id=int(student.course_id),
            year_of_study=int(student.year_of_study),
            category=student.category,
        )
        if structure is None:
            raise ConfigurationMissingError(
                f"No fee structure for course {student.course_id} year {student.year_of_study} in {record.academic_year}"
            )
        return record.fee_amounts

    def run(self) -> BatchSummary:
        summary = BatchSummary(name="late_fee_cycle")
        records = self._ledger.list_active()
        summary.total = len(records)
        today = self._clock.now().date()
        logger.info("Late fee pass started for %d records (%s)", summary.total, today.isoformat())

        for record in records:
            try:
                applied = self.process_record(record, today=today)
                summary.processed += 1
                if applied:
                    summary.bump("late_fees_applied", applied)
            except StaleRecordError as e:
                summary.conflicts += 1
                logger.warning("Late fee for reminder %s not applied: %s", record.reminder_id, e)
            except DomainError as e:
                summary.skipped += 1
                logger.warning("Late fee pass skipped student %s: %s", record.student_id, e)
            except Exception:
                summary.errors += 1
                logger.exception("Late fee pass failed for reminder %s", record.reminder_id)

        logger.info("Late fee pass finished: %s", summary.as_dict())
        return summary

    def process_record(self, record: ReminderRecord, *, today: Optional[date] = None) -> int:
        """Apply due late fees for one record. Returns the number of terms charged."""
        today = today or self._clock.now().date()

        student = self._students.get_student(record.student_id)
        if student is None:
            raise ValidationError(f"Student {record.student_id} not found")

        resolved = self._resolver.resolve(
            student,
            academic_year=record.academic_year,
            registration_date=record.registration_date,
            strict=True,
        )
        basis = self._fee_basis(student, record)
        payments = self._payments.list_successful_payments(record.student_id, record.academic_year, PAYMENT_TYPE_HOSTEL_FEE)
        balances = term_balances(basis, payments)

        chargeable = [a for a in assess_terms(record, resolved, balances) if a.is_chargeable(today)]
        if not chargeable:
            return 0

        newly_charged: list[TermAssessment] = []

        def charge(current: ReminderRecord) -> ReminderRecord:
            newly_charged.clear()
            for assessment in chargeable:
                if not current.late_fee_applied[assessment.term.index]:
                    newly_charged.append(assessment)
                    current = apply_late_fee(current, assessment.term, assessment.late_fee)
            return current

        update_with_retry(
            self._ledger,
            record,
            charge,
            now=self._clock.now(),
            attempts=RECONCILE_MAX_ATTEMPTS,
        )

        for assessment in newly_charged:
            logger.info(
                "Late fee %s applied to student %s %s (balance %s, due %s)",
                assessment.late_fee,
                record.student_id,
                assessment.term.key,
                assessment.balance,
                assessment.due_date.isoformat(),
            )
        return len(newly_charged)
