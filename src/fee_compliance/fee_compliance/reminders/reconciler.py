from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

from ..common.batch import BatchSummary
from ..common.datetime_utils import Clock, SystemClock
from ..core.constants import PAYMENT_TYPE_HOSTEL_FEE, RECONCILE_MAX_ATTEMPTS
from ..core.enums import FeeStatus, Term
from ..core.exceptions import DomainError, NotFoundError, StaleRecordError, ValidationError
from ..payments.model import PaymentEntry
from ..payments.repository import PaymentLedger
from ..students.repository import StudentDirectory
from .cas import update_with_retry
from .model import ReminderRecord
from .repository import ReminderLedger

logger = logging.getLogger(__name__)


def recompute_fee_status(record: ReminderRecord, payments: Sequence[PaymentEntry]) -> ReminderRecord:
    """Overwrite fee status from the ledger and hide reminders of paid terms."""
    paid_terms = {p.term for p in payments}
    status = tuple(FeeStatus.PAID if t in paid_terms else FeeStatus.UNPAID for t in Term)

    updated = replace(record, fee_status=status)
    for term in Term:
        state = updated.state(term)
        if status[term.index] == FeeStatus.PAID and state.visible:
            updated = updated.with_state(term, replace(state, visible=False))
    return updated.with_level_recomputed()


class PaymentReconciler:
    def __init__(
        self,
        ledger: ReminderLedger,
        payments: PaymentLedger,
        students: StudentDirectory,
        *,
        clock: Optional[Clock] = None,
        max_attempts: int = RECONCILE_MAX_ATTEMPTS,
    ):
        self._ledger = ledger
        self._payments = payments
        self._students = students
        self._clock = clock or SystemClock()
        self._max_attempts = int(max_attempts)

    def reconcile(self, record: ReminderRecord) -> ReminderRecord:
        payments = self._payments.list_successful_payments(record.student_id, record.academic_year, PAYMENT_TYPE_HOSTEL_FEE)
        return update_with_retry(
            self._ledger,
            record,
            lambda current: recompute_fee_status(current, payments),
            now=self._clock.now(),
            attempts=self._max_attempts,
        )

    def reconcile_payments(self, student_id: int, academic_year: Optional[str] = None) -> ReminderRecord:
        if academic_year is None:
            student = self._students.get_student(student_id)
            if student is None:
                raise ValidationError(f"Student {student_id} not found")
            if not student.academic_year:
                raise ValidationError(f"Student {student_id} has no academic year")
            academic_year = student.academic_year

        record = self._ledger.get_for_student(student_id, academic_year)
        if record is None or not record.is_active:
            raise NotFoundError(f"No active fee reminder for student {student_id} in {academic_year}")

        updated = self.reconcile(record)
        logger.info(
            "Reconciled student %s %s: %s",
            student_id,
            academic_year,
            {t.key: updated.status(t).value for t in Term},
        )
        return updated

    def reconcile_all(self) -> BatchSummary:
        summary = BatchSummary(name="payment_reconcile")
        records = self._ledger.list_active()
        summary.total = len(records)

        for record in records:
            try:
                updated = self.reconcile(record)
                if updated.version != record.version:
                    summary.processed += 1
            except StaleRecordError as e:
                summary.conflicts += 1
                logger.warning("Reconcile of reminder %s gave up: %s", record.reminder_id, e)
            except DomainError as e:
                summary.skipped += 1
                logger.warning("Reconcile of reminder %s skipped: %s", record.reminder_id, e)
            except Exception:
                summary.errors += 1
                logger.exception("Reconcile of reminder %s failed", record.reminder_id)

        logger.info("Payment reconciliation finished: %s", summary.as_dict())
        return summary
