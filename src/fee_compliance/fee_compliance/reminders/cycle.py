from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..common.batch import BatchSummary
from ..common.datetime_utils import Clock, SystemClock
from ..core.exceptions import DomainError, ValidationError
from ..due_dates.resolver import policy_key_for
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.model import NotificationPayload
from ..policies.model import ReminderChannelSettings
from ..policies.repository import PolicyRepository
from ..students.repository import StudentDirectory
from .cas import save_if_unchanged
from .model import ReminderRecord
from .repository import ReminderLedger
from .state_machine import plan_cycle

logger = logging.getLogger(__name__)


class ReminderCycleProcessor:
    """Periodic pass advancing every active record's reminder state.

    Notifications go out only after the new state has been stored with
    compare-and-set, so an overlapping pass that loses the race sends nothing.
    """

    def __init__(
        self,
        ledger: ReminderLedger,
        students: StudentDirectory,
        policies: PolicyRepository,
        dispatcher: NotificationDispatcher,
        *,
        clock: Optional[Clock] = None,
    ):
        self._ledger = ledger
        self._students = students
        self._policies = policies
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()

    def run(self) -> BatchSummary:
        now = self._clock.now()
        summary = BatchSummary(name="reminder_cycle")
        channel_settings = self._policies.get_channel_settings()
        records = self._ledger.list_active()
        summary.total = len(records)
        logger.info("Reminder cycle started at %s for %d records", now.isoformat(), len(records))

        for record in records:
            try:
                if self.process_record(record, now=now, channel_settings=channel_settings, summary=summary):
                    summary.processed += 1
            except DomainError as e:
                summary.skipped += 1
                logger.warning("Skipping reminder %s (student %s): %s", record.reminder_id, record.student_id, e)
            except Exception:
                summary.errors += 1
                logger.exception("Reminder %s (student %s) failed", record.reminder_id, record.student_id)

        logger.info("Reminder cycle finished: %s", summary.as_dict())
        return summary

    def process_record(
        self,
        record: ReminderRecord,
        *,
        now: datetime,
        channel_settings: ReminderChannelSettings,
        summary: BatchSummary,
    ) -> bool:
        student = self._students.get_student(record.student_id)
        if student is None:
            raise ValidationError(f"Student {record.student_id} not found")

        policy = self._policies.get_policy(policy_key_for(student, record.academic_year)) if student.has_course else None
        plan = plan_cycle(record, now, policy.reminder_days if policy is not None else None)
        if not plan.changed:
            return False

        if save_if_unchanged(self._ledger, record, plan.record, now=now) is None:
            summary.conflicts += 1
            logger.info("Reminder %s changed concurrently, retrying next pass", record.reminder_id)
            return False

        for item in plan.dispatches:
            payload = NotificationPayload(
                student_id=student.student_id,
                academic_year=record.academic_year,
                term=item.term,
                kind=item.kind,
                amount=record.fee_amount(item.term),
                due_date=record.due_date(item.term),
                offset_days=item.offset_days,
            )
            report = self._dispatcher.dispatch(student, payload, channel_settings.channels_for(item.kind))
            summary.bump(f"dispatched_{item.kind.value}")
            summary.bump("channel_failures", len(report.failed))
        return True
