from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .academic_calendar.mysql_academic_calendar import MySQLAcademicCalendar
from .common.datetime_utils import Clock, SystemClock
from .core.constants import (
    DEFAULT_LATE_FEE_HOURS,
    DEFAULT_RECONCILE_MINUTES,
    DEFAULT_REMINDER_CYCLE_MINUTES,
    DEFAULT_SCHEDULER_POLL_SECONDS,
)
from .core.enums import Channel
from .database.connection import DBConfig, DatabaseConnection
from .due_dates.resolver import DueDateResolver
from .fees.mysql_fee_schedule import MySQLFeeSchedule
from .late_fees.processor import LateFeeProcessor
from .notifications.channels import LoggingChannel
from .notifications.dispatcher import NotificationDispatcher
from .notifications.mysql_notification_repository import MySQLNotificationRepository
from .payments.mysql_payment_ledger import MySQLPaymentLedger
from .policies.mysql_policy_repository import MySQLPolicyRepository
from .policies.service import PolicyService
from .reminders.cycle import ReminderCycleProcessor
from .reminders.mysql_reminder_ledger import MySQLReminderLedger
from .reminders.reconciler import PaymentReconciler
from .reminders.service import ReminderLedgerService
from .scheduling.scheduler import FeeScheduler, PeriodicJob
from .students.mysql_student_directory import MySQLStudentDirectory


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    clock: Clock

    students_repo: MySQLStudentDirectory
    calendar_repo: MySQLAcademicCalendar
    payments_repo: MySQLPaymentLedger
    fee_schedule_repo: MySQLFeeSchedule
    policies_repo: MySQLPolicyRepository
    reminders_repo: MySQLReminderLedger
    notifications_repo: MySQLNotificationRepository

    resolver: DueDateResolver
    policy_service: PolicyService
    reminder_service: ReminderLedgerService
    reconciler: PaymentReconciler
    reminder_cycle: ReminderCycleProcessor
    late_fee_processor: LateFeeProcessor
    scheduler: FeeScheduler


def build_container(
    *,
    db_config: dict,
    clock: Optional[Clock] = None,
    reminder_interval: timedelta = timedelta(minutes=DEFAULT_REMINDER_CYCLE_MINUTES),
    reconcile_interval: timedelta = timedelta(minutes=DEFAULT_RECONCILE_MINUTES),
    late_fee_interval: timedelta = timedelta(hours=DEFAULT_LATE_FEE_HOURS),
    poll_seconds: float = DEFAULT_SCHEDULER_POLL_SECONDS,
    default_academic_year: Optional[str] = None,
) -> Container:
    clock = clock or SystemClock()
    conn = DatabaseConnection(DBConfig.from_dict(db_config))

    students_repo = MySQLStudentDirectory(conn)
    calendar_repo = MySQLAcademicCalendar(conn)
    payments_repo = MySQLPaymentLedger(conn)
    fee_schedule_repo = MySQLFeeSchedule(conn)
    policies_repo = MySQLPolicyRepository(conn)
    reminders_repo = MySQLReminderLedger(conn)
    notifications_repo = MySQLNotificationRepository(conn)

    # Real transports plug in here; until then every channel only logs.
    dispatcher = NotificationDispatcher(
        {channel: LoggingChannel(channel) for channel in Channel},
        notifications_repo,
        clock=clock,
    )

    resolver = DueDateResolver(policies_repo, calendar_repo, clock=clock)
    policy_service = PolicyService(policies_repo, resolver, clock=clock)
    reminder_service = ReminderLedgerService(
        reminders_repo,
        students_repo,
        fee_schedule_repo,
        resolver,
        clock=clock,
        default_academic_year=default_academic_year,
    )
    reconciler = PaymentReconciler(reminders_repo, payments_repo, students_repo, clock=clock)
    reminder_cycle = ReminderCycleProcessor(reminders_repo, students_repo, policies_repo, dispatcher, clock=clock)
    late_fee_processor = LateFeeProcessor(
        reminders_repo,
        students_repo,
        resolver,
        payments_repo,
        fee_schedule_repo,
        clock=clock,
    )

    # Jobs due on the same tick run in this order.
    scheduler = FeeScheduler(
        [
            PeriodicJob("payment_reconcile", reconcile_interval, reconciler.reconcile_all),
            PeriodicJob("reminder_cycle", reminder_interval, reminder_cycle.run),
            PeriodicJob("late_fee_cycle", late_fee_interval, late_fee_processor.run),
        ],
        clock=clock,
        poll_seconds=poll_seconds,
    )

    return Container(
        conn=conn,
        clock=clock,
        students_repo=students_repo,
        calendar_repo=calendar_repo,
        payments_repo=payments_repo,
        fee_schedule_repo=fee_schedule_repo,
        policies_repo=policies_repo,
        reminders_repo=reminders_repo,
        notifications_repo=notifications_repo,
        resolver=resolver,
        policy_service=policy_service,
        reminder_service=reminder_service,
        reconciler=reconciler,
        reminder_cycle=reminder_cycle,
        late_fee_processor=late_fee_processor,
        scheduler=scheduler,
    )
