from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

import pytest

from src.fee_compliance.fee_compliance.common.datetime_utils import FrozenClock
from src.fee_compliance.fee_compliance.core.enums import Channel, Semester, Term
from src.fee_compliance.fee_compliance.due_dates.resolver import DueDateResolver
from src.fee_compliance.fee_compliance.fees.model import FeeStructure
from src.fee_compliance.fee_compliance.notifications.dispatcher import NotificationDispatcher
from src.fee_compliance.fee_compliance.notifications.model import InAppNotification, NotificationPayload
from src.fee_compliance.fee_compliance.payments.model import PaymentEntry
from src.fee_compliance.fee_compliance.policies.model import (
    PolicyKey,
    ReminderChannelSettings,
    TermPolicy,
    TermReminderDays,
    TermSchedule,
)
from src.fee_compliance.fee_compliance.reminders.model import ReminderRecord
from src.fee_compliance.fee_compliance.students.model import Student

ACADEMIC_YEAR = "2024-2025"


@dataclass
class InMemoryStudents:
    students: dict[int, Student] = field(default_factory=dict)

    def add(self, student: Student) -> Student:
        self.students[student.student_id] = student
        return student

    def get_student(self, student_id: int) -> Optional[Student]:
        return self.students.get(int(student_id))

    def list_active_students(self):
        return [s for s in self.students.values() if s.is_active]


@dataclass
class InMemoryCalendar:
    starts: dict[tuple[int, str, Semester], date] = field(default_factory=dict)

    def set_start(self, course_id: int, academic_year: str, semester: Semester, start: date) -> None:
        self.starts[(course_id, academic_year, semester)] = start

    def get_semester_start(self, course_id: int, academic_year: str, semester: Semester) -> Optional[date]:
        return self.starts.get((course_id, academic_year, semester))


class InMemoryPayments:
    def __init__(self):
        self.entries: dict[tuple[int, str], list[PaymentEntry]] = {}

    def pay(self, student_id: int, term: Term, amount, academic_year: str = ACADEMIC_YEAR) -> None:
        self.entries.setdefault((student_id, academic_year), []).append(PaymentEntry(term=term, amount=Decimal(str(amount))))

    def list_successful_payments(self, student_id: int, academic_year: str, payment_type: str):
        return list(self.entries.get((student_id, academic_year), []))


@dataclass
class InMemoryFeeSchedule:
    structures: dict[tuple[str, int, int], FeeStructure] = field(default_factory=dict)

    def add(self, structure: FeeStructure) -> None:
        self.structures[(structure.academic_year, structure.course_id, structure.year_of_study)] = structure

    def get_fee_structure(self, *, academic_year, course_id, year_of_study, category=None):
        return self.structures.get((academic_year, int(course_id), int(year_of_study)))


class InMemoryPolicies:
    def __init__(self):
        self.policies: dict[PolicyKey, TermPolicy] = {}
        self.channel_settings = ReminderChannelSettings()

    def get_policy(self, key: PolicyKey) -> Optional[TermPolicy]:
        policy = self.policies.get(key)
        return policy if policy is not None and policy.is_active else None

    def list_policies(self):
        return list(self.policies.values())

    def upsert_policy(self, policy: TermPolicy) -> None:
        self.policies[policy.key] = policy

    def delete_policy(self, key: PolicyKey) -> bool:
        return self.policies.pop(key, None) is not None

    def get_channel_settings(self) -> ReminderChannelSettings:
        return self.channel_settings

    def save_channel_settings(self, settings: ReminderChannelSettings) -> None:
        self.channel_settings = settings


class InMemoryLedger:
    """Reminder ledger with the same compare-and-set contract as the MySQL one.

    ``before_write`` runs just before a compare-and-set is checked, which lets
    a test slip in a concurrent writer.
    """

    def __init__(self):
        self._next_id = 1
        self.records: dict[int, ReminderRecord] = {}
        self.cas_calls = 0
        self.before_write: Optional[Callable[[ReminderRecord], None]] = None

    def get(self, reminder_id: int) -> Optional[ReminderRecord]:
        return self.records.get(int(reminder_id))

    def get_for_student(self, student_id: int, academic_year: str) -> Optional[ReminderRecord]:
        for record in self.records.values():
            if record.student_id == student_id and record.academic_year == academic_year:
                return record
        return None

    def list_active(self):
        return [r for r in self.records.values() if r.is_active]

    def create(self, record: ReminderRecord) -> int:
        rid = self._next_id
        self._next_id += 1
        self.records[rid] = replace(record, reminder_id=rid)
        return rid

    def compare_and_set(self, record: ReminderRecord, *, expected_version: int) -> bool:
        self.cas_calls += 1
        if self.before_write is not None:
            hook, self.before_write = self.before_write, None
            hook(record)
        current = self.records.get(record.reminder_id)
        if current is None or current.version != expected_version:
            return False
        applied = tuple(a or b for a, b in zip(current.late_fee_applied, record.late_fee_applied))
        self.records[record.reminder_id] = replace(record, late_fee_applied=applied, version=expected_version + 1)
        return True

    def bump_version(self, reminder_id: int, **changes) -> None:
        current = self.records[reminder_id]
        self.records[reminder_id] = replace(current, version=current.version + 1, **changes)


class InMemoryInbox:
    def __init__(self, *, fail: bool = False):
        self.items: list[InAppNotification] = []
        self.fail = fail

    def add(self, notification: InAppNotification) -> int:
        if self.fail:
            raise RuntimeError("inbox down")
        self.items.append(notification)
        return len(self.items)

    def list_for_recipient(self, recipient_id: int, *, limit: int = 50):
        return [n for n in self.items if n.recipient_id == recipient_id][:limit]


class RecordingChannel:
    def __init__(self, channel: Channel, *, result: bool = True, error: Optional[Exception] = None):
        self.channel = channel
        self.result = result
        self.error = error
        self.sent: list[tuple[int, NotificationPayload]] = []

    def send(self, student: Student, payload: NotificationPayload) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append((student.student_id, payload))
        return self.result


def make_student(
    student_id: int = 1,
    *,
    course_id: Optional[int] = 10,
    year_of_study: Optional[int] = 1,
    academic_year: Optional[str] = ACADEMIC_YEAR,
    registration_date: date = date(2024, 5, 20),
    calculated_term_fees=None,
    email: Optional[str] = "student@example.edu",
    phone: Optional[str] = "9000000000",
) -> Student:
    return Student(
        student_id=student_id,
        name=f"Student {student_id}",
        course_id=course_id,
        year_of_study=year_of_study,
        academic_year=academic_year,
        registration_date=registration_date,
        email=email,
        phone=phone,
        calculated_term_fees=calculated_term_fees,
    )


def make_policy(
    *,
    course_id: int = 10,
    academic_year: str = ACADEMIC_YEAR,
    year_of_study: int = 1,
    days=(5, 90, 30),
    anchors=(Semester.SEMESTER_1, Semester.SEMESTER_1, Semester.SEMESTER_2),
    late_fees=(500, 500, 500),
    pre_days=(7, 3, 1),
    post_days=(1, 3, 7),
) -> TermPolicy:
    return TermPolicy(
        key=PolicyKey(course_id=course_id, academic_year=academic_year, year_of_study=year_of_study),
        terms=tuple(
            TermSchedule(days_from_anchor=d, anchor_semester=a, late_fee=Decimal(str(f)))
            for d, a, f in zip(days, anchors, late_fees)
        ),
        reminder_days=tuple(TermReminderDays(tuple(pre_days), tuple(post_days)) for _ in Term),
    )


def make_record(
    *,
    student_id: int = 1,
    due_dates=(date(2024, 6, 6), date(2024, 8, 30), date(2025, 1, 14)),
    fee_amounts=(20000, 15000, 15000),
    registration_date: date = date(2024, 5, 20),
    **changes,
) -> ReminderRecord:
    record = ReminderRecord(
        reminder_id=0,
        student_id=student_id,
        academic_year=ACADEMIC_YEAR,
        registration_date=registration_date,
        term_due_dates=tuple(due_dates),
        fee_amounts=tuple(Decimal(str(a)) for a in fee_amounts),
    )
    return replace(record, **changes)


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2024, 6, 6, 9, 0, 0))


@pytest.fixture()
def students():
    return InMemoryStudents()


@pytest.fixture()
def calendar():
    cal = InMemoryCalendar()
    cal.set_start(10, ACADEMIC_YEAR, Semester.SEMESTER_1, date(2024, 6, 1))
    cal.set_start(10, ACADEMIC_YEAR, Semester.SEMESTER_2, date(2024, 12, 15))
    return cal


@pytest.fixture()
def payments():
    return InMemoryPayments()


@pytest.fixture()
def fee_schedule():
    return InMemoryFeeSchedule()


@pytest.fixture()
def policies():
    return InMemoryPolicies()


@pytest.fixture()
def ledger():
    return InMemoryLedger()


@pytest.fixture()
def inbox():
    return InMemoryInbox()


@pytest.fixture()
def channels():
    return {channel: RecordingChannel(channel) for channel in Channel}


@pytest.fixture()
def dispatcher(channels, inbox, clock):
    return NotificationDispatcher(channels, inbox, clock=clock)


@pytest.fixture()
def resolver(policies, calendar, clock):
    return DueDateResolver(policies, calendar, clock=clock)


@pytest.fixture(name="make_student")
def make_student_fixture():
    return make_student


@pytest.fixture(name="make_policy")
def make_policy_fixture():
    return make_policy


@pytest.fixture(name="make_record")
def make_record_fixture():
    return make_record
