from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from src.fee_compliance.fee_compliance.core.enums import Channel, DueDateSource, FeeStatus, Semester, Term
from src.fee_compliance.fee_compliance.core.exceptions import NotFoundError, ValidationError
from src.fee_compliance.fee_compliance.fees.model import FeeStructure
from src.fee_compliance.fee_compliance.reminders.cycle import ReminderCycleProcessor
from src.fee_compliance.fee_compliance.reminders.service import ReminderLedgerService


@pytest.fixture()
def service(ledger, students, fee_schedule, resolver, clock):
    return ReminderLedgerService(ledger, students, fee_schedule, resolver, clock=clock)


def test_create_with_policy_caches_dates_and_fees(service, students, policies, fee_schedule, make_student, make_policy):
    students.add(make_student())
    policies.upsert_policy(make_policy())
    fee_schedule.add(
        FeeStructure(academic_year="2024-2025", course_id=10, year_of_study=1, category=None, total_fee=Decimal("50000"))
    )

    record = service.create_for_student(1)

    assert record.reminder_id == 1
    assert record.due_date_source == DueDateSource.POLICY
    assert record.term_due_dates == (date(2024, 6, 6), date(2024, 8, 30), date(2025, 1, 14))
    assert record.fee_amounts == (Decimal("20000"), Decimal("15000"), Decimal("15000"))
    assert record.fee_status == (FeeStatus.UNPAID,) * 3
    assert record.current_level == 0


def test_create_without_policy_uses_registration_fallback(service, students, make_student):
    students.add(make_student(registration_date=date(2024, 1, 1)))

    record = service.create_for_student(1)

    assert record.due_date_source == DueDateSource.FALLBACK
    assert record.term_due_dates == (date(2024, 1, 6), date(2024, 3, 31), date(2024, 7, 29))
    assert record.fee_amounts == (Decimal("15000"),) * 3


def test_create_rejects_duplicate_active_record(service, students, make_student):
    students.add(make_student())
    service.create_for_student(1)

    with pytest.raises(ValidationError):
        service.create_for_student(1)


def test_create_requires_known_student_and_valid_year(service, students, make_student):
    with pytest.raises(ValidationError):
        service.create_for_student(1)

    students.add(make_student(academic_year=None))
    with pytest.raises(ValidationError):
        service.create_for_student(1)


def test_deactivate_keeps_record_and_allows_readmission(service, ledger, students, make_student):
    students.add(make_student())
    created = service.create_for_student(1)

    deactivated = service.deactivate(1)

    assert not deactivated.is_active
    assert ledger.list_active() == []
    assert ledger.get(created.reminder_id) is not None

    again = service.create_for_student(1)
    assert again.reminder_id == created.reminder_id
    assert again.is_active


def test_backfill_creates_missing_records_only(service, ledger, students, make_student):
    students.add(make_student(1))
    students.add(make_student(2))
    students.add(make_student(3, academic_year=None))
    service.create_for_student(1)

    summary = service.create_for_all_students()

    assert summary.total == 3
    assert summary.processed == 1
    assert summary.skipped == 1
    assert summary.errors == 1
    assert {r.student_id for r in ledger.list_active()} == {1, 2}


def test_recalculate_applies_new_policy(service, ledger, students, policies, make_student, make_policy):
    students.add(make_student())
    created = service.create_for_student(1)
    assert created.due_date_source == DueDateSource.FALLBACK

    policies.upsert_policy(make_policy())
    summary = service.recalculate_all_due_dates()

    record = ledger.get(created.reminder_id)
    assert summary.processed == 1
    assert record.due_date_source == DueDateSource.POLICY
    assert record.term_due_dates[0] == date(2024, 6, 6)

    assert service.recalculate_all_due_dates().processed == 0


def test_policy_edit_does_not_touch_existing_records_until_recalculated(service, ledger, students, policies, make_student, make_policy):
    students.add(make_student())
    policies.upsert_policy(make_policy())
    created = service.create_for_student(1)

    policies.upsert_policy(make_policy(days=(10, 90, 30)))

    assert ledger.get(created.reminder_id).term_due_dates[0] == date(2024, 6, 6)
    service.recalculate_all_due_dates()
    assert ledger.get(created.reminder_id).term_due_dates[0] == date(2024, 6, 11)


def test_stats(service, ledger, students, make_student):
    students.add(make_student(1))
    students.add(make_student(2))
    service.create_for_student(1)
    paid = service.create_for_student(2)
    ledger.bump_version(paid.reminder_id, fee_status=(FeeStatus.PAID,) * 3)

    stats = service.stats()

    assert stats.total_records == 2
    assert stats.paid_students == 1
    assert stats.pending_students == 1
    assert stats.payment_rate == 50.0
    assert service.stats("2023-2024").total_records == 0


def test_get_record_missing(service, students, make_student):
    students.add(make_student())

    with pytest.raises(NotFoundError):
        service.get_record(1)


def test_resolve_due_dates_for_student(service, students, policies, make_student, make_policy):
    students.add(make_student())
    policies.upsert_policy(make_policy())

    assert service.resolve_due_dates(1).due_date(Term.TERM1) == date(2024, 6, 6)


def test_policy_scenario_end_to_end(service, ledger, students, policies, dispatcher, channels, clock, make_student, make_policy):
    students.add(make_student())
    policies.upsert_policy(make_policy())
    record = service.create_for_student(1)
    cycle = ReminderCycleProcessor(ledger, students, policies, dispatcher, clock=clock)

    cycle.run()
    clock.advance(timedelta(hours=1))
    cycle.run()

    assert ledger.get(record.reminder_id).state(Term.TERM1).visible
    assert len(channels[Channel.PUSH].sent) == 1
    assert len(channels[Channel.EMAIL].sent) == 1


def test_create_for_other_year_uses_that_years_policy_and_fees(
    service, students, policies, calendar, fee_schedule, make_student, make_policy
):
    students.add(make_student(academic_year="2024-2025"))
    policies.upsert_policy(make_policy())
    policies.upsert_policy(make_policy(academic_year="2025-2026", days=(10, 20, 30)))
    calendar.set_start(10, "2025-2026", Semester.SEMESTER_1, date(2025, 6, 1))
    calendar.set_start(10, "2025-2026", Semester.SEMESTER_2, date(2025, 12, 15))
    fee_schedule.add(
        FeeStructure(academic_year="2025-2026", course_id=10, year_of_study=1, category=None, total_fee=Decimal("60000"))
    )

    record = service.create_for_student(1, academic_year="2025-2026")

    assert record.academic_year == "2025-2026"
    assert record.due_date_source == DueDateSource.POLICY
    assert record.term_due_dates == (date(2025, 6, 11), date(2025, 6, 21), date(2026, 1, 14))
    assert record.fee_amounts == (Decimal("24000"), Decimal("18000"), Decimal("18000"))


def test_recalculate_resolves_each_record_in_its_own_year(
    service, ledger, students, policies, calendar, make_student, make_policy, make_record
):
    students.add(make_student(academic_year="2025-2026"))
    policies.upsert_policy(make_policy())
    policies.upsert_policy(make_policy(academic_year="2025-2026", days=(10, 20, 30)))
    calendar.set_start(10, "2025-2026", Semester.SEMESTER_1, date(2025, 6, 1))
    rid = ledger.create(make_record(due_dates=(date(2024, 1, 1),) * 3))

    service.recalculate_all_due_dates()

    record = ledger.get(rid)
    assert record.academic_year == "2024-2025"
    assert record.term_due_dates == (date(2024, 6, 6), date(2024, 8, 30), date(2025, 1, 14))
