from __future__ import annotations

from datetime import timedelta

import pytest

from src.fee_compliance.fee_compliance.common.batch import BatchSummary
from src.fee_compliance.fee_compliance.core.enums import Channel, Term
from src.fee_compliance.fee_compliance.notifications.dispatcher import NotificationDispatcher
from src.fee_compliance.fee_compliance.policies.model import ChannelToggles, ReminderChannelSettings
from src.fee_compliance.fee_compliance.reminders.cycle import ReminderCycleProcessor


@pytest.fixture()
def processor(ledger, students, policies, dispatcher, clock):
    return ReminderCycleProcessor(ledger, students, policies, dispatcher, clock=clock)


@pytest.fixture()
def reminder_id(ledger, students, policies, make_student, make_record, make_policy):
    students.add(make_student())
    policies.upsert_policy(make_policy())
    return ledger.create(make_record())


def _sent(channels, channel):
    return [payload for _, payload in channels[channel].sent]


def test_due_date_pulse_dispatches_on_enabled_channels(processor, ledger, channels, inbox, reminder_id):
    summary = processor.run()

    record = ledger.get(reminder_id)
    assert record.state(Term.TERM1).visible
    assert record.current_level == 1
    assert record.version == 1
    assert summary.processed == 1
    assert summary.counters["dispatched_overdue"] == 1

    assert len(_sent(channels, Channel.PUSH)) == 1
    assert len(_sent(channels, Channel.EMAIL)) == 1
    assert _sent(channels, Channel.SMS) == []
    assert [n.title for n in inbox.items] == ["Hostel Fee Reminder #1"]
    assert inbox.items[0].priority == "medium"


def test_second_run_same_day_does_not_dispatch_again(processor, ledger, channels, inbox, clock, reminder_id):
    processor.run()
    clock.advance(timedelta(minutes=30))

    summary = processor.run()

    assert summary.processed == 0
    assert len(_sent(channels, Channel.PUSH)) == 1
    assert len(inbox.items) == 1
    assert ledger.get(reminder_id).version == 1


def test_lost_compare_and_set_sends_nothing(processor, ledger, channels, inbox, reminder_id):
    ledger.before_write = lambda _: ledger.bump_version(reminder_id)

    summary = processor.run()

    assert summary.conflicts == 1
    assert summary.processed == 0
    assert _sent(channels, Channel.PUSH) == []
    assert inbox.items == []
    assert not ledger.get(reminder_id).state(Term.TERM1).visible

    processor.run()

    assert len(_sent(channels, Channel.PUSH)) == 1


def test_overlapping_passes_dispatch_once(processor, ledger, channels, clock, reminder_id):
    stale = ledger.get(reminder_id)
    processor.run()

    summary = BatchSummary(name="reminder_cycle")
    processor.process_record(
        stale,
        now=clock.now(),
        channel_settings=ReminderChannelSettings(),
        summary=summary,
    )

    assert summary.conflicts == 1
    assert len(_sent(channels, Channel.PUSH)) == 1


def test_channel_failure_does_not_block_other_channels(processor, ledger, channels, reminder_id):
    channels[Channel.PUSH].error = RuntimeError("push gateway down")

    summary = processor.run()

    assert ledger.get(reminder_id).state(Term.TERM1).visible
    assert len(_sent(channels, Channel.EMAIL)) == 1
    assert summary.counters["channel_failures"] == 1
    assert summary.errors == 0


def test_inbox_failure_does_not_undo_transition(ledger, students, policies, channels, clock, reminder_id):
    class BrokenInbox:
        def add(self, notification):
            raise RuntimeError("db down")

    dispatcher = NotificationDispatcher(channels, BrokenInbox(), clock=clock)
    processor = ReminderCycleProcessor(ledger, students, policies, dispatcher, clock=clock)

    processor.run()

    assert ledger.get(reminder_id).state(Term.TERM1).visible
    assert len(_sent(channels, Channel.PUSH)) == 1


def test_sms_goes_out_only_when_enabled_and_phone_known(processor, policies, students, channels, make_student, reminder_id):
    policies.save_channel_settings(ReminderChannelSettings(post_due=ChannelToggles(push=False, email=False, sms=True)))

    processor.run()

    assert len(_sent(channels, Channel.SMS)) == 1
    assert _sent(channels, Channel.PUSH) == []


def test_missing_student_is_skipped_and_batch_continues(processor, ledger, make_record, reminder_id):
    orphan = ledger.create(make_record(student_id=404))

    summary = processor.run()

    assert summary.total == 2
    assert summary.skipped == 1
    assert summary.processed == 1
    assert not ledger.get(orphan).state(Term.TERM1).visible


def test_post_due_nudge_the_day_after(processor, ledger, channels, clock, reminder_id):
    processor.run()
    clock.advance(timedelta(days=1))

    summary = processor.run()

    assert summary.counters["dispatched_post_due"] == 1
    assert len(_sent(channels, Channel.PUSH)) == 2
    assert ledger.get(reminder_id).state(Term.TERM1).post_sent == frozenset({1})


def test_reminder_expires_then_pulses_again_while_unpaid(processor, ledger, channels, clock, reminder_id):
    processor.run()

    clock.advance(timedelta(days=3, minutes=1))
    processor.run()
    assert not ledger.get(reminder_id).state(Term.TERM1).visible

    clock.advance(timedelta(hours=1))
    processor.run()
    assert ledger.get(reminder_id).state(Term.TERM1).visible


def test_nudges_follow_the_records_year_after_directory_rollover(processor, ledger, students, channels, clock, make_student, reminder_id):
    students.add(make_student(academic_year="2025-2026"))
    processor.run()
    clock.advance(timedelta(days=1))

    summary = processor.run()

    assert summary.counters["dispatched_post_due"] == 1
    assert ledger.get(reminder_id).state(Term.TERM1).post_sent == frozenset({1})
