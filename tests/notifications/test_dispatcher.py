from __future__ import annotations

from datetime import date
from decimal import Decimal

from src.fee_compliance.fee_compliance.core.enums import Channel, ReminderKind, Term
from src.fee_compliance.fee_compliance.notifications.model import NotificationPayload

ALL = (Channel.PUSH, Channel.EMAIL, Channel.SMS)


def _payload(term=Term.TERM1, kind=ReminderKind.OVERDUE, offset_days=0):
    return NotificationPayload(
        student_id=1,
        academic_year="2024-2025",
        term=term,
        kind=kind,
        amount=Decimal("15000"),
        due_date=date(2024, 6, 6),
        offset_days=offset_days,
    )


def test_overdue_writes_in_app_and_sends(dispatcher, channels, inbox, make_student):
    report = dispatcher.dispatch(make_student(), _payload(), ALL)

    assert report.delivered == ALL
    assert report.in_app
    assert inbox.items[0].message == "First hostel fee reminder for 2024-2025. Please check your fee status."
    assert len(channels[Channel.SMS].sent) == 1


def test_pre_due_nudge_has_no_in_app_entry(dispatcher, inbox, make_student):
    report = dispatcher.dispatch(make_student(), _payload(kind=ReminderKind.PRE_DUE, offset_days=3), (Channel.PUSH,))

    assert report.delivered == (Channel.PUSH,)
    assert not report.in_app
    assert inbox.items == []


def test_missing_address_is_skipped(dispatcher, channels, make_student):
    report = dispatcher.dispatch(make_student(email=None, phone=None), _payload(), ALL)

    assert report.delivered == (Channel.PUSH,)
    assert report.skipped == (Channel.EMAIL, Channel.SMS)
    assert channels[Channel.EMAIL].sent == []


def test_each_channel_fails_independently(dispatcher, channels, make_student):
    channels[Channel.PUSH].error = ConnectionError("gateway timeout")
    channels[Channel.EMAIL].result = False

    report = dispatcher.dispatch(make_student(), _payload(), ALL)

    assert report.failed == (Channel.PUSH, Channel.EMAIL)
    assert report.delivered == (Channel.SMS,)


def test_titles_and_priority():
    assert _payload().title == "Hostel Fee Reminder #1"
    assert _payload().priority == "medium"
    assert _payload(term=Term.TERM3).priority == "high"
    assert _payload(kind=ReminderKind.PRE_DUE, offset_days=7).title == "Hostel Fee Due In 7 Day(s)"


def test_text_mentions_amount_and_due_date():
    text = _payload().text("Asha")

    assert "Asha" in text
    assert "Rs.15000" in text
    assert "06/06/2024" in text
