"""Per-term reminder visibility state machine.

Each term pulses ``Hidden -> Visible -> Hidden``: it becomes visible once
the due date has arrived while the term is unpaid and it is not already
visible, and hides again once more than three days have passed since it was
issued, whether or not the term got paid in between. Every transition is
guarded by the state it reads, so evaluating the same record twice at the
same instant plans nothing the second time.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from ..core.constants import REMINDER_VISIBILITY_DAYS
from ..core.enums import FeeStatus, ReminderKind, Term
from ..policies.model import TermReminderDays
from .model import ReminderRecord, TermReminderState

VISIBILITY_WINDOW = timedelta(days=REMINDER_VISIBILITY_DAYS)


@dataclass(frozen=True)
class PlannedDispatch:
    term: Term
    kind: ReminderKind
    offset_days: int = 0


@dataclass(frozen=True)
class CyclePlan:
    record: ReminderRecord
    dispatches: tuple[PlannedDispatch, ...]
    changed: bool


def _step_pulse(state: TermReminderState, *, unpaid: bool, due_reached: bool, now: datetime) -> tuple[TermReminderState, bool]:
    fired = False
    if due_reached and unpaid and not state.visible:
        state = replace(state, visible=True, issued_at=now)
        fired = True

    if state.visible and state.issued_at is not None and now - state.issued_at > VISIBILITY_WINDOW:
        state = replace(state, visible=False)

    return state, fired


def _step_nudges(
    state: TermReminderState,
    days: TermReminderDays,
    *,
    record: ReminderRecord,
    term: Term,
    now: datetime,
    pulse_fired: bool,
) -> tuple[TermReminderState, list[PlannedDispatch]]:
    today = now.date()
    due = record.due_date(term)
    planned: list[PlannedDispatch] = []

    pre_due = [d for d in days.pre_reminder_days if d not in state.pre_sent and due - timedelta(days=d) <= today < due]
    if pre_due:
        # Several offsets reached in one pass collapse into the closest one.
        state = replace(state, pre_sent=state.pre_sent | frozenset(pre_due))
        planned.append(PlannedDispatch(term=term, kind=ReminderKind.PRE_DUE, offset_days=min(pre_due)))

    post_due = [d for d in days.post_reminder_days if d not in state.post_sent and today >= due + timedelta(days=d)]
    if post_due:
        state = replace(state, post_sent=state.post_sent | frozenset(post_due))
        if not pulse_fired:
            planned.append(PlannedDispatch(term=term, kind=ReminderKind.POST_DUE, offset_days=max(post_due)))

    return state, planned


def plan_cycle(
    record: ReminderRecord,
    now: datetime,
    reminder_days: Optional[tuple[TermReminderDays, ...]] = None,
) -> CyclePlan:
    """Evaluate every term of ``record`` at ``now``.

    ``reminder_days`` comes from the student's policy; without a policy only
    the visibility pulse runs.
    """
    updated = record
    dispatches: list[PlannedDispatch] = []

    for term in Term:
        unpaid = record.status(term) == FeeStatus.UNPAID
        state, fired = _step_pulse(
            record.state(term),
            unpaid=unpaid,
            due_reached=now.date() >= record.due_date(term),
            now=now,
        )
        if fired:
            dispatches.append(PlannedDispatch(term=term, kind=ReminderKind.OVERDUE))

        if unpaid and reminder_days is not None:
            state, nudges = _step_nudges(
                state,
                reminder_days[term.index],
                record=record,
                term=term,
                now=now,
                pulse_fired=fired,
            )
            dispatches.extend(nudges)

        updated = updated.with_state(term, state)

    updated = updated.with_level_recomputed()
    return CyclePlan(record=updated, dispatches=tuple(dispatches), changed=not updated.same_state_as(record))
