from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Optional, Sequence

from ..common.datetime_utils import Clock, SystemClock
from ..common.validators import (
    require_academic_year,
    require_int_range,
    require_non_negative_amount,
)
from ..core.constants import DEFAULT_POST_REMINDER_DAYS, DEFAULT_PRE_REMINDER_DAYS, MAX_OFFSET_DAYS, MAX_YEAR_OF_STUDY
from ..core.enums import Semester, Term
from ..core.exceptions import NotFoundError, ValidationError
from ..due_dates.resolver import DueDates, DueDateResolver, due_dates_in_order, fallback_due_dates, policy_due_dates
from .model import ChannelToggles, PolicyKey, ReminderChannelSettings, TermPolicy, TermReminderDays, TermSchedule
from .repository import PolicyRepository

logger = logging.getLogger(__name__)


def _term_entry(payload: Mapping[str, Any], term: Term, what: str) -> Mapping[str, Any]:
    entry = payload.get(term.key)
    if entry is None:
        entry = payload.get(int(term))
    if not isinstance(entry, Mapping):
        raise ValidationError(f"Invalid {what} structure for {term.key}")
    return entry


def _offsets(values: Optional[Sequence[Any]], field_name: str, *, descending: bool) -> tuple[int, ...]:
    if values is None:
        return ()
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise ValidationError(f"{field_name} must be a list of days")
    days = {require_int_range(v, field_name, minimum=1, maximum=MAX_OFFSET_DAYS) for v in values}
    return tuple(sorted(days, reverse=descending))


class PolicyService:
    """Use cases: maintain term policies and channel switches."""

    def __init__(self, policies: PolicyRepository, resolver: DueDateResolver, *, clock: Optional[Clock] = None):
        self._policies = policies
        self._resolver = resolver
        self._clock = clock or SystemClock()

    @staticmethod
    def build_key(course_id, academic_year: str, year_of_study) -> PolicyKey:
        return PolicyKey(
            course_id=require_int_range(course_id, "course_id", minimum=1, maximum=2**31 - 1),
            academic_year=require_academic_year(academic_year),
            year_of_study=require_int_range(year_of_study, "year_of_study", minimum=1, maximum=MAX_YEAR_OF_STUDY),
        )

    @staticmethod
    def build_policy(
        key: PolicyKey,
        term_due_dates: Mapping[str, Any],
        reminder_days: Optional[Mapping[str, Any]] = None,
    ) -> TermPolicy:
        if not isinstance(term_due_dates, Mapping):
            raise ValidationError("term_due_dates is required")

        schedules = []
        days = []
        for term in Term:
            entry = _term_entry(term_due_dates, term, "term due dates")
            semester_raw = entry.get("anchor_semester") or Semester.SEMESTER_1.value
            try:
                semester = Semester(semester_raw)
            except ValueError:
                raise ValidationError(f"anchor_semester for {term.key} must be 'Semester 1' or 'Semester 2'")

            schedules.append(
                TermSchedule(
                    days_from_anchor=require_int_range(
                        entry.get("days_from_anchor"), f"{term.key}.days_from_anchor", minimum=1, maximum=MAX_OFFSET_DAYS
                    ),
                    anchor_semester=semester,
                    late_fee=require_non_negative_amount(entry.get("late_fee"), f"{term.key}.late_fee"),
                    description=(entry.get("description") or f"Term {int(term)} Due Date").strip(),
                )
            )

            if reminder_days is None:
                days.append(TermReminderDays(DEFAULT_PRE_REMINDER_DAYS, DEFAULT_POST_REMINDER_DAYS))
                continue
            r = _term_entry(reminder_days, term, "reminder days")
            days.append(
                TermReminderDays(
                    pre_reminder_days=_offsets(r.get("pre_reminders"), f"{term.key}.pre_reminders", descending=True),
                    post_reminder_days=_offsets(r.get("post_reminders"), f"{term.key}.post_reminders", descending=False),
                )
            )

        return TermPolicy(key=key, terms=tuple(schedules), reminder_days=tuple(days))

    def get_policy(self, key: PolicyKey) -> TermPolicy:
        policy = self._policies.get_policy(key)
        if policy is None:
            raise NotFoundError("Term due date configuration not found")
        return policy

    def list_policies(self) -> Sequence[TermPolicy]:
        return self._policies.list_policies()

    def save_policy(
        self,
        *,
        course_id,
        academic_year: str,
        year_of_study,
        term_due_dates: Mapping[str, Any],
        reminder_days: Optional[Mapping[str, Any]] = None,
    ) -> TermPolicy:
        """Validate and upsert the single policy for the key.

        Cached due dates on existing reminder records are not touched; run
        the recalculation pass afterwards to apply the new policy.
        """
        key = self.build_key(course_id, academic_year, year_of_study)
        policy = self.build_policy(key, term_due_dates, reminder_days)

        # Out-of-order terms are allowed, just surfaced.
        anchors = self._resolver.semester_anchors(key)
        preview = policy_due_dates(policy, anchors, self._clock.now().date())
        if not due_dates_in_order(preview):
            logger.warning("Policy %s yields out-of-order due dates %s", key, [d.isoformat() for d in preview])

        self._policies.upsert_policy(policy)
        logger.info("Saved term policy %s", key)
        return policy

    def delete_policy(self, key: PolicyKey) -> None:
        if not self._policies.delete_policy(key):
            raise NotFoundError("Term due date configuration not found")
        logger.info("Deleted term policy %s", key)

    def preview_due_dates(self, key: PolicyKey, semester_start: date) -> DueDates:
        """Due dates the key would get if both semesters started on ``semester_start``."""
        policy = self._policies.get_policy(key)
        if policy is None:
            return fallback_due_dates(semester_start)
        anchors = {semester: semester_start for semester in Semester}
        return policy_due_dates(policy, anchors, semester_start)

    def get_channel_settings(self) -> ReminderChannelSettings:
        return self._policies.get_channel_settings()

    def update_channel_settings(
        self,
        *,
        pre_due: Optional[Mapping[str, Any]] = None,
        post_due: Optional[Mapping[str, Any]] = None,
    ) -> ReminderChannelSettings:
        current = self._policies.get_channel_settings()

        def merge(toggles: ChannelToggles, patch: Optional[Mapping[str, Any]]) -> ChannelToggles:
            if patch is None:
                return toggles
            if not isinstance(patch, Mapping):
                raise ValidationError("Channel settings must be an object")
            unknown = set(patch) - {"push", "email", "sms"}
            if unknown:
                raise ValidationError(f"Unknown channels: {', '.join(sorted(unknown))}")
            return ChannelToggles(
                push=bool(patch.get("push", toggles.push)),
                email=bool(patch.get("email", toggles.email)),
                sms=bool(patch.get("sms", toggles.sms)),
            )

        updated = ReminderChannelSettings(
            pre_due=merge(current.pre_due, pre_due),
            post_due=merge(current.post_due, post_due),
        )
        self._policies.save_channel_settings(updated)
        return updated
