from __future__ import annotations

from collections import defaultdict
from typing import Optional, Sequence

from ..core.enums import Semester, Term
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, as_decimal, db_cursor, fetchall, fetchone
from .model import ChannelToggles, PolicyKey, ReminderChannelSettings, TermPolicy, TermReminderDays, TermSchedule
from .repository import PolicyRepository

_SELECT = """
    SELECT course_id, academic_year, year_of_study, term, days_from_anchor, anchor_semester,
           late_fee, description, pre_reminder_days, post_reminder_days, is_active
    FROM term_policy_terms
"""


def _days(value) -> tuple[int, ...]:
    if not value:
        return ()
    return tuple(int(p) for p in str(value).split(",") if p.strip())


def _join_days(values: tuple[int, ...]) -> str:
    return ",".join(str(v) for v in values)


class MySQLPolicyRepository(PolicyRepository):
    """Stores one row per (course, academic year, year of study, term)."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_policy(rows: list[dict]) -> Optional[TermPolicy]:
        by_term = {Term.parse(r["term"]): r for r in rows}
        if set(by_term) != set(Term):
            return None

        first = rows[0]
        ordered = [by_term[t] for t in Term]
        return TermPolicy(
            key=PolicyKey(
                course_id=int(first["course_id"]),
                academic_year=first["academic_year"],
                year_of_study=int(first["year_of_study"]),
            ),
            terms=tuple(
                TermSchedule(
                    days_from_anchor=int(r["days_from_anchor"]),
                    anchor_semester=Semester(r["anchor_semester"]),
                    late_fee=as_decimal(r.get("late_fee")),
                    description=r.get("description"),
                )
                for r in ordered
            ),
            reminder_days=tuple(
                TermReminderDays(
                    pre_reminder_days=_days(r.get("pre_reminder_days")),
                    post_reminder_days=_days(r.get("post_reminder_days")),
                )
                for r in ordered
            ),
            is_active=all(as_bool(r.get("is_active")) for r in ordered),
        )

    def get_policy(self, key: PolicyKey) -> Optional[TermPolicy]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE course_id=%s AND academic_year=%s AND year_of_study=%s AND is_active=1",
                (int(key.course_id), key.academic_year, int(key.year_of_study)),
            )
            rows = fetchall(cur)
        return self._to_policy(rows) if rows else None

    def list_policies(self) -> Sequence[TermPolicy]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " ORDER BY academic_year DESC, course_id ASC, year_of_study ASC, term ASC")
            rows = fetchall(cur)

        grouped: dict[tuple, list[dict]] = defaultdict(list)
        for r in rows:
            grouped[(int(r["course_id"]), r["academic_year"], int(r["year_of_study"]))].append(r)

        out = []
        for group in grouped.values():
            policy = self._to_policy(group)
            if policy is not None:
                out.append(policy)
        return out

    def upsert_policy(self, policy: TermPolicy) -> None:
        key = policy.key
        with db_cursor(self._conn_factory) as (_, cur):
            for term in Term:
                schedule = policy.term(term)
                days = policy.reminders_for(term)
                cur.execute(
                    """
                    INSERT INTO term_policy_terms(
                        course_id, academic_year, year_of_study, term, days_from_anchor, anchor_semester,
                        late_fee, description, pre_reminder_days, post_reminder_days, is_active
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    ON DUPLICATE KEY UPDATE
                        days_from_anchor=VALUES(days_from_anchor),
                        anchor_semester=VALUES(anchor_semester),
                        late_fee=VALUES(late_fee),
                        description=VALUES(description),
                        pre_reminder_days=VALUES(pre_reminder_days),
                        post_reminder_days=VALUES(post_reminder_days),
                        is_active=VALUES(is_active)
                    """,
                    (
                        int(key.course_id),
                        key.academic_year,
                        int(key.year_of_study),
                        int(term),
                        int(schedule.days_from_anchor),
                        schedule.anchor_semester.value,
                        schedule.late_fee,
                        schedule.description,
                        _join_days(days.pre_reminder_days),
                        _join_days(days.post_reminder_days),
                        1 if policy.is_active else 0,
                    ),
                )

    def delete_policy(self, key: PolicyKey) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM term_policy_terms WHERE course_id=%s AND academic_year=%s AND year_of_study=%s",
                (int(key.course_id), key.academic_year, int(key.year_of_study)),
            )
            return cur.rowcount > 0

    def get_channel_settings(self) -> ReminderChannelSettings:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT pre_push, pre_email, pre_sms, post_push, post_email, post_sms
                FROM reminder_channel_settings
                WHERE settings_id=1
                """
            )
            r = fetchone(cur)
        if not r:
            return ReminderChannelSettings()
        return ReminderChannelSettings(
            pre_due=ChannelToggles(push=as_bool(r["pre_push"]), email=as_bool(r["pre_email"]), sms=as_bool(r["pre_sms"])),
            post_due=ChannelToggles(push=as_bool(r["post_push"]), email=as_bool(r["post_email"]), sms=as_bool(r["post_sms"])),
        )

    def save_channel_settings(self, settings: ReminderChannelSettings) -> None:
        pre, post = settings.pre_due, settings.post_due
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO reminder_channel_settings(settings_id, pre_push, pre_email, pre_sms, post_push, post_email, post_sms)
                VALUES(1,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    pre_push=VALUES(pre_push), pre_email=VALUES(pre_email), pre_sms=VALUES(pre_sms),
                    post_push=VALUES(post_push), post_email=VALUES(post_email), post_sms=VALUES(post_sms)
                """,
                (int(pre.push), int(pre.email), int(pre.sms), int(post.push), int(post.email), int(post.sms)),
            )
