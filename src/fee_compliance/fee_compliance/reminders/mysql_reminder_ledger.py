from __future__ import annotations

from itertools import groupby
from typing import Optional, Sequence

from ..core.enums import DueDateSource, FeeStatus, Term
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    as_bool,
    as_date,
    as_decimal,
    db_cursor,
    fetchall,
    join_csv_ints,
    split_csv_ints,
)
from .model import ReminderRecord, TermReminderState
from .repository import ReminderLedger

_SELECT = """
    SELECT
        r.reminder_id, r.student_id, r.academic_year, r.registration_date, r.current_level,
        r.due_date_source, r.is_active, r.last_updated_at, r.version,
        t.term, t.due_date, t.fee_amount, t.fee_status, t.visible, t.issued_at,
        t.late_fee_applied, t.late_fee_accrued, t.pre_sent, t.post_sent
    FROM fee_reminders r
    JOIN fee_reminder_terms t ON t.reminder_id = r.reminder_id
"""


class MySQLReminderLedger(ReminderLedger):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_record(rows: list[dict]) -> ReminderRecord:
        by_term = {Term.parse(r["term"]): r for r in rows}
        terms = [by_term[t] for t in Term]
        head = rows[0]
        return ReminderRecord(
            reminder_id=int(head["reminder_id"]),
            student_id=int(head["student_id"]),
            academic_year=head["academic_year"],
            registration_date=as_date(head["registration_date"]),
            term_due_dates=tuple(as_date(t["due_date"]) for t in terms),
            fee_amounts=tuple(as_decimal(t["fee_amount"]) for t in terms),
            fee_status=tuple(FeeStatus(t["fee_status"]) for t in terms),
            reminder_state=tuple(
                TermReminderState(
                    visible=as_bool(t["visible"]),
                    issued_at=t.get("issued_at"),
                    pre_sent=split_csv_ints(t.get("pre_sent")),
                    post_sent=split_csv_ints(t.get("post_sent")),
                )
                for t in terms
            ),
            current_level=int(head["current_level"] or 0),
            late_fee_applied=tuple(as_bool(t["late_fee_applied"]) for t in terms),
            term_late_fee_accrued=tuple(as_decimal(t["late_fee_accrued"]) for t in terms),
            due_date_source=DueDateSource(head["due_date_source"]),
            is_active=as_bool(head["is_active"]),
            last_updated_at=head.get("last_updated_at"),
            version=int(head["version"]),
        )

    def _query(self, where: str, params: tuple) -> list[ReminderRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE {where} ORDER BY r.reminder_id ASC, t.term ASC", params)
            rows = fetchall(cur)
        return [self._to_record(list(group)) for _, group in groupby(rows, key=lambda r: r["reminder_id"])]

    def get(self, reminder_id: int) -> Optional[ReminderRecord]:
        found = self._query("r.reminder_id=%s", (int(reminder_id),))
        return found[0] if found else None

    def get_for_student(self, student_id: int, academic_year: str) -> Optional[ReminderRecord]:
        found = self._query("r.student_id=%s AND r.academic_year=%s", (int(student_id), academic_year))
        return found[0] if found else None

    def list_active(self) -> Sequence[ReminderRecord]:
        return self._query("r.is_active=1", ())

    def create(self, record: ReminderRecord) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO fee_reminders(
                    student_id, academic_year, registration_date, current_level,
                    due_date_source, is_active, last_updated_at, version
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(record.student_id),
                    record.academic_year,
                    record.registration_date,
                    int(record.current_level),
                    record.due_date_source.value,
                    1 if record.is_active else 0,
                    record.last_updated_at,
                    int(record.version),
                ),
            )
            reminder_id = int(cur.lastrowid)
            for term in Term:
                state = record.state(term)
                cur.execute(
                    """
                    INSERT INTO fee_reminder_terms(
                        reminder_id, term, due_date, fee_amount, fee_status, visible, issued_at,
                        late_fee_applied, late_fee_accrued, pre_sent, post_sent
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        reminder_id,
                        int(term),
                        record.due_date(term),
                        record.fee_amount(term),
                        record.status(term).value,
                        1 if state.visible else 0,
                        state.issued_at,
                        1 if record.late_fee_applied[term.index] else 0,
                        record.term_late_fee_accrued[term.index],
                        join_csv_ints(state.pre_sent),
                        join_csv_ints(state.post_sent),
                    ),
                )
            return reminder_id

    def compare_and_set(self, record: ReminderRecord, *, expected_version: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE fee_reminders
                SET registration_date=%s, current_level=%s, due_date_source=%s, is_active=%s,
                    last_updated_at=%s, version=version+1
                WHERE reminder_id=%s AND version=%s
                """,
                (
                    record.registration_date,
                    int(record.current_level),
                    record.due_date_source.value,
                    1 if record.is_active else 0,
                    record.last_updated_at,
                    int(record.reminder_id),
                    int(expected_version),
                ),
            )
            if cur.rowcount == 0:
                return False

            # Same transaction: the version bump above holds the row lock.
            for term in Term:
                state = record.state(term)
                cur.execute(
                    """
                    UPDATE fee_reminder_terms
                    SET due_date=%s, fee_amount=%s, fee_status=%s, visible=%s, issued_at=%s,
                        late_fee_applied=(late_fee_applied OR %s), late_fee_accrued=%s,
                        pre_sent=%s, post_sent=%s
                    WHERE reminder_id=%s AND term=%s
                    """,
                    (
                        record.due_date(term),
                        record.fee_amount(term),
                        record.status(term).value,
                        1 if state.visible else 0,
                        state.issued_at,
                        1 if record.late_fee_applied[term.index] else 0,
                        record.term_late_fee_accrued[term.index],
                        join_csv_ints(state.pre_sent),
                        join_csv_ints(state.post_sent),
                        int(record.reminder_id),
                        int(term),
                    ),
                )
            return True
