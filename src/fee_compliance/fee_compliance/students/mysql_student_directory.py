from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_date, as_decimal, db_cursor, fetchall, fetchone
from .model import Student
from .repository import StudentDirectory

_COLUMNS = """
    student_id, name, course_id, year_of_study, academic_year, registration_date,
    category, email, phone, calculated_term1_fee, calculated_term2_fee, calculated_term3_fee,
    hostel_status
"""


class MySQLStudentDirectory(StudentDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_student(r: dict) -> Student:
        fees = (r.get("calculated_term1_fee"), r.get("calculated_term2_fee"), r.get("calculated_term3_fee"))
        calculated = tuple(as_decimal(f) for f in fees) if all(f is not None for f in fees) else None
        return Student(
            student_id=int(r["student_id"]),
            name=r["name"],
            course_id=int(r["course_id"]) if r.get("course_id") is not None else None,
            year_of_study=int(r["year_of_study"]) if r.get("year_of_study") is not None else None,
            academic_year=r.get("academic_year"),
            registration_date=as_date(r["registration_date"]),
            category=r.get("category"),
            email=r.get("email"),
            phone=r.get("phone"),
            calculated_term_fees=calculated,
            is_active=(r.get("hostel_status") or "") == "Active",
        )

    def get_student(self, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE student_id=%s", (int(student_id),))
            r = fetchone(cur)
            return self._to_student(r) if r else None

    def list_active_students(self) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE hostel_status='Active' ORDER BY student_id")
            return [self._to_student(r) for r in fetchall(cur)]
