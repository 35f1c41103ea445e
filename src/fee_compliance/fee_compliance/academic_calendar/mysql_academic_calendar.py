from __future__ import annotations

from datetime import date
from typing import Optional

from ..core.enums import Semester
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_date, db_cursor, fetchone
from .repository import AcademicCalendar


class MySQLAcademicCalendar(AcademicCalendar):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_semester_start(self, course_id: int, academic_year: str, semester: Semester) -> Optional[date]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT start_date
                FROM academic_calendars
                WHERE course_id=%s AND academic_year=%s AND semester=%s AND is_active=1
                ORDER BY year_of_study ASC
                LIMIT 1
                """,
                (int(course_id), academic_year, semester.value),
            )
            r = fetchone(cur)
            return as_date(r["start_date"]) if r else None
