from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, fetchone
from .model import FeeStructure
from .repository import FeeSchedule


class MySQLFeeSchedule(FeeSchedule):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_fee_structure(
        self,
        *,
        academic_year: str,
        course_id: int,
        year_of_study: int,
        category: Optional[str] = None,
    ) -> Optional[FeeStructure]:
        # A category-specific row wins over the course-wide one (category NULL).
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT academic_year, course_id, year_of_study, category,
                       term1_fee, term2_fee, term3_fee, total_fee
                FROM fee_structures
                WHERE academic_year=%s AND course_id=%s AND year_of_study=%s
                  AND (category=%s OR category IS NULL) AND is_active=1
                ORDER BY category IS NULL ASC
                LIMIT 1
                """,
                (academic_year, int(course_id), int(year_of_study), category),
            )
            r = fetchone(cur)
            if not r:
                return None

            term_fees = None
            if r.get("term1_fee") is not None:
                term_fees = (as_decimal(r["term1_fee"]), as_decimal(r["term2_fee"]), as_decimal(r["term3_fee"]))
            return FeeStructure(
                academic_year=r["academic_year"],
                course_id=int(r["course_id"]),
                year_of_study=int(r["year_of_study"]),
                category=r.get("category"),
                term_fees=term_fees,
                total_fee=as_decimal(r["total_fee"]) if r.get("total_fee") is not None else None,
            )
