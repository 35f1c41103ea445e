from __future__ import annotations

import logging
from typing import Sequence

from ..core.enums import Term
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, fetchall
from .model import PaymentEntry
from .repository import PaymentLedger

logger = logging.getLogger(__name__)


class MySQLPaymentLedger(PaymentLedger):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_successful_payments(self, student_id: int, academic_year: str, payment_type: str) -> Sequence[PaymentEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT term, amount
                FROM payments
                WHERE student_id=%s AND academic_year=%s AND payment_type=%s AND status='success'
                """,
                (int(student_id), academic_year, payment_type),
            )
            rows = fetchall(cur)

        out: list[PaymentEntry] = []
        for r in rows:
            # Legacy rows store "term1" or 1; anything else is not a term payment.
            try:
                term = Term.parse(r.get("term"))
            except ValueError:
                logger.warning("Ignoring payment with unknown term %r for student %s", r.get("term"), student_id)
                continue
            out.append(PaymentEntry(term=term, amount=as_decimal(r.get("amount"))))
        return out
