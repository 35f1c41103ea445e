from __future__ import annotations

from typing import Protocol, Sequence

from .model import PaymentEntry


class PaymentLedger(Protocol):
    """Interface to the payment ledger, the source of truth for paid amounts."""

    def list_successful_payments(self, student_id: int, academic_year: str, payment_type: str) -> Sequence[PaymentEntry]:
        raise NotImplementedError
