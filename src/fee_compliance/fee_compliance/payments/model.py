from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..core.enums import Term


@dataclass(frozen=True)
class PaymentEntry:
    """One successful payment as reported by the payment ledger."""

    term: Term
    amount: Decimal
