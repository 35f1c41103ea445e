from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..core.constants import DEFAULT_TERM_FEE, TERM_FEE_SPLIT_PERCENT

TermAmounts = tuple[Decimal, Decimal, Decimal]


def split_total_fee(total: Decimal, percents: tuple[int, int, int] = TERM_FEE_SPLIT_PERCENT) -> TermAmounts:
    """Split a yearly total into three whole-unit term amounts.

    Term 1 and term 2 are rounded half-up independently; term 3 takes the
    remainder so the three amounts always add up to ``total``.
    """
    total = Decimal(total)
    unit = Decimal("1")
    first = (total * percents[0] / 100).quantize(unit, rounding=ROUND_HALF_UP)
    second = (total * percents[1] / 100).quantize(unit, rounding=ROUND_HALF_UP)
    return first, second, total - first - second


@dataclass(frozen=True)
class FeeStructure:
    academic_year: str
    course_id: int
    year_of_study: int
    category: Optional[str]
    term_fees: Optional[TermAmounts] = None
    total_fee: Optional[Decimal] = None

    def term_amounts(self) -> TermAmounts:
        if self.term_fees is not None and any(f > 0 for f in self.term_fees):
            return self.term_fees
        if self.total_fee is not None:
            return split_total_fee(self.total_fee)
        return DEFAULT_TERM_FEE, DEFAULT_TERM_FEE, DEFAULT_TERM_FEE


def nominal_term_fees(structure: Optional[FeeStructure]) -> TermAmounts:
    """Amounts cached on a new reminder record."""
    if structure is None:
        return DEFAULT_TERM_FEE, DEFAULT_TERM_FEE, DEFAULT_TERM_FEE
    return structure.term_amounts()
