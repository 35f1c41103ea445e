from decimal import Decimal

from src.fee_compliance.fee_compliance.fees.model import FeeStructure, nominal_term_fees, split_total_fee


def test_split_even_total():
    assert split_total_fee(Decimal("50000")) == (Decimal("20000"), Decimal("15000"), Decimal("15000"))


def test_split_rounds_first_terms_and_keeps_total():
    first, second, third = split_total_fee(Decimal("12345"))

    assert (first, second) == (Decimal("4938"), Decimal("3704"))
    assert third == Decimal("3703")
    assert first + second + third == Decimal("12345")


def test_split_remainder_goes_to_term_three():
    assert split_total_fee(Decimal("10001")) == (Decimal("4000"), Decimal("3000"), Decimal("3001"))


def test_structure_prefers_explicit_term_fees():
    structure = FeeStructure(
        academic_year="2024-2025",
        course_id=1,
        year_of_study=1,
        category=None,
        term_fees=(Decimal("10000"), Decimal("9000"), Decimal("8000")),
        total_fee=Decimal("50000"),
    )

    assert structure.term_amounts() == (Decimal("10000"), Decimal("9000"), Decimal("8000"))


def test_structure_with_zero_term_fees_splits_total():
    structure = FeeStructure(
        academic_year="2024-2025",
        course_id=1,
        year_of_study=1,
        category=None,
        term_fees=(Decimal("0"), Decimal("0"), Decimal("0")),
        total_fee=Decimal("50000"),
    )

    assert structure.term_amounts() == (Decimal("20000"), Decimal("15000"), Decimal("15000"))


def test_missing_structure_defaults_each_term():
    assert nominal_term_fees(None) == (Decimal("15000"), Decimal("15000"), Decimal("15000"))
