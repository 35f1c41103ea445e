from __future__ import annotations

from typing import Optional, Protocol

from .model import FeeStructure


class FeeSchedule(Protocol):
    """Interface to the fee-structure tables maintained by the admin CRUD."""

    def get_fee_structure(
        self,
        *,
        academic_year: str,
        course_id: int,
        year_of_study: int,
        category: Optional[str] = None,
    ) -> Optional[FeeStructure]:
        raise NotImplementedError
