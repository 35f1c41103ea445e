from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from ..core.exceptions import ValidationError

_ACADEMIC_YEAR_RE = re.compile(r"^(\d{4})-(\d{4})$")


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_academic_year(value: str, field_name: str = "academic_year") -> str:
    value = require_non_empty(value, field_name)
    m = _ACADEMIC_YEAR_RE.match(value)
    if not m or int(m.group(2)) != int(m.group(1)) + 1:
        raise ValidationError(f"{field_name} must look like YYYY-YYYY with consecutive years")
    return value


def require_int_range(value, field_name: str, *, minimum: int, maximum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if number < minimum or number > maximum:
        raise ValidationError(f"{field_name} must be between {minimum} and {maximum}")
    return number


def require_non_negative_amount(value, field_name: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field_name} must be a number >= 0")
    return amount
