"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

FALLBACK_TERM_OFFSET_DAYS = (5, 90, 210)
REMINDER_VISIBILITY_DAYS = 3
DEFAULT_TERM_FEE = Decimal("15000")
TERM_FEE_SPLIT_PERCENT = (40, 30, 30)

PAYMENT_TYPE_HOSTEL_FEE = "hostel_fee"

DEFAULT_PRE_REMINDER_DAYS = (7, 3, 1)
DEFAULT_POST_REMINDER_DAYS = (1, 3, 7)
MAX_OFFSET_DAYS = 365
MAX_YEAR_OF_STUDY = 10

RECONCILE_MAX_ATTEMPTS = 3

DEFAULT_REMINDER_CYCLE_MINUTES = 60
DEFAULT_RECONCILE_MINUTES = 60
DEFAULT_LATE_FEE_HOURS = 24
DEFAULT_SCHEDULER_POLL_SECONDS = 30.0
