from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from ..core.exceptions import NotFoundError, StaleRecordError
from .model import ReminderRecord
from .repository import ReminderLedger

logger = logging.getLogger(__name__)


def save_if_unchanged(ledger: ReminderLedger, before: ReminderRecord, after: ReminderRecord, *, now: datetime) -> Optional[ReminderRecord]:
    """Compare-and-set ``after`` over ``before``.

    Returns the stored record, or None when another writer got there first.
    """
    stored = replace(after, last_updated_at=now, version=before.version + 1)
    if ledger.compare_and_set(stored, expected_version=before.version):
        return stored
    return None


def update_with_retry(
    ledger: ReminderLedger,
    record: ReminderRecord,
    mutate: Callable[[ReminderRecord], ReminderRecord],
    *,
    now: datetime,
    attempts: int,
) -> ReminderRecord:
    """Apply ``mutate`` with compare-and-set, reloading and retrying on conflict.

    Only for mutations that are safe to recompute from the freshest state.
    """
    current = record
    for attempt in range(1, attempts + 1):
        updated = mutate(current)
        if updated.same_state_as(current):
            return current

        stored = save_if_unchanged(ledger, current, updated, now=now)
        if stored is not None:
            return stored

        logger.info("Reminder %s changed concurrently (attempt %d/%d)", record.reminder_id, attempt, attempts)
        fresh = ledger.get(record.reminder_id)
        if fresh is None:
            raise NotFoundError(f"Reminder record {record.reminder_id} disappeared")
        current = fresh

    raise StaleRecordError(f"Reminder record {record.reminder_id} kept changing, gave up after {attempts} attempts")
