from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Protocol


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def as_date(value: date | datetime) -> date:
    # datetime is a subclass of date, so check it first.
    if isinstance(value, datetime):
        return value.date()
    return value


def add_days(value: date | datetime, days: int) -> date:
    return as_date(value) + timedelta(days=int(days))


class Clock(Protocol):
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock:
    def now(self) -> datetime:
        return now_local()


@dataclass
class FrozenClock:
    """Clock that only moves when told to."""

    _frozen_now: datetime = field(default_factory=now_local)

    def now(self) -> datetime:
        return self._frozen_now

    def freeze_at(self, dt: datetime) -> None:
        self._frozen_now = dt

    def advance(self, delta: timedelta) -> None:
        self._frozen_now = self._frozen_now + delta
