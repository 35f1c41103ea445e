from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class BatchSummary:
    """Outcome of one batch pass. Passes report, they never raise."""

    name: str
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    conflicts: int = 0
    counters: dict[str, int] = field(default_factory=dict)

    def bump(self, counter: str, by: int = 1) -> None:
        self.counters[counter] = self.counters.get(counter, 0) + by

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "total": self.total,
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "conflicts": self.conflicts,
            **self.counters,
        }
