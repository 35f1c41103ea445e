from __future__ import annotations

from typing import Protocol, Sequence

from .model import InAppNotification


class InAppNotificationRepository(Protocol):
    def add(self, notification: InAppNotification) -> int:
        raise NotImplementedError

    def list_for_recipient(self, recipient_id: int, *, limit: int = 50) -> Sequence[InAppNotification]:
        raise NotImplementedError
