from __future__ import annotations

import logging
from typing import Mapping, Optional

from ..common.datetime_utils import Clock, SystemClock
from ..core.enums import Channel, ReminderKind
from ..students.model import Student
from .channels import NotificationChannel, has_address
from .model import DispatchReport, InAppNotification, NotificationPayload
from .repository import InAppNotificationRepository

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fans one reminder out to the enabled channels.

    Each channel succeeds or fails on its own; nothing here raises, so a
    transport outage never undoes a state transition already persisted.
    """

    def __init__(
        self,
        channels: Mapping[Channel, NotificationChannel],
        inbox: InAppNotificationRepository,
        *,
        clock: Optional[Clock] = None,
    ):
        self._channels = dict(channels)
        self._inbox = inbox
        self._clock = clock or SystemClock()

    def _write_in_app(self, student: Student, payload: NotificationPayload) -> bool:
        try:
            self._inbox.add(
                InAppNotification(
                    recipient_id=student.student_id,
                    title=payload.title,
                    message=payload.in_app_message(),
                    priority=payload.priority,
                    created_at=self._clock.now(),
                )
            )
            return True
        except Exception:
            logger.exception("In-app notification failed for student %s (%s)", student.student_id, payload.term.key)
            return False

    def dispatch(self, student: Student, payload: NotificationPayload, channels: tuple[Channel, ...]) -> DispatchReport:
        in_app = False
        if payload.kind == ReminderKind.OVERDUE:
            in_app = self._write_in_app(student, payload)

        delivered: list[Channel] = []
        failed: list[Channel] = []
        skipped: list[Channel] = []
        for channel in channels:
            sender = self._channels.get(channel)
            if sender is None or not has_address(student, channel):
                logger.info("No %s sender/address for student %s, skipping", channel.value, student.student_id)
                skipped.append(channel)
                continue
            try:
                ok = bool(sender.send(student, payload))
            except Exception:
                logger.exception("%s delivery raised for student %s (%s)", channel.value, student.student_id, payload.term.key)
                ok = False
            if ok:
                delivered.append(channel)
            else:
                logger.warning("%s delivery failed for student %s (%s)", channel.value, student.student_id, payload.term.key)
                failed.append(channel)

        return DispatchReport(delivered=tuple(delivered), failed=tuple(failed), skipped=tuple(skipped), in_app=in_app)
