from __future__ import annotations

import logging
from typing import Protocol

from ..core.enums import Channel
from ..students.model import Student
from .model import NotificationPayload

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    """Fire-and-forget sender (push, email or SMS transport)."""

    channel: Channel

    def send(self, student: Student, payload: NotificationPayload) -> bool:
        """Return True on success; failures may also raise."""

        raise NotImplementedError


def has_address(student: Student, channel: Channel) -> bool:
    if channel == Channel.EMAIL:
        return bool(student.email)
    if channel == Channel.SMS:
        return bool(student.phone)
    return True


class LoggingChannel:
    """Writes the message to the log instead of a transport. Used until a real sender is wired."""

    def __init__(self, channel: Channel):
        self.channel = channel

    def send(self, student: Student, payload: NotificationPayload) -> bool:
        logger.info(
            "[%s] to student %s: %s | %s",
            self.channel.value,
            student.student_id,
            payload.title,
            payload.text(student.name),
        )
        return True
