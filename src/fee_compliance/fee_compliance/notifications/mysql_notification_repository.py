from __future__ import annotations

from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, db_cursor, fetchall
from .model import InAppNotification
from .repository import InAppNotificationRepository


class MySQLNotificationRepository(InAppNotificationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(self, notification: InAppNotification) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO notifications(recipient_id, type, title, message, priority, is_read, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(notification.recipient_id),
                    notification.type,
                    notification.title,
                    notification.message,
                    notification.priority,
                    1 if notification.is_read else 0,
                    notification.created_at,
                ),
            )
            return int(cur.lastrowid)

    def list_for_recipient(self, recipient_id: int, *, limit: int = 50) -> Sequence[InAppNotification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT notification_id, recipient_id, type, title, message, priority, is_read, created_at
                FROM notifications
                WHERE recipient_id=%s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (int(recipient_id), int(limit)),
            )
            rows = fetchall(cur)
            return [
                InAppNotification(
                    notification_id=int(r["notification_id"]),
                    recipient_id=int(r["recipient_id"]),
                    type=r["type"],
                    title=r["title"],
                    message=r["message"],
                    priority=r["priority"],
                    is_read=as_bool(r["is_read"]),
                    created_at=r.get("created_at"),
                )
                for r in rows
            ]
