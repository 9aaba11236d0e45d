from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Protocol

from .db import init_db, session_scope
from .models import Batch
from .utils import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

REMINDER_BODY = "Your kombucha fermentation is complete! Time to enjoy your delicious brew."


def reminder_title(batch: Batch) -> str:
    return f"{batch.name} Ready! 🍵"


@dataclass
class Reminder:
    batch_id: str
    fire_at: datetime
    title: str
    body: str


class Notifier(Protocol):
    def schedule(self, batch_id: str, fire_at: datetime, title: str, body: str) -> None:
        ...

    def cancel(self, batch_id: str) -> None:
        ...


class ReminderOutbox:
    """Keeps "batch ready" reminders in the local database until delivered.

    Scheduling a reminder for a batch replaces any earlier one for the same
    batch id.
    """

    def __init__(self):
        init_db()

    def schedule(self, batch_id: str, fire_at: datetime, title: str, body: str) -> None:
        with session_scope() as conn:
            conn.execute(
                """
                INSERT INTO reminders (batch_id, fire_at, title, body)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(batch_id) DO UPDATE SET
                    fire_at = excluded.fire_at,
                    title = excluded.title,
                    body = excluded.body
                """,
                (batch_id, format_timestamp(fire_at), title, body),
            )
        logger.debug("Reminder for %s scheduled at %s", batch_id, fire_at)

    def cancel(self, batch_id: str) -> None:
        with session_scope() as conn:
            conn.execute("DELETE FROM reminders WHERE batch_id = ?", (batch_id,))

    def pending(self) -> List[Reminder]:
        with session_scope() as conn:
            rows = conn.execute(
                "SELECT batch_id, fire_at, title, body FROM reminders ORDER BY fire_at"
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def pop_due(self, now: datetime) -> List[Reminder]:
        due = [reminder for reminder in self.pending() if reminder.fire_at <= now]
        if due:
            with session_scope() as conn:
                conn.executemany(
                    "DELETE FROM reminders WHERE batch_id = ?",
                    [(reminder.batch_id,) for reminder in due],
                )
        return due

    @staticmethod
    def _from_row(row) -> Reminder:
        return Reminder(
            batch_id=row["batch_id"],
            fire_at=parse_timestamp(row["fire_at"]),
            title=row["title"],
            body=row["body"],
        )


__all__ = ["Notifier", "Reminder", "ReminderOutbox", "reminder_title", "REMINDER_BODY"]
