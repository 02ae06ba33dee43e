"""
Reminder worker: publishes due calendar and medication reminders.

Each event row carries its own ``notify_at``. Rows are claimed (``notified_at``
stamped) in the same transaction that selects them, so several workers can
poll the same database without sending a reminder twice.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Optional

from household.config import get_settings
from household.db import EVENT_MODELS, MedicationEventRow, SqlDbClient, utcnow
from household.dependencies import get_broker, get_db_client, get_push_notifier
from household.push import PushNotifier, reminder_push_payload
from household.realtime import Broker, family_channel

logger = logging.getLogger(__name__)


def reminder_payload(row) -> dict:
    payload = {
        "event": "reminder",
        "kind": "medication" if isinstance(row, MedicationEventRow) else "calendar",
        "id": row.id,
        "title": row.title,
        "description": row.description,
        "start": row.start.isoformat(),
        "end": row.end.isoformat(),
        "notify_emails": list(row.notify_emails or []),
    }
    if isinstance(row, MedicationEventRow):
        payload["nome_farmaco"] = row.nome_farmaco
        payload["quantita"] = row.quantita
    return payload


def process_due_reminders(
    db: SqlDbClient,
    broker: Broker,
    now: Optional[datetime] = None,
    notifier: Optional[PushNotifier] = None,
) -> int:
    """
    Publish every reminder due at ``now`` and, with a ``notifier``, push it to
    the family's browsers. Returns how many were published.
    """
    now = now or utcnow()
    sent = 0
    for model in EVENT_MODELS:
        for row in db.claim_due_reminders(model, now):
            try:
                broker.publish(family_channel(row.family_group), reminder_payload(row))
            except Exception:
                logger.exception(
                    "Failed to deliver reminder for %s %s", model.__tablename__, row.id
                )
                continue
            sent += 1
            if notifier is not None:
                notifier.notify_family(
                    db, row.family_group, reminder_push_payload(row.title, row.description)
                )
    if sent:
        logger.info("Sent %d reminder(s)", sent)
    return sent


def run_loop(poll_interval_seconds: Optional[float] = None) -> None:
    """
    Simple polling loop. Intended to be run under systemd/supervisor.
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    interval = poll_interval_seconds or settings.reminder_poll_seconds
    db = get_db_client()
    broker = get_broker()
    notifier = get_push_notifier()
    logger.info("Reminder worker polling every %.1fs", interval)
    while True:
        try:
            process_due_reminders(db, broker, notifier=notifier)
        except Exception:
            logger.exception("Reminder poll failed")
        time.sleep(interval)


if __name__ == "__main__":
    run_loop()
