import unittest
from datetime import datetime
from unittest.mock import patch

from household.db import EventRow, MedicationEventRow, SqlDbClient
from household.realtime import InMemoryBroker
from household.worker import process_due_reminders


def _event(model, **fields):
    values = {
        "family_group": "famiglia-rossi",
        "created_by": "anna",
        "title": "Dentista",
        "start": datetime(2025, 3, 10, 9, 0),
        "end": datetime(2025, 3, 10, 10, 0),
        "notify_at": datetime(2025, 3, 10, 8, 0),
        "notify_emails": ["anna@example.com"],
    }
    values.update(fields)
    return values


class ReminderWorkerTests(unittest.TestCase):
    def setUp(self):
        self.db = SqlDbClient("sqlite+pysqlite:///:memory:")
        self.broker = InMemoryBroker()

    def test_due_reminders_are_sent_once(self):
        self.db.add(EventRow, _event(EventRow))
        self.db.add(EventRow, _event(EventRow, title="Più tardi", notify_at=datetime(2025, 3, 10, 12, 0)))
        self.db.add(EventRow, _event(EventRow, title="Senza avviso", notify_at=None))
        self.db.add(
            MedicationEventRow,
            _event(
                MedicationEventRow,
                title="Assunzione Tachipirina",
                nome_farmaco="Tachipirina",
                quantita=1,
                categoria_eve="FARMACO",
            ),
        )

        now = datetime(2025, 3, 10, 8, 30)
        self.assertEqual(process_due_reminders(self.db, self.broker, now), 2)
        channels = {channel for channel, _ in self.broker.published}
        self.assertEqual(channels, {"messages-famiglia-rossi"})
        payloads = sorted((p["kind"], p["title"]) for _, p in self.broker.published)
        self.assertEqual(
            payloads,
            [("calendar", "Dentista"), ("medication", "Assunzione Tachipirina")],
        )
        medication = [p for _, p in self.broker.published if p["kind"] == "medication"][0]
        self.assertEqual(medication["nome_farmaco"], "Tachipirina")
        self.assertEqual(medication["notify_emails"], ["anna@example.com"])

        self.assertEqual(process_due_reminders(self.db, self.broker, now), 0)
        self.assertEqual(
            process_due_reminders(self.db, self.broker, datetime(2025, 3, 10, 12, 0)), 1
        )

    def test_claimed_rows_are_stamped(self):
        row = self.db.add(EventRow, _event(EventRow))
        now = datetime(2025, 3, 10, 9, 0)
        process_due_reminders(self.db, self.broker, now)
        self.assertEqual(self.db.get(EventRow, row.id).notified_at, now)

    def test_publish_failure_is_logged(self):
        self.db.add(EventRow, _event(EventRow))
        with patch.object(self.broker, "publish", side_effect=RuntimeError("down")):
            with self.assertLogs("household.worker", level="ERROR"):
                sent = process_due_reminders(self.db, self.broker, datetime(2025, 3, 10, 9, 0))
        self.assertEqual(sent, 0)


if __name__ == "__main__":
    unittest.main()
