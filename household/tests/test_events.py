import unittest

from household.db import EventRow, MedicationEventRow
from household.tests.helpers import ApiTestCase


class CalendarApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers, self.profile, _ = self.member("anna@example.com", "anna")

    def create(self, **overrides):
        payload = {
            "title": "Dentista",
            "start": "2025-03-10T09:00:00",
            "end": "2025-03-10T10:00:00",
            "categoria_eve": "SALUTE",
        }
        payload.update(overrides)
        response = self.client.post(
            "/api/calendar/events", json=payload, headers=self.headers
        )
        return response

    def test_single_event_with_notification(self):
        response = self.create(notifications_enabled=True, send_before_hours=24)
        self.assertEqual(response.status_code, 201, response.text)
        events = response.json()
        self.assertEqual(len(events), 1)
        self.assertIsNone(events[0]["recurrence_id"])
        self.assertEqual(events[0]["notify_at"], "2025-03-09T09:00:00")
        self.assertEqual(events[0]["created_by"], self.profile["id"])

    def test_timezone_aware_input_is_stored_as_utc(self):
        response = self.create(start="2025-03-10T10:00:00+01:00", end="2025-03-10T11:00:00+01:00")
        self.assertEqual(response.json()[0]["start"], "2025-03-10T09:00:00")

    def test_recurring_series_notifies_per_occurrence(self):
        response = self.create(
            repeat_pattern="weekly",
            repeat_end_date="2025-03-24",
            notifications_enabled=True,
            send_before_hours=1,
        )
        self.assertEqual(response.status_code, 201)
        events = response.json()
        self.assertEqual(len(events), 3)
        self.assertEqual(len({e["recurrence_id"] for e in events}), 1)
        self.assertEqual(
            [e["notify_at"] for e in events],
            ["2025-03-10T08:00:00", "2025-03-17T08:00:00", "2025-03-24T08:00:00"],
        )
        self.assertTrue(all(e["series_end"] == "2025-03-24T10:00:00" for e in events))

    def test_invalid_dates_are_rejected(self):
        response = self.create(end="2025-03-10T08:00:00")
        self.assertEqual(response.status_code, 400)
        response = self.create(repeat_pattern="daily")
        self.assertEqual(response.status_code, 400)
        response = self.create(repeat_pattern="hourly", repeat_end_date="2025-03-12")
        self.assertEqual(response.status_code, 422)

    def test_list_by_range(self):
        self.create(repeat_pattern="daily", repeat_end_date="2025-03-14")
        response = self.client.get(
            "/api/calendar/events",
            params={"start": "2025-03-11T00:00:00", "end": "2025-03-12T23:59:59"},
            headers=self.headers,
        )
        self.assertEqual(
            [e["start"] for e in response.json()],
            ["2025-03-11T09:00:00", "2025-03-12T09:00:00"],
        )

    def test_update_single_occurrence(self):
        events = self.create(repeat_pattern="daily", repeat_end_date="2025-03-12").json()
        response = self.client.put(
            f"/api/calendar/events/{events[1]['id']}",
            json={
                "title": "Dentista (spostato)",
                "start": "2025-03-11T15:00:00",
                "end": "2025-03-11T16:00:00",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        updated = response.json()[0]
        self.assertEqual(updated["title"], "Dentista (spostato)")
        self.assertEqual(updated["recurrence_id"], events[1]["recurrence_id"])

        titles = [e["title"] for e in self.client.get("/api/calendar/events", headers=self.headers).json()]
        self.assertEqual(titles, ["Dentista", "Dentista (spostato)", "Dentista"])

    def test_update_replaces_series(self):
        events = self.create(repeat_pattern="daily", repeat_end_date="2025-03-14").json()
        response = self.client.put(
            f"/api/calendar/events/{events[0]['id']}",
            json={
                "title": "Palestra",
                "start": "2025-03-10T18:00:00",
                "end": "2025-03-10T19:00:00",
                "repeat_pattern": "weekly",
                "repeat_end_date": "2025-03-17",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(len(response.json()), 2)
        remaining = self.db.list_events(EventRow, "famiglia-rossi")
        self.assertEqual([r.title for r in remaining], ["Palestra", "Palestra"])
        self.assertEqual({r.created_by for r in remaining}, {self.profile["id"]})
        self.assertNotEqual(remaining[0].recurrence_id, events[0]["recurrence_id"])

    def test_single_event_becomes_series(self):
        event = self.create().json()[0]
        response = self.client.put(
            f"/api/calendar/events/{event['id']}",
            json={
                "title": "Dentista",
                "start": "2025-03-10T09:00:00",
                "end": "2025-03-10T10:00:00",
                "repeat_pattern": "daily",
                "repeat_end_date": "2025-03-11",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(len(response.json()), 2)
        self.assertEqual(len(self.db.list_events(EventRow, "famiglia-rossi")), 2)

    def test_delete_scopes(self):
        events = self.create(repeat_pattern="daily", repeat_end_date="2025-03-13").json()
        single = self.client.delete(
            f"/api/calendar/events/{events[0]['id']}", headers=self.headers
        )
        self.assertEqual(single.json(), {"deleted": 1})
        series = self.client.delete(
            f"/api/calendar/events/{events[1]['id']}",
            params={"scope": "all"},
            headers=self.headers,
        )
        self.assertEqual(series.json(), {"deleted": 3})

    def test_other_family_cannot_touch_events(self):
        event = self.create().json()[0]
        other_headers, _, _ = self.member("carla@example.com", "carla", family_group="altra")
        response = self.client.delete(
            f"/api/calendar/events/{event['id']}", headers=other_headers
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.client.get("/api/calendar/events", headers=other_headers).json(), [])


class MedicationEventApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers, self.profile, _ = self.member("anna@example.com", "anna")
        response = self.client.post(
            "/api/medications/inventory",
            json={"nome_farmaco": "Tachipirina", "quantita_attuale": 20},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201)

    def test_medication_event_fields(self):
        response = self.client.post(
            "/api/medications/events",
            json={
                "nome_farmaco": "tachipirina",
                "quantita": 1,
                "start": "2025-03-10T08:00:00",
                "end": "2025-03-10T08:15:00",
                "repeat_pattern": "daily",
                "repeat_end_date": "2025-03-12",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        events = response.json()
        self.assertEqual(len(events), 3)
        self.assertEqual(events[0]["title"], "Assunzione Tachipirina")
        self.assertEqual(events[0]["description"], "Dose: 1")
        self.assertEqual(events[0]["categoria_eve"], "FARMACO")
        self.assertEqual(events[0]["username"], "anna")
        self.assertEqual(self.broker.published[-1][1]["event"], "medications")

        listed = self.client.get("/api/medications/events", headers=self.headers).json()
        self.assertEqual(len(listed), 3)
        self.assertEqual(self.client.get("/api/calendar/events", headers=self.headers).json(), [])

    def test_medication_must_exist_and_quantity_positive(self):
        base = {"start": "2025-03-10T08:00:00", "end": "2025-03-10T08:15:00"}
        response = self.client.post(
            "/api/medications/events",
            json={**base, "nome_farmaco": "Aspirina", "quantita": 1},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 404)
        response = self.client.post(
            "/api/medications/events",
            json={**base, "nome_farmaco": "Tachipirina", "quantita": 0},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)

    def test_update_medication_series(self):
        events = self.client.post(
            "/api/medications/events",
            json={
                "nome_farmaco": "Tachipirina",
                "quantita": 1,
                "start": "2025-03-10T08:00:00",
                "end": "2025-03-10T08:15:00",
                "repeat_pattern": "daily",
                "repeat_end_date": "2025-03-12",
            },
            headers=self.headers,
        ).json()
        response = self.client.put(
            f"/api/medications/events/{events[1]['id']}",
            json={
                "nome_farmaco": "Tachipirina",
                "quantita": 2,
                "start": "2025-03-10T20:00:00",
                "end": "2025-03-10T20:15:00",
                "repeat_pattern": "weekly",
                "repeat_end_date": "2025-03-24",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        updated = response.json()
        self.assertEqual(len(updated), 3)
        self.assertEqual(updated[0]["description"], "Dose: 2")
        self.assertEqual(updated[0]["created_by"], self.profile["id"])

        rows = self.db.list_events(MedicationEventRow, "famiglia-rossi")
        self.assertEqual(
            [r.start.isoformat() for r in rows],
            ["2025-03-10T20:00:00", "2025-03-17T20:00:00", "2025-03-24T20:00:00"],
        )
        self.assertEqual(len({r.recurrence_id for r in rows}), 1)
        self.assertNotEqual(rows[0].recurrence_id, events[0]["recurrence_id"])

    def test_delete_medication_series(self):
        events = self.client.post(
            "/api/medications/events",
            json={
                "nome_farmaco": "Tachipirina",
                "quantita": 0.5,
                "start": "2025-03-10T08:00:00",
                "end": "2025-03-10T08:15:00",
                "repeat_pattern": "weekly",
                "repeat_end_date": "2025-03-24",
            },
            headers=self.headers,
        ).json()
        self.assertEqual(events[0]["description"], "Dose: 0.5")
        response = self.client.delete(
            f"/api/medications/events/{events[0]['id']}",
            params={"scope": "all"},
            headers=self.headers,
        )
        self.assertEqual(response.json(), {"deleted": 3})
        self.assertEqual(self.db.list_events(MedicationEventRow, "famiglia-rossi"), [])


if __name__ == "__main__":
    unittest.main()
