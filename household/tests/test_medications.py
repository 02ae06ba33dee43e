import unittest

from household.tests.helpers import ApiTestCase


class MedicationInventoryTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers, _, _ = self.member("anna@example.com", "anna")

    def create(self, nome, attuale, minima, expected=201):
        response = self.client.post(
            "/api/medications/inventory",
            json={
                "nome_farmaco": nome,
                "quantita_attuale": attuale,
                "quantita_scortaminima": minima,
                "dosaggio": "500mg",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, expected, response.text)
        return response.json()

    def test_low_stock_flag_and_filter(self):
        self.create("Tachipirina", 20, 5)
        self.create("Aspirina", 2, 5)
        self.create("Brufen", 5, 5)

        listing = self.client.get("/api/medications/inventory", headers=self.headers).json()
        self.assertEqual(
            [(m["nome_farmaco"], m["low_stock"]) for m in listing],
            [("Aspirina", True), ("Brufen", True), ("Tachipirina", False)],
        )
        low = self.client.get(
            "/api/medications/inventory", params={"low_stock": "true"}, headers=self.headers
        ).json()
        self.assertEqual([m["nome_farmaco"] for m in low], ["Aspirina", "Brufen"])

    def test_duplicate_names_conflict(self):
        self.create("Tachipirina", 20, 5)
        self.create("tachipirina", 1, 1, expected=409)

    def test_stock_update(self):
        medication = self.create("Tachipirina", 20, 5)
        response = self.client.patch(
            f"/api/medications/inventory/{medication['id']}/stock",
            json={"quantita_attuale": 4},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["quantita_attuale"], 4)
        self.assertTrue(response.json()["low_stock"])
        self.assertEqual(self.broker.published[-1][1]["action"], "stock")

        negative = self.client.patch(
            f"/api/medications/inventory/{medication['id']}/stock",
            json={"quantita_attuale": -1},
            headers=self.headers,
        )
        self.assertEqual(negative.status_code, 422)

    def test_full_update_and_delete(self):
        medication = self.create("Tachipirina", 20, 5)
        response = self.client.put(
            f"/api/medications/inventory/{medication['id']}",
            json={"nome_farmaco": "Tachipirina 1000", "quantita_attuale": 10, "istruzioni": "Dopo i pasti"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["istruzioni"], "Dopo i pasti")

        response = self.client.delete(
            f"/api/medications/inventory/{medication['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            self.client.get("/api/medications/inventory", headers=self.headers).json(), []
        )

    def test_bulk_edit(self):
        first = self.create("Tachipirina", 20, 5)
        second = self.create("Aspirina", 10, 2)
        response = self.client.put(
            "/api/medications/inventory",
            json=[
                {"id": first["id"], "quantita_attuale": 3},
                {"id": second["id"], "giorni_ricezione": "lunedi"},
            ],
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        updated = {m["nome_farmaco"]: m for m in response.json()}
        self.assertTrue(updated["Tachipirina"]["low_stock"])
        self.assertEqual(updated["Aspirina"]["giorni_ricezione"], "lunedi")
        self.assertEqual(updated["Aspirina"]["quantita_attuale"], 10)

    def test_bulk_edit_is_checked_before_writing(self):
        first = self.create("Tachipirina", 20, 5)
        response = self.client.put(
            "/api/medications/inventory",
            json=[{"id": first["id"], "quantita_attuale": 1}, {"id": 9999, "quantita_attuale": 1}],
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 404)
        listing = self.client.get("/api/medications/inventory", headers=self.headers).json()
        self.assertEqual(listing[0]["quantita_attuale"], 20)


if __name__ == "__main__":
    unittest.main()
