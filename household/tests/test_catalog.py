import unittest

from household.tests.helpers import ApiTestCase


class CatalogApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers, self.profile, _ = self.member("anna@example.com", "anna")

    def create_category(self, name, **aisles):
        response = self.client.post(
            "/api/categories", json={"name": name, **aisles}, headers=self.headers
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def create_product(self, articolo, categoria_id, **fields):
        response = self.client.post(
            "/api/products",
            json={"articolo": articolo, "categoria_id": categoria_id, **fields},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_categories_are_sorted_and_filtered(self):
        self.create_category("Verdura")
        self.create_category("Latticini", corsia_esselunga="3")
        listing = self.client.get("/api/categories", headers=self.headers).json()
        self.assertEqual([c["name"] for c in listing], ["Latticini", "Verdura"])
        self.assertEqual(listing[0]["corsia_esselunga"], "3")

        filtered = self.client.get(
            "/api/categories", params={"q": "verd"}, headers=self.headers
        ).json()
        self.assertEqual([c["name"] for c in filtered], ["Verdura"])

    def test_category_in_use_cannot_be_deleted(self):
        category = self.create_category("Latticini")
        product = self.create_product("Latte", category["id"])

        response = self.client.delete(
            f"/api/categories/{category['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 409)
        self.assertIn("1 product", response.json()["detail"])

        self.client.delete(f"/api/products/{product['id']}", headers=self.headers)
        response = self.client.delete(
            f"/api/categories/{category['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 200)

    def test_product_search_matches_category_name(self):
        latticini = self.create_category("Latticini")
        frutta = self.create_category("Frutta")
        self.create_product("Mozzarella", latticini["id"], prezzo=1.2)
        self.create_product("Mele", frutta["id"], descrizione_articolo="Golden")

        by_category = self.client.get(
            "/api/products", params={"q": "LATT"}, headers=self.headers
        ).json()
        self.assertEqual([p["articolo"] for p in by_category], ["Mozzarella"])
        self.assertEqual(by_category[0]["categoria_nome"], "Latticini")

        by_description = self.client.get(
            "/api/products", params={"q": "golden"}, headers=self.headers
        ).json()
        self.assertEqual([p["articolo"] for p in by_description], ["Mele"])

    def test_update_product(self):
        category = self.create_category("Latticini")
        product = self.create_product("Latte", category["id"])
        response = self.client.put(
            f"/api/products/{product['id']}",
            json={"articolo": "Latte intero", "categoria_id": category["id"], "preferito": True},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["articolo"], "Latte intero")
        self.assertTrue(response.json()["preferito"])

    def test_other_family_rows_are_invisible(self):
        category = self.create_category("Latticini")
        other_headers, _, _ = self.member(
            "carla@example.com", "carla", family_group="famiglia-bianchi"
        )

        self.assertEqual(
            self.client.get("/api/categories", headers=other_headers).json(), []
        )
        response = self.client.post(
            "/api/products",
            json={"articolo": "Latte", "categoria_id": category["id"]},
            headers=other_headers,
        )
        self.assertEqual(response.status_code, 404)
        response = self.client.delete(
            f"/api/categories/{category['id']}", headers=other_headers
        )
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
