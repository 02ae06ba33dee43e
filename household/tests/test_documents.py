import unittest
from datetime import date
from unittest.mock import patch

from household.tests.helpers import ApiTestCase


class DocumentApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers, self.anna, _ = self.member("anna@example.com", "anna")
        self.bruno_headers, _, _ = self.member("bruno@example.com", "Bruno")

    def upload(self, file_name, headers=None, content=b"data", **form):
        response = self.client.post(
            "/api/documents",
            data={"file_name": file_name, **form},
            files={"file": ("scan.PDF", content, "application/pdf")},
            headers=headers or self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def list(self, **params):
        response = self.client.get("/api/documents", params=params, headers=self.headers)
        self.assertEqual(response.status_code, 200, response.text)
        return [d["file_name"] for d in response.json()]

    def test_upload_stores_file(self):
        document = self.upload("Bolletta luce", description="Marzo", reference_date="2024-03-05")
        self.assertEqual(document["username"], "anna")
        self.assertEqual(document["reference_date"], "2024-03-05")
        self.assertEqual(document["file_type"], "application/pdf")
        (path,) = self.storage.stored_objects
        self.assertTrue(path.startswith("documents/famiglia-rossi/"))
        self.assertTrue(path.endswith("-Bolletta_luce.pdf"))

    def test_reference_date_defaults_to_today(self):
        document = self.upload("Ricevuta")
        self.assertEqual(document["reference_date"], date.today().isoformat())

    def test_archive_link_from_chat(self):
        response = self.client.post(
            "/api/documents",
            data={"file_name": "foto.jpg", "file_url": "https://example.test/storage/chat_files/x.jpg"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["file_type"], "link")
        self.assertEqual(self.storage.stored_objects, {})

        url = self.client.get(
            f"/api/documents/{response.json()['id']}/url", headers=self.headers
        ).json()["url"]
        self.assertEqual(url, "https://example.test/storage/chat_files/x.jpg")

    def test_file_or_link_is_required(self):
        response = self.client.post(
            "/api/documents", data={"file_name": "vuoto"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)

    def test_filters_and_sorting(self):
        self.upload("Bolletta gas", reference_date="2024-01-10", description="Inverno")
        self.upload("assicurazione", headers=self.bruno_headers, reference_date="2023-06-01")
        self.upload("Contratto affitto", reference_date="2024-07-01")

        self.assertEqual(self.list(year=2024, sort="reference_date", direction="asc"),
                         ["Bolletta gas", "Contratto affitto"])
        self.assertEqual(self.list(q="INVERNO"), ["Bolletta gas"])
        self.assertEqual(self.list(usernames="bruno"), ["assicurazione"])
        self.assertEqual(self.list(usernames="nessuno"), [])
        self.assertEqual(
            self.list(sort="file_name", direction="asc"),
            ["Bolletta gas", "Contratto affitto", "assicurazione"],
        )
        self.assertEqual(
            self.list(sort="username", direction="asc"),
            ["Bolletta gas", "Contratto affitto", "assicurazione"],
        )
        response = self.client.get(
            "/api/documents", params={"sort": "size"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 422)

    def test_delete_removes_row_and_object(self):
        document = self.upload("Bolletta luce")
        response = self.client.delete(f"/api/documents/{document['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.storage.stored_objects, {})
        self.assertEqual(self.list(), [])

    def test_storage_failure_on_delete_is_only_logged(self):
        document = self.upload("Bolletta luce")
        with patch.object(self.storage, "delete", side_effect=RuntimeError("boom")):
            with self.assertLogs("household.routes.documents", level="ERROR"):
                response = self.client.delete(
                    f"/api/documents/{document['id']}", headers=self.headers
                )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.list(), [])

    def test_signed_url(self):
        document = self.upload("Bolletta luce")
        response = self.client.get(
            f"/api/documents/{document['id']}/url",
            params={"expires_in": 120},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("expires=120", response.json()["url"])

    def test_other_family_cannot_read_documents(self):
        document = self.upload("Bolletta luce")
        other_headers, _, _ = self.member("carla@example.com", "carla", family_group="altra")
        response = self.client.get(f"/api/documents/{document['id']}/url", headers=other_headers)
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
