import unittest

from fastapi.testclient import TestClient

from household.app import create_app
from household.dependencies import (
    get_broker,
    get_db_client,
    get_push_notifier,
    get_storage_client,
)


class ApiTestCase(unittest.TestCase):
    """TestClient against fresh in-memory backends, plus login helpers."""

    def setUp(self):
        self.client = TestClient(create_app())
        self.db = get_db_client()
        self.db.reset()
        self.storage = get_storage_client()
        self.storage.reset()
        self.broker = get_broker()
        self.broker.reset()
        self.notifier = get_push_notifier()
        self.notifier.reset()

    def register(self, email, username, family_group="famiglia-rossi", password="segreto123"):
        response = self.client.post(
            "/api/auth/register",
            json={
                "email": email,
                "password": password,
                "username": username,
                "family_group": family_group,
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def login(self, email, password="segreto123"):
        response = self.client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["access_token"]

    def member(self, email, username, family_group="famiglia-rossi"):
        """Register and log in; returns (auth headers, profile, token)."""
        profile = self.register(email, username, family_group)
        token = self.login(email)
        return {"Authorization": f"Bearer {token}"}, profile, token
