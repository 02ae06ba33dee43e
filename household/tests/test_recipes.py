import unittest
from unittest.mock import patch

from household.models.gemini import (
    GeminiInvalidResponseException,
    GeminiNotConfiguredException,
)
from household.models.recipes import INGREDIENTS_INSTRUCTION, split_ingredients
from household.tests.helpers import ApiTestCase


class SplitIngredientsTests(unittest.TestCase):
    def test_split_trims_and_drops_empty_names(self):
        self.assertEqual(
            split_ingredients(" 'pomodoro, mozzarella ,, basilico.'\n"),
            ["pomodoro", "mozzarella", "basilico"],
        )


class RecipeApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.headers, _, _ = self.member("anna@example.com", "anna")

    @patch("household.models.gemini.call_predict")
    def test_extract_ingredients(self, mock_predict):
        mock_predict.return_value = "pomodoro, mozzarella, basilico"
        response = self.client.post(
            "/api/recipes/ingredients",
            json={"recipe_text": "Pizza margherita con 200g di mozzarella"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["ingredients"], ["pomodoro", "mozzarella", "basilico"]
        )
        _, kwargs = mock_predict.call_args
        self.assertEqual(kwargs["system_instruction"], INGREDIENTS_INSTRUCTION)

    @patch("household.models.gemini.call_predict")
    def test_cooking_instructions(self, mock_predict):
        mock_predict.return_value = "1. Stendere la pasta\n2. Infornare\n"
        response = self.client.post(
            "/api/recipes/instructions",
            json={"recipe_text": "Pizza margherita"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["instructions"], "1. Stendere la pasta\n2. Infornare"
        )

    def test_blank_recipe_is_rejected(self):
        response = self.client.post(
            "/api/recipes/ingredients", json={"recipe_text": "   "}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)

    @patch("household.models.gemini.call_predict")
    def test_provider_errors_are_mapped(self, mock_predict):
        mock_predict.side_effect = GeminiNotConfiguredException("missing key")
        response = self.client.post(
            "/api/recipes/ingredients", json={"recipe_text": "Pasta"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 503)

        mock_predict.side_effect = GeminiInvalidResponseException()
        response = self.client.post(
            "/api/recipes/instructions", json={"recipe_text": "Pasta"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 502)

    def test_match_ingredients_against_catalog(self):
        category = self.client.post(
            "/api/categories", json={"name": "Latticini"}, headers=self.headers
        ).json()
        for articolo in ("Mozzarella di bufala", "Latte", "Basilico fresco"):
            self.client.post(
                "/api/products",
                json={"articolo": articolo, "categoria_id": category["id"]},
                headers=self.headers,
            )
        response = self.client.post(
            "/api/recipes/match",
            json={"ingredients": ["mozzarella", "BASILICO", " "]},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [p["articolo"] for p in response.json()],
            ["Basilico fresco", "Mozzarella di bufala"],
        )


if __name__ == "__main__":
    unittest.main()
