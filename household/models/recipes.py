# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Recipe text processing on top of Gemini: ingredient extraction and cooking steps.
"""

from __future__ import annotations

from household.models import gemini

INGREDIENTS_INSTRUCTION = (
    "Sei un assistente esperto in ricette e shopping. Il tuo compito è estrarre "
    "gli ingredienti da una ricetta data dall'utente. Rispondi solo con una lista "
    "di ingredienti separati da una virgola, senza altre frasi o spiegazioni. Non "
    "includere le quantità o le istruzioni. Ad esempio: 'pomodoro, mozzarella, basilico'."
)

INSTRUCTIONS_INSTRUCTION = (
    "Sei un assistente esperto in ricette. Il tuo compito è fornire le istruzioni "
    "di cottura passo dopo passo per la ricetta. Rispondi solo con le istruzioni, "
    "senza altre frasi o spiegazioni. Non includere gli ingredienti o le quantità. "
    "Formatta le istruzioni con punti elenco o una lista numerata per renderle più chiare."
)


def split_ingredients(raw: str) -> list[str]:
    """Split a comma separated model answer into clean ingredient names."""
    names = []
    for name in raw.strip().split(","):
        cleaned = name.strip().strip("'\"").strip().rstrip(".")
        if cleaned:
            names.append(cleaned)
    return names


def extract_ingredients(recipe_text: str, *, api_key: str | None, model: str) -> list[str]:
    raw = gemini.call_predict(
        recipe_text,
        system_instruction=INGREDIENTS_INSTRUCTION,
        model=model,
        api_key=api_key,
    )
    return split_ingredients(raw)


def cooking_instructions(recipe_text: str, *, api_key: str | None, model: str) -> str:
    return gemini.call_predict(
        recipe_text,
        system_instruction=INSTRUCTIONS_INSTRUCTION,
        model=model,
        api_key=api_key,
    ).strip()
