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
Enumerations and lookup tables shared by routes, database and worker.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RepeatPattern(str, Enum):
    NONE = "nessuna"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUALLY = "annually"


class EventCategory(str, Enum):
    LAVORO = "LAVORO"
    CASA = "CASA"
    FINANZA = "FINANZA"
    STUDIO = "STUDIO"
    SALUTE = "SALUTE"
    FARMACO = "FARMACO"
    ALTRO = "ALTRO"


class SearchMode(str, Enum):
    ARCHIVIO = "archivio"
    PREFERITI = "preferiti"
    VOCALE = "vocale"


class SignalType(str, Enum):
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    HANGUP = "hangup"


@dataclass(frozen=True)
class Supermarket:
    key: str
    label: str
    price_field: str
    aisle_field: str


SUPERMARKETS: tuple[Supermarket, ...] = (
    Supermarket("esselunga", "Esselunga", "prezzo_esselunga", "corsia_esselunga"),
    Supermarket("mercato", "Mercato", "prezzo_mercato", "corsia_mercato"),
    Supermarket("carrefour", "Carrefour", "prezzo_carrefour", "corsia_carrefour"),
    Supermarket("penny", "Penny", "prezzo_penny", "corsia_penny"),
    Supermarket("coop", "Coop", "prezzo_coop", "corsia_coop"),
)

SUPERMARKET_KEYS = tuple(s.key for s in SUPERMARKETS)
DEFAULT_SUPERMARKET = SUPERMARKETS[0].key


def get_supermarket(key: str | None) -> Supermarket:
    for supermarket in SUPERMARKETS:
        if supermarket.key == key:
            return supermarket
    return SUPERMARKETS[0]


AVAILABLE_AVATARS: tuple[str, ...] = (
    "👤", "👨", "👩", "🧑", "👶", "👦", "👧", "🧒",
    "👨‍💼", "👩‍💼", "👨‍🎓", "👩‍🎓", "👨‍⚕️", "👩‍⚕️",
    "👨‍🍳", "👩‍🍳", "👨‍💻", "👩‍💻", "👨‍🎨", "👩‍🎨",
    "🐶", "🐱", "🐭", "🐹", "🐰", "🦊", "🐻", "🐼",
    "🌟", "⭐", "💫", "✨", "🔥", "💎", "🏆", "🎯",
)

DEFAULT_AVATAR = AVAILABLE_AVATARS[0]
UNKNOWN_USERNAME = "Sconosciuto"
