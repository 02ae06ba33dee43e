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

import logging
import time

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

QUERY_RESPONSE_MAX_OUTPUT_TOKENS = 2000
DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiInvalidResponseException(Exception):
    pass


class GeminiNotConfiguredException(Exception):
    pass


def call_predict(
    query: str,
    system_instruction: str | None = None,
    model: str = DEFAULT_MODEL,
    api_key: str | None = None,
) -> str:
    """Calls Gemini with a single user turn and returns the response text."""
    if not api_key:
        raise GeminiNotConfiguredException("GEMINI_API_KEY is not set")

    client = genai.Client(api_key=api_key)
    start_time = time.time()
    truncated_query = (query[:200] + "...") if len(query) > 200 else query
    logger.info("Calling Gemini (%s), prompt: '%s'", model, truncated_query)

    response = client.models.generate_content(
        model=model,
        contents=query,
        config=types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=0,
            max_output_tokens=QUERY_RESPONSE_MAX_OUTPUT_TOKENS,
        ),
    )
    logger.info("Gemini call took: %.2fs", time.time() - start_time)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text
