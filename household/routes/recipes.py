"""
AI recipe helpers: ingredient extraction, cooking steps and catalog matching.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from google.genai import errors as genai_errors

from household.config import get_settings
from household.db import ProfileRow, SqlDbClient
from household.dependencies import get_db_client, get_family_profile
from household.models import recipes
from household.models.gemini import (
    GeminiInvalidResponseException,
    GeminiNotConfiguredException,
)
from household.routes.catalog import product_response
from household.schemas import (
    IngredientMatchRequest,
    IngredientsResponse,
    InstructionsResponse,
    ProductResponse,
    RecipeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _run_model(func, recipe_text: str):
    if not recipe_text.strip():
        raise HTTPException(status_code=400, detail="Recipe text is required")
    settings = get_settings()
    try:
        return func(
            recipe_text.strip(),
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
        )
    except GeminiNotConfiguredException as exc:
        raise HTTPException(status_code=503, detail="AI provider not configured") from exc
    except (GeminiInvalidResponseException, genai_errors.APIError) as exc:
        logger.exception("Gemini request failed")
        raise HTTPException(status_code=502, detail="AI provider request failed") from exc


@router.post("/ingredients", response_model=IngredientsResponse)
def extract_ingredients(
    payload: RecipeRequest, profile: ProfileRow = Depends(get_family_profile)
):
    return IngredientsResponse(
        ingredients=_run_model(recipes.extract_ingredients, payload.recipe_text)
    )


@router.post("/instructions", response_model=InstructionsResponse)
def cooking_instructions(
    payload: RecipeRequest, profile: ProfileRow = Depends(get_family_profile)
):
    return InstructionsResponse(
        instructions=_run_model(recipes.cooking_instructions, payload.recipe_text)
    )


@router.post("/match", response_model=list[ProductResponse])
def match_ingredients(
    payload: IngredientMatchRequest,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    """Catalog products whose article name contains one of the ingredients."""
    names = [name.strip().lower() for name in payload.ingredients if name.strip()]
    if not names:
        return []
    return [
        product_response(product, category)
        for product, category in db.list_products_with_categories(profile.family_group)
        if any(name in product.articolo.lower() for name in names)
    ]
