"""
Product and category catalog of a family.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from household.db import CategoryRow, ProductRow, ProfileRow, SqlDbClient
from household.dependencies import get_db_client, get_family_profile
from household.routes.common import get_family_row
from household.schemas import (
    CategoryPayload,
    CategoryResponse,
    ProductPayload,
    ProductResponse,
    StatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def product_response(
    product: ProductRow, category: Optional[CategoryRow]
) -> ProductResponse:
    response = ProductResponse.model_validate(product)
    response.categoria_nome = category.name if category else None
    return response


def _matches(needle: str, *values: Optional[str]) -> bool:
    return any(needle in (value or "").lower() for value in values)


# Categories


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(
    q: Optional[str] = Query(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    rows = db.list_for_family(CategoryRow, profile.family_group, CategoryRow.name.asc())
    needle = (q or "").strip().lower()
    if needle:
        rows = [row for row in rows if _matches(needle, row.name)]
    return rows


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(
    payload: CategoryPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    return db.add(
        CategoryRow, {**payload.model_dump(), "family_group": profile.family_group}
    )


@router.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    payload: CategoryPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    get_family_row(db, CategoryRow, category_id, profile, "Category not found")
    return db.update(CategoryRow, category_id, payload.model_dump())


@router.delete("/categories/{category_id}", response_model=StatusResponse)
def delete_category(
    category_id: int,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    get_family_row(db, CategoryRow, category_id, profile, "Category not found")
    in_use = db.count_products_in_category(category_id)
    if in_use:
        raise HTTPException(
            status_code=409,
            detail=f"Category is used by {in_use} product(s) and cannot be deleted",
        )
    db.delete(CategoryRow, category_id)
    return StatusResponse()


# Products


@router.get("/products", response_model=list[ProductResponse])
def list_products(
    q: Optional[str] = Query(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    needle = (q or "").strip().lower()
    return [
        product_response(product, category)
        for product, category in db.list_products_with_categories(profile.family_group)
        if not needle
        or _matches(
            needle,
            product.articolo,
            product.descrizione_articolo,
            category.name if category else None,
        )
    ]


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    payload: ProductPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    category = get_family_row(
        db, CategoryRow, payload.categoria_id, profile, "Category not found"
    )
    product = db.add(
        ProductRow, {**payload.model_dump(), "family_group": profile.family_group}
    )
    return product_response(product, category)


@router.put("/products/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    payload: ProductPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    get_family_row(db, ProductRow, product_id, profile, "Product not found")
    category = get_family_row(
        db, CategoryRow, payload.categoria_id, profile, "Category not found"
    )
    product = db.update(ProductRow, product_id, payload.model_dump())
    return product_response(product, category)


@router.delete("/products/{product_id}", response_model=StatusResponse)
def delete_product(
    product_id: int,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    get_family_row(db, ProductRow, product_id, profile, "Product not found")
    db.delete(ProductRow, product_id)
    return StatusResponse()
