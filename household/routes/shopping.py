"""
Shared shopping list, checkout into the purchase history and spending analysis.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from household.db import (
    CategoryRow,
    ProductRow,
    ProfileRow,
    ShoppingItemRow,
    SqlDbClient,
    day_bounds,
    utcnow,
)
from household.dependencies import get_broker, get_db_client, get_family_profile
from household.realtime import Broker
from household.routes.catalog import product_response
from household.routes.common import get_family_row, publish_event
from household.schemas import (
    DeletedResponse,
    FinishShoppingResponse,
    ProductResponse,
    PurchaseAnalysisResponse,
    PurchaseResponse,
    RecipeShoppingItemCreate,
    ShoppingItemCreate,
    ShoppingItemResponse,
    ShoppingItemUpdate,
    StatusResponse,
)
from household.shared.types import (
    DEFAULT_SUPERMARKET,
    SUPERMARKET_KEYS,
    SUPERMARKETS,
    SearchMode,
    get_supermarket,
)

logger = logging.getLogger(__name__)

router = APIRouter()
purchases_router = APIRouter()

PRICE_FIELDS = tuple(s.price_field for s in SUPERMARKETS)


def _check_supermarket(key: Optional[str]) -> str:
    if key is None:
        return DEFAULT_SUPERMARKET
    if key not in SUPERMARKET_KEYS:
        raise HTTPException(status_code=400, detail=f"Unknown supermarket: {key}")
    return key


def _search_term(query: str) -> str:
    """Lower-case the query and drop its last letter so singular and plural both match."""
    term = query.strip().lower()
    if len(term) > 2:
        term = term[:-1]
    return term


def _product_price(product: ProductRow, supermarket_key: str) -> float:
    price = getattr(product, get_supermarket(supermarket_key).price_field)
    if price is None:
        price = product.prezzo
    return price if price is not None else 0


def _snapshot(
    product: ProductRow,
    category: Optional[CategoryRow],
    supermarket_key: str,
    profile: ProfileRow,
) -> dict:
    values = {
        "family_group": profile.family_group,
        "prodotto_id": product.id,
        "user_id": profile.id,
        "inserito_da": profile.username,
        "articolo": product.articolo,
        "descrizione": product.descrizione_articolo,
        "categoria": category.name if category else None,
        "supermercato": supermarket_key,
        "unita_misura": product.unita_misura,
        "quantita": 1,
        "prezzo": _product_price(product, supermarket_key),
        "fatto": False,
    }
    for field in PRICE_FIELDS:
        values[field] = getattr(product, field)
    return values


def _item_response(
    item: ShoppingItemRow, aisles: dict[str, Optional[str]]
) -> ShoppingItemResponse:
    response = ShoppingItemResponse.model_validate(item)
    response.corsia = aisles.get(item.categoria or "")
    return response


def _aisles_by_category(
    db: SqlDbClient, family_group: str, supermarket_key: str
) -> dict[str, Optional[str]]:
    aisle_field = get_supermarket(supermarket_key).aisle_field
    return {
        row.name: getattr(row, aisle_field)
        for row in db.list_for_family(CategoryRow, family_group)
    }


def _add_product(
    db: SqlDbClient,
    broker: Broker,
    profile: ProfileRow,
    prodotto_id: int,
    supermarket_key: str,
) -> ShoppingItemResponse:
    product = get_family_row(db, ProductRow, prodotto_id, profile, "Product not found")
    category = db.get(CategoryRow, product.categoria_id)
    item = db.add(ShoppingItemRow, _snapshot(product, category, supermarket_key, profile))
    publish_event(broker, profile.family_group, "shopping", action="added", id=item.id)
    return _item_response(
        item, _aisles_by_category(db, profile.family_group, supermarket_key)
    )


@router.get("/search", response_model=list[ProductResponse])
def search_products(
    q: str = Query(""),
    mode: SearchMode = Query(SearchMode.ARCHIVIO),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    rows = db.list_products_with_categories(profile.family_group)

    if mode is SearchMode.PREFERITI:
        needle = q.strip().lower()
        favourites = [
            (product, category)
            for product, category in rows
            if product.preferito
            and (
                not needle
                or needle in product.articolo.lower()
                or needle in (product.descrizione_articolo or "").lower()
            )
        ]
        favourites.sort(
            key=lambda pair: (
                (pair[1].name if pair[1] else "").lower(),
                pair[0].articolo.lower(),
            )
        )
        return [product_response(product, category) for product, category in favourites]

    term = _search_term(q)
    if not term:
        return []
    return [
        product_response(product, category)
        for product, category in rows
        if term in product.articolo.lower()
        or term in (product.descrizione_articolo or "").lower()
    ]


@router.get("/items", response_model=list[ShoppingItemResponse])
def list_items(
    sort: Optional[str] = Query(None, pattern="^(categoria|corsia)$"),
    ascending: bool = Query(True),
    supermercato: Optional[str] = Query(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    """
    Items still to take come first, then the taken ones. Only the pending
    group is sorted; both keep insertion order otherwise.
    """
    supermarket_key = _check_supermarket(supermercato)
    aisles = _aisles_by_category(db, profile.family_group, supermarket_key)
    items = db.list_for_family(
        ShoppingItemRow, profile.family_group, ShoppingItemRow.id.asc()
    )
    pending = [item for item in items if not item.fatto]
    taken = [item for item in items if item.fatto]

    if sort == "categoria":
        pending.sort(key=lambda item: (item.categoria or "").lower(), reverse=not ascending)
    elif sort == "corsia":
        pending.sort(
            key=lambda item: (aisles.get(item.categoria or "") or "").lower(),
            reverse=not ascending,
        )
    return [_item_response(item, aisles) for item in pending + taken]


@router.post("/items", response_model=ShoppingItemResponse, status_code=201)
def add_item(
    payload: ShoppingItemCreate,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    supermarket_key = _check_supermarket(payload.supermercato)
    return _add_product(db, broker, profile, payload.prodotto_id, supermarket_key)


@router.post("/items/from-product", response_model=ShoppingItemResponse, status_code=201)
def add_item_from_recipe(
    payload: RecipeShoppingItemCreate,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    if db.find_shopping_item_by_product(profile.family_group, payload.prodotto_id):
        raise HTTPException(status_code=409, detail="Product already in the shopping list")
    return _add_product(db, broker, profile, payload.prodotto_id, DEFAULT_SUPERMARKET)


@router.patch("/items/{item_id}", response_model=ShoppingItemResponse)
def update_item(
    item_id: int,
    payload: ShoppingItemUpdate,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    item = get_family_row(db, ShoppingItemRow, item_id, profile, "Item not found")
    values = payload.model_dump(exclude_unset=True)
    if "supermercato" in values:
        values["supermercato"] = _check_supermarket(values["supermercato"])
        if "prezzo" not in values:
            # Re-price from the snapshot of the newly selected supermarket.
            price = getattr(item, get_supermarket(values["supermercato"]).price_field)
            if price is not None:
                values["prezzo"] = price
    item = db.update(ShoppingItemRow, item_id, values)
    publish_event(broker, profile.family_group, "shopping", action="updated", id=item_id)
    aisles = _aisles_by_category(db, profile.family_group, item.supermercato)
    return _item_response(item, aisles)


@router.post("/items/{item_id}/toggle", response_model=ShoppingItemResponse)
def toggle_item(
    item_id: int,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    item = get_family_row(db, ShoppingItemRow, item_id, profile, "Item not found")
    item = db.update(ShoppingItemRow, item_id, {"fatto": not item.fatto})
    publish_event(broker, profile.family_group, "shopping", action="updated", id=item_id)
    aisles = _aisles_by_category(db, profile.family_group, item.supermercato)
    return _item_response(item, aisles)


@router.delete("/items/{item_id}", response_model=StatusResponse)
def delete_item(
    item_id: int,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    get_family_row(db, ShoppingItemRow, item_id, profile, "Item not found")
    db.delete(ShoppingItemRow, item_id)
    publish_event(broker, profile.family_group, "shopping", action="deleted", id=item_id)
    return StatusResponse()


@router.delete("/items", response_model=DeletedResponse)
def clear_items(
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    deleted = db.clear_shopping_items(profile.family_group)
    publish_event(broker, profile.family_group, "shopping", action="cleared")
    return DeletedResponse(deleted=deleted)


@router.post("/finish", response_model=FinishShoppingResponse)
def finish_shopping(
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    purchases = db.finish_shopping(profile.family_group, utcnow())
    if not purchases:
        raise HTTPException(status_code=400, detail="No items marked as taken")
    logger.info(
        "Family %s checked out %d item(s)", profile.family_group, len(purchases)
    )
    publish_event(broker, profile.family_group, "shopping", action="finished")
    return FinishShoppingResponse(
        purchased=[PurchaseResponse.model_validate(row) for row in purchases]
    )


@purchases_router.get("/analysis", response_model=PurchaseAnalysisResponse)
def purchase_analysis(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    categoria_id: Optional[int] = Query(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    categoria = None
    if categoria_id is not None:
        categoria = get_family_row(
            db, CategoryRow, categoria_id, profile, "Category not found"
        ).name

    rows = db.list_purchases(
        profile.family_group,
        start=datetime.combine(start_date, time.min) if start_date else None,
        end=day_bounds(end_date)[1] if end_date else None,
        categoria=categoria,
    )

    total = sum((row.prezzo or 0) * (row.quantita or 0) for row in rows)
    per_supermarket = {}
    for supermarket in SUPERMARKETS:
        per_supermarket[supermarket.key] = round(
            sum(
                (row.quantita or 0) * getattr(row, supermarket.price_field)
                for row in rows
                if getattr(row, supermarket.price_field) is not None
            ),
            2,
        )
    return PurchaseAnalysisResponse(
        acquisti=[PurchaseResponse.model_validate(row) for row in rows],
        totale=round(total, 2),
        totali_supermercati=per_supermarket,
    )
