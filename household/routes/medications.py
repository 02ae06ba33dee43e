"""
Medication inventory of a family (ArchivioFarmaci).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from household.db import MedicationRow, ProfileRow, SqlDbClient
from household.dependencies import get_broker, get_db_client, get_family_profile
from household.realtime import Broker
from household.routes.common import get_family_row, publish_event
from household.schemas import (
    MedicationBulkEdit,
    MedicationPayload,
    MedicationResponse,
    StatusResponse,
    StockUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def is_low_stock(row: MedicationRow) -> bool:
    return (row.quantita_attuale or 0) <= (row.quantita_scortaminima or 0)


def _response(row: MedicationRow) -> MedicationResponse:
    response = MedicationResponse.model_validate(row)
    response.low_stock = is_low_stock(row)
    return response


def _check_unique_name(
    db: SqlDbClient, profile: ProfileRow, name: str, current_id: int | None = None
) -> None:
    existing = db.find_medication_by_name(profile.family_group, name)
    if existing is not None and existing.id != current_id:
        raise HTTPException(status_code=409, detail="Medication already exists")


@router.get("", response_model=list[MedicationResponse])
def list_inventory(
    low_stock: bool = Query(False),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    rows = db.list_for_family(
        MedicationRow, profile.family_group, MedicationRow.nome_farmaco.asc()
    )
    if low_stock:
        rows = [row for row in rows if is_low_stock(row)]
    return [_response(row) for row in rows]


@router.post("", response_model=MedicationResponse, status_code=201)
def create_medication(
    payload: MedicationPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    name = payload.nome_farmaco.strip()
    _check_unique_name(db, profile, name)
    row = db.add(
        MedicationRow,
        {**payload.model_dump(), "nome_farmaco": name, "family_group": profile.family_group},
    )
    publish_event(broker, profile.family_group, "medications", action="created", id=row.id)
    return _response(row)


@router.put("", response_model=list[MedicationResponse])
def bulk_update(
    payload: list[MedicationBulkEdit],
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    """Apply several inventory edits; every row is checked before any is written."""
    for edit in payload:
        get_family_row(db, MedicationRow, edit.id, profile, f"Medication {edit.id} not found")

    updated = []
    for edit in payload:
        values = edit.model_dump(exclude_unset=True, exclude={"id"})
        row = db.update(MedicationRow, edit.id, values) if values else db.get(MedicationRow, edit.id)
        updated.append(_response(row))
    publish_event(broker, profile.family_group, "medications", action="updated")
    return updated


@router.put("/{medication_id}", response_model=MedicationResponse)
def update_medication(
    medication_id: int,
    payload: MedicationPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    get_family_row(db, MedicationRow, medication_id, profile, "Medication not found")
    name = payload.nome_farmaco.strip()
    _check_unique_name(db, profile, name, current_id=medication_id)
    row = db.update(
        MedicationRow, medication_id, {**payload.model_dump(), "nome_farmaco": name}
    )
    publish_event(
        broker, profile.family_group, "medications", action="updated", id=medication_id
    )
    return _response(row)


@router.patch("/{medication_id}/stock", response_model=MedicationResponse)
def update_stock(
    medication_id: int,
    payload: StockUpdate,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    get_family_row(db, MedicationRow, medication_id, profile, "Medication not found")
    row = db.update(
        MedicationRow, medication_id, {"quantita_attuale": payload.quantita_attuale}
    )
    if is_low_stock(row):
        logger.info("Medication %s of family %s is low on stock", row.id, row.family_group)
    publish_event(
        broker, profile.family_group, "medications", action="stock", id=medication_id
    )
    return _response(row)


@router.delete("/{medication_id}", response_model=StatusResponse)
def delete_medication(
    medication_id: int,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    get_family_row(db, MedicationRow, medication_id, profile, "Medication not found")
    db.delete(MedicationRow, medication_id)
    publish_event(
        broker, profile.family_group, "medications", action="deleted", id=medication_id
    )
    return StatusResponse()
