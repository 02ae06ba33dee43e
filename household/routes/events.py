"""
Family calendar and medication calendar.

Both calendars store one row per occurrence. A recurring event is expanded
up front and its occurrences share a ``recurrence_id``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Type
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query

from household.db import (
    EventRow,
    MedicationEventRow,
    ProfileRow,
    SqlDbClient,
    as_utc_naive,
)
from household.dependencies import get_broker, get_db_client, get_family_profile
from household.realtime import Broker
from household.recurrence import RecurrenceError, compute_notify_at, expand_series
from household.routes.common import get_family_row, publish_event
from household.schemas import (
    DeletedResponse,
    EventFields,
    EventPayload,
    EventResponse,
    MedicationEventPayload,
    MedicationEventResponse,
)
from household.shared.types import EventCategory, RepeatPattern

logger = logging.getLogger(__name__)

router = APIRouter()
medication_router = APIRouter()


def _occurrence_rows(payload: EventFields, base: dict) -> list[dict]:
    try:
        occurrences = expand_series(
            as_utc_naive(payload.start),
            as_utc_naive(payload.end),
            payload.repeat_pattern.value,
            payload.repeat_end_date,
        )
    except RecurrenceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    recurring = payload.repeat_pattern is not RepeatPattern.NONE
    recurrence_id = uuid4().hex if recurring else None
    return [
        {
            **base,
            "start": start,
            "end": end,
            "repeat_pattern": payload.repeat_pattern.value,
            "recurrence_id": recurrence_id,
            "notify_at": compute_notify_at(
                start, payload.notifications_enabled, payload.send_before_hours
            ),
            "notify_emails": list(payload.notify_emails),
        }
        for start, end in occurrences
    ]


def _responses(db: SqlDbClient, model: Type, rows: list, schema: Type) -> list:
    series_ends: dict[str, Optional[datetime]] = {}
    responses = []
    for row in rows:
        response = schema.model_validate(row)
        if row.recurrence_id:
            if row.recurrence_id not in series_ends:
                series_ends[row.recurrence_id] = db.series_end(model, row.recurrence_id)
            response.series_end = series_ends[row.recurrence_id]
        responses.append(response)
    return responses


def _list(db, model, schema, profile, start, end):
    rows = db.list_events(
        model,
        profile.family_group,
        start=as_utc_naive(start) if start else None,
        end=as_utc_naive(end) if end else None,
    )
    return _responses(db, model, rows, schema)


def _create(db, broker, model, schema, profile, payload, base, event_name):
    rows = db.add_all(model, _occurrence_rows(payload, base))
    logger.info(
        "Created %d occurrence(s) in %s for family %s",
        len(rows),
        model.__tablename__,
        profile.family_group,
    )
    publish_event(broker, profile.family_group, event_name, action="created")
    return _responses(db, model, rows, schema)


def _update(db, broker, model, schema, profile, event_id, payload, base, event_name):
    """
    Without a repeat pattern only the addressed occurrence changes. With one,
    the whole series (or the single event it used to be) is regenerated.
    """
    existing = get_family_row(db, model, event_id, profile, "Event not found")

    if payload.repeat_pattern is not RepeatPattern.NONE:
        rows = db.replace_series(
            model,
            _occurrence_rows(payload, {**base, "created_by": existing.created_by}),
            recurrence_id=existing.recurrence_id,
            row_id=existing.id,
        )
    else:
        start, end = as_utc_naive(payload.start), as_utc_naive(payload.end)
        if end <= start:
            raise HTTPException(status_code=400, detail="End must be after start")
        notify_at = compute_notify_at(
            start, payload.notifications_enabled, payload.send_before_hours
        )
        values = {
            **base,
            "start": start,
            "end": end,
            "notify_at": notify_at,
            "notify_emails": list(payload.notify_emails),
        }
        if notify_at != existing.notify_at:
            values["notified_at"] = None
        rows = [db.update(model, existing.id, values)]

    publish_event(broker, profile.family_group, event_name, action="updated")
    return _responses(db, model, rows, schema)


def _delete(db, broker, model, profile, event_id, scope, event_name):
    existing = get_family_row(db, model, event_id, profile, "Event not found")
    if scope == "all" and existing.recurrence_id:
        deleted = db.delete_series(model, existing.recurrence_id)
    else:
        deleted = int(db.delete(model, existing.id))
    publish_event(broker, profile.family_group, event_name, action="deleted")
    return DeletedResponse(deleted=deleted)


# Family calendar


def _event_base(payload: EventPayload, profile: ProfileRow) -> dict:
    return {
        "family_group": profile.family_group,
        "created_by": profile.id,
        "title": payload.title,
        "description": payload.description,
        "categoria_eve": payload.categoria_eve.value,
    }


@router.get("/events", response_model=list[EventResponse])
def list_events(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    return _list(db, EventRow, EventResponse, profile, start, end)


@router.post("/events", response_model=list[EventResponse], status_code=201)
def create_event(
    payload: EventPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    return _create(
        db, broker, EventRow, EventResponse, profile, payload,
        _event_base(payload, profile), "calendar",
    )


@router.put("/events/{event_id}", response_model=list[EventResponse])
def update_event(
    event_id: int,
    payload: EventPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    base = _event_base(payload, profile)
    base.pop("created_by")
    return _update(
        db, broker, EventRow, EventResponse, profile, event_id, payload, base, "calendar"
    )


@router.delete("/events/{event_id}", response_model=DeletedResponse)
def delete_event(
    event_id: int,
    scope: str = Query("single", pattern="^(single|all)$"),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    return _delete(db, broker, EventRow, profile, event_id, scope, "calendar")


# Medication calendar


def _medication_base(
    payload: MedicationEventPayload, profile: ProfileRow, db: SqlDbClient
) -> dict:
    medication = db.find_medication_by_name(profile.family_group, payload.nome_farmaco.strip())
    if medication is None:
        raise HTTPException(status_code=404, detail="Medication not found in inventory")
    return {
        "family_group": profile.family_group,
        "created_by": profile.id,
        "username": profile.username,
        "nome_farmaco": medication.nome_farmaco,
        "quantita": payload.quantita,
        "title": f"Assunzione {medication.nome_farmaco}",
        "description": f"Dose: {payload.quantita:g}",
        "categoria_eve": EventCategory.FARMACO.value,
    }


@medication_router.get("/events", response_model=list[MedicationEventResponse])
def list_medication_events(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
):
    return _list(db, MedicationEventRow, MedicationEventResponse, profile, start, end)


@medication_router.post(
    "/events", response_model=list[MedicationEventResponse], status_code=201
)
def create_medication_event(
    payload: MedicationEventPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    return _create(
        db, broker, MedicationEventRow, MedicationEventResponse, profile, payload,
        _medication_base(payload, profile, db), "medications",
    )


@medication_router.put("/events/{event_id}", response_model=list[MedicationEventResponse])
def update_medication_event(
    event_id: int,
    payload: MedicationEventPayload,
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    base = _medication_base(payload, profile, db)
    base.pop("created_by")
    return _update(
        db, broker, MedicationEventRow, MedicationEventResponse, profile, event_id,
        payload, base, "medications",
    )


@medication_router.delete("/events/{event_id}", response_model=DeletedResponse)
def delete_medication_event(
    event_id: int,
    scope: str = Query("single", pattern="^(single|all)$"),
    profile: ProfileRow = Depends(get_family_profile),
    db: SqlDbClient = Depends(get_db_client),
    broker: Broker = Depends(get_broker),
):
    return _delete(db, broker, MedicationEventRow, profile, event_id, scope, "medications")
